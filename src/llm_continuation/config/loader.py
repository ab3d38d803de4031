"""ContinuationConfig loading logic.

Provides ``_ContinuationConfigLoader``, a mixin whose methods are inherited by
``ContinuationConfig`` (defined in ``continuation.py``). Values are collected
from every source first and validated once, when the dataclass is built.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple, cast

if TYPE_CHECKING:
    from llm_continuation.config.continuation import ContinuationConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from llm_continuation.config.parsing import _try_parse_float, _try_parse_int

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV_VAR = "LLM_CONTINUATION_CONFIG_FILE"
ENV_PREFIX = "LLM_CONTINUATION_"
TOML_TABLE = "continuation"

# field name -> parser for environment strings (None means keep the string)
_FIELD_PARSERS: Dict[str, Optional[Callable[[Any], Any]]] = {
    "max_attempts": _try_parse_int,
    "output_format": None,
    "on_failure": None,
    "timeout_seconds": _try_parse_float,
    "hint_overlap_lines": _try_parse_int,
    "input_cost_per_1k": _try_parse_float,
    "output_cost_per_1k": _try_parse_float,
}


class _ContinuationConfigLoader:
    """Mixin providing config-loading methods for ``ContinuationConfig``."""

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ContinuationConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables (LLM_CONTINUATION_*)
        2. Project TOML config (./llm-continuation.toml)
        3. User TOML config (~/.llm-continuation.toml)
        4. XDG config (~/.config/llm-continuation/config.toml)
        5. Default values

        An explicit ``config_file`` (or LLM_CONTINUATION_CONFIG_FILE) replaces
        the file search.

        Raises:
            InvalidConfigurationError: If a resolved value is invalid
        """
        values: Dict[str, Any] = {}

        toml_path = config_file or os.environ.get(CONFIG_FILE_ENV_VAR)
        if toml_path:
            values.update(cls._load_toml(Path(toml_path)))
        else:
            for path in cls._config_search_paths():
                if path.exists():
                    values.update(cls._load_toml(path))
                    logger.debug(f"Loaded config from {path}")

        values.update(cls._load_env())
        return cast("ContinuationConfig", cls(**values))

    @staticmethod
    def _config_search_paths() -> Tuple[Path, ...]:
        xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        return (
            Path(xdg_config_home) / "llm-continuation" / "config.toml",
            Path.home() / ".llm-continuation.toml",
            Path("llm-continuation.toml"),
        )

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Read the ``[continuation]`` table from a TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            return {}

        table = data.get(TOML_TABLE)
        if table is None:
            return {}
        if not isinstance(table, dict):
            logger.warning(
                f"Ignoring [{TOML_TABLE}] in {path}: expected table/dict, got {type(table).__name__}"
            )
            return {}

        values: Dict[str, Any] = {}
        for raw_key, raw_value in table.items():
            key = str(raw_key).strip().lower().replace("-", "_")
            if key not in _FIELD_PARSERS:
                logger.warning(f"Ignoring unknown option '{raw_key}' in [{TOML_TABLE}] of {path}")
                continue
            values[key] = raw_value
        return values

    @staticmethod
    def _load_env() -> Dict[str, Any]:
        """Load configuration from LLM_CONTINUATION_* environment variables."""
        values: Dict[str, Any] = {}
        for name, parser in _FIELD_PARSERS.items():
            raw = os.environ.get(ENV_PREFIX + name.upper())
            if raw is None or not raw.strip():
                continue
            if parser is None:
                values[name] = raw
                continue
            parsed = parser(raw)
            if parsed is None:
                logger.warning(
                    "Ignoring %s%s: could not parse %r",
                    ENV_PREFIX,
                    name.upper(),
                    raw,
                )
                continue
            values[name] = parsed
        return values
