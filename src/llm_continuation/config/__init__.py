"""Configuration package for llm-continuation.

Sub-modules:
    parsing      – numeric parsing, choice normalization and suggestions
    loader       – TOML + environment loading mixin (_ContinuationConfigLoader)
    continuation – ContinuationConfig dataclass
    decorators   – log_call, timed
"""

from llm_continuation.config.continuation import (  # noqa: F401
    DEFAULT_MAX_ATTEMPTS,
    MAX_ATTEMPTS_CEILING,
    ContinuationConfig,
)
from llm_continuation.config.decorators import (  # noqa: F401
    log_call,
    timed,
)
