"""Shared fixtures for CLI command tests."""

import os

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the developer's config files and variables out of CLI tests."""
    for name in list(os.environ):
        if name.startswith("LLM_CONTINUATION_"):
            monkeypatch.delenv(name)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fragment_files(tmp_path):
    """Write fragments to numbered files and return their paths."""

    def _write(*contents):
        paths = []
        for index, content in enumerate(contents, 1):
            path = tmp_path / f"fragment-{index}.txt"
            path.write_bytes(content.encode("utf-8"))
            paths.append(str(path))
        return paths

    return _write
