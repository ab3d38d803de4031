"""Fixtures isolating config tests from the developer's environment."""

import os

import pytest


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Empty HOME/XDG dirs, no LLM_CONTINUATION_* variables, cwd in tmp_path."""
    for name in list(os.environ):
        if name.startswith("LLM_CONTINUATION_"):
            monkeypatch.delenv(name)
    home = tmp_path / "home"
    home.mkdir()
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.chdir(project)
    return {"home": home, "project": project}
