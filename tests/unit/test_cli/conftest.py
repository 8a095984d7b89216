"""Shared fixtures for CLI command tests."""

import json
import os

import pytest
from click.testing import CliRunner


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep user config files and CONTEXT_GATE_* variables out of CLI runs."""
    for name in list(os.environ):
        if name.startswith("CONTEXT_GATE_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "state"


@pytest.fixture
def docs_file(tmp_path):
    """A solicitation and a media file of 500 tokens each."""
    documents = [
        {"id": "rfp", "type": "solicitation", "content": "x" * 2000, "metadata": {}},
        {"id": "clip", "type": "media", "content": "y" * 2000, "metadata": {}},
    ]
    path = tmp_path / "docs.json"
    path.write_text(json.dumps(documents))
    return path
