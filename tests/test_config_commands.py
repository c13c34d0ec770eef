"""Tests for the config commands."""

from pathlib import Path

import pytest

from record_workflow import config_commands
from record_workflow.config import Config


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    config = Config(config_dir=tmp_path / "local")
    monkeypatch.setattr("record_workflow.config_commands.get_config", lambda use_global=False: config)
    return config


def test_set_and_get(config: Config, capsys: pytest.CaptureFixture[str]) -> None:
    """Test storing and printing a setting."""
    config_commands.set("user.role", "manager")
    config_commands.get("user.role")
    config_commands.get("user.email")

    out = capsys.readouterr().out
    assert "Set user.role = manager (local)" in out
    assert "user.role = manager" in out
    assert "user.email is not set" in out
    assert config.get("user.role") == "manager"


def test_token_is_masked(config: Config, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that the Notion token never reaches the terminal."""
    config_commands.set("notion.token", "secret-token")
    config_commands.get("notion.token")
    config_commands.list_config()

    out = capsys.readouterr().out
    assert "secret-token" not in out
    assert "notion.token = ********" in out
    assert config.get("notion.token") == "secret-token"


def test_list_sorted_and_unset(config: Config, capsys: pytest.CaptureFixture[str]) -> None:
    """Test listing settings and removing one."""
    config.set("user.role", "admin")
    config.set("store", "local")

    config_commands.list_config()
    config_commands.unset("store")
    config_commands.unset("store")

    lines = capsys.readouterr().out.splitlines()
    assert lines[:2] == ["store = local", "user.role = admin"]
    assert lines[-1] == "Unset store (local)"
    assert config.get("store") is None


def test_list_empty(config: Config, capsys: pytest.CaptureFixture[str]) -> None:
    """Test the message when nothing is configured."""
    config_commands.list_config(global_=True)
    assert capsys.readouterr().out.strip() == "No global settings"
