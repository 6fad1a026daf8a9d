"""Tests for the configuration management subsystem."""

import logging
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from verified_commit.config import Config, parse_workers, resolve_path
from verified_commit.constants import DEFAULT_COMMIT_MESSAGE


@pytest.fixture(autouse=True)
def clear_config_cache(tmp_path: Path, mocker: MagicMock) -> Any:
    """Ensures every test starts with a clean cache and no user config file."""
    mocker.patch("verified_commit.config.CONFIG_FILE", tmp_path / "missing.toml")
    Config._global_cache = None
    yield
    Config._global_cache = None


def test_config_defaults() -> None:
    """Verifies that the configuration initializes with sensible defaults."""
    conf = Config()
    assert conf.core.remote_name == "origin"
    assert conf.core.branch is None
    assert conf.commit.message == DEFAULT_COMMIT_MESSAGE
    assert conf.upload.max_workers == 8


def test_config_load_merges_layers(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies the cascading merge logic (Defaults -> Global -> Local)."""
    global_config_path = tmp_path / "global_config.toml"
    global_config_path.write_text(
        '[core]\nremote_name = "upstream"\n'
        '[commit]\nmessage = "global message"\n'
        "[upload]\nmax_workers = 2\n"
    )
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    (repo_dir / "verified-commit.toml").write_text("[upload]\nmax_workers = 16\n")
    mocker.patch("verified_commit.config.CONFIG_FILE", global_config_path)

    conf = Config.load(repo_path=repo_dir)

    assert conf.core.remote_name == "upstream"  # From Global
    assert conf.commit.message == "global message"  # From Global
    assert conf.upload.max_workers == 16  # Local overrides Global


def test_config_load_from_pyproject(tmp_path: Path) -> None:
    """Verifies that configuration can be loaded from pyproject.toml."""
    (tmp_path / "pyproject.toml").write_text(
        '[tool.verified-commit.core]\nbranch = "bot-updates"\n'
        '[tool.verified-commit.commit]\nmessage = "chore: regenerate"\n'
    )

    conf = Config.load(repo_path=tmp_path)

    assert conf.core.branch == "bot-updates"
    assert conf.commit.message == "chore: regenerate"


def test_local_config_does_not_leak_into_cache(tmp_path: Path) -> None:
    """Verifies that one repository's settings do not affect the next load."""
    (tmp_path / "verified-commit.toml").write_text('[core]\nbranch = "local"\n')

    assert Config.load(repo_path=tmp_path).core.branch == "local"
    assert Config.load().core.branch is None


def test_config_invalid_keys_and_values(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that unknown keys are ignored and invalid values fall back to defaults."""
    caplog.set_level(logging.WARNING)
    (tmp_path / "verified-commit.toml").write_text(
        'token = "leaked"\n'
        "[upload]\n"
        'max_workers = "many"\n'
        'fake_setting = "ignored"\n'
    )

    conf = Config.load(repo_path=tmp_path)

    assert conf.upload.max_workers == 8
    assert "Unknown config keys in [upload]: fake_setting" in caplog.text
    assert "Config error in [upload].max_workers: Invalid worker count" in caplog.text
    assert "Ignoring 'token'" in caplog.text
    assert "leaked" not in caplog.text


def test_config_syntax_error_is_logged(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that a broken TOML file is reported and skipped."""
    (tmp_path / "verified-commit.toml").write_text("[upload\n")

    conf = Config.load(repo_path=tmp_path)

    assert conf.upload.max_workers == 8
    assert "Config syntax error" in caplog.text


def test_parse_workers() -> None:
    """Verifies that worker counts must be positive integers."""
    assert parse_workers(4) == 4
    assert parse_workers("12") == 12

    for bad in ("0", "-1", "x"):
        with pytest.raises(ValueError, match="Invalid worker count"):
            parse_workers(bad)


def test_to_run_config_precedence(tmp_path: Path) -> None:
    """Verifies flags > INPUT_* environment > file values."""
    conf = Config()
    conf.core.branch = "from-file"
    environ = {
        "GITHUB_TOKEN": "env-token",
        "INPUT_BRANCH": "from-env",
        "INPUT_COMMIT-MESSAGE": "env message",
    }

    from_env = conf.to_run_config(tmp_path, environ=environ)
    from_flags = conf.to_run_config(
        tmp_path,
        token="flag-token",
        branch="from-flag",
        message="flag message",
        max_workers=3,
        environ=environ,
    )

    assert (from_env.token, from_env.branch, from_env.commit_message) == (
        "env-token",
        "from-env",
        "env message",
    )
    assert from_flags.token == "flag-token"
    assert from_flags.branch == "from-flag"
    assert from_flags.commit_message == "flag message"
    assert from_flags.max_workers == 3


def test_to_run_config_prefers_action_input_token(tmp_path: Path) -> None:
    """Verifies INPUT_TOKEN is used before GITHUB_TOKEN and empty values are skipped."""
    conf = Config()

    run = conf.to_run_config(
        tmp_path, environ={"INPUT_TOKEN": "input", "GITHUB_TOKEN": "github"}
    )
    fallback = conf.to_run_config(
        tmp_path, environ={"INPUT_TOKEN": "", "GITHUB_TOKEN": "github"}
    )

    assert run.token == "input"
    assert fallback.token == "github"
    assert run.branch is None
    assert run.commit_message == DEFAULT_COMMIT_MESSAGE


def test_to_run_config_requires_token(tmp_path: Path) -> None:
    """Verifies that a run cannot be configured without a token."""
    with pytest.raises(ValueError, match="GitHub token is required"):
        Config().to_run_config(tmp_path, environ={})


def test_run_config_hides_token(tmp_path: Path) -> None:
    """Verifies that the token never appears in the printed configuration."""
    run = Config().to_run_config(tmp_path, token="ghp_secret", environ={})

    assert "ghp_secret" not in repr(run)


def test_resolve_path(tmp_path: Path) -> None:
    """Verifies flag > INPUT_PATH > current directory."""
    assert resolve_path(str(tmp_path), environ={}) == tmp_path.resolve()
    assert resolve_path(None, environ={"INPUT_PATH": str(tmp_path)}) == tmp_path.resolve()
    assert resolve_path(None, environ={}) == Path(".").resolve()
