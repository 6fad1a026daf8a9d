"""Global constants and configuration path definitions for git-verified-commit.

This module defines application identifiers, configuration file locations and
the defaults used when replicating a local commit through the GitHub API.
"""

import os
from pathlib import Path

# --- Identity ---
APP_NAME = "git-verified-commit"
"""str: The human-readable application name."""

DEFAULT_COMMIT_MESSAGE = f"Commit created by {APP_NAME}"
"""str: The message used for the remote commit when none is provided."""

LOCAL_USER_NAME = "local_user"
"""str: Committer name applied to the throwaway local helper commit."""

LOCAL_USER_EMAIL = "local_user@example.com"
"""str: Committer email applied to the throwaway local helper commit."""

HELPER_COMMIT_MESSAGE = "local commit"
"""str: Message of the local helper commit. It never leaves the machine."""

# --- Configuration Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / APP_NAME
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The global configuration file path."""

LOCAL_CONFIG_NAME = "verified-commit.toml"
"""str: Repository-local configuration file name."""

PYPROJECT_SECTION = "tool.verified-commit"
"""str: The pyproject.toml table holding repository-local configuration."""

# --- Remote / Logic Constants ---
DEFAULT_REMOTE = "origin"
"""str: The git remote whose URL identifies the GitHub repository."""

DEFAULT_MAX_WORKERS = 8
"""int: Upper bound on concurrent blob uploads."""

REF_EXISTS_MESSAGE = "Reference already exists"
"""str: GitHub's error message when creating a ref that is already present."""

TOKEN_ENV_VARS = ("INPUT_TOKEN", "GITHUB_TOKEN")
"""tuple[str, ...]: Environment variables searched for the API token, in order."""
