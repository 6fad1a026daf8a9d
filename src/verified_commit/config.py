import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_COMMIT_MESSAGE,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REMOTE,
    LOCAL_CONFIG_NAME,
    PYPROJECT_SECTION,
    TOKEN_ENV_VARS,
)

logger = logging.getLogger(APP_NAME)


def parse_workers(value: int | str) -> int:
    """Converts a worker count to a positive integer."""
    try:
        workers = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid worker count '{value}'") from None
    if workers < 1:
        raise ValueError(f"Invalid worker count '{value}'")
    return workers


@dataclass
class CoreConfig:
    """Repository targeting settings.

    Attributes:
        remote_name (str): The git remote whose URL names the GitHub repository.
        branch (str | None): Target branch. None means the checked-out branch.
    """

    remote_name: str = DEFAULT_REMOTE
    branch: str | None = None


@dataclass
class CommitConfig:
    """Remote commit settings.

    Attributes:
        message (str): Message of the commit created on GitHub.
    """

    message: str = DEFAULT_COMMIT_MESSAGE


@dataclass
class UploadConfig:
    """Blob upload settings.

    Attributes:
        max_workers (int): Maximum number of blobs uploaded concurrently.
    """

    max_workers: int = DEFAULT_MAX_WORKERS


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for a single replication run.

    Attributes:
        path (Path): Absolute repository path.
        token (str): GitHub API token. Never printed.
        branch (str | None): Requested target branch.
        commit_message (str): Message of the remote commit.
        max_workers (int): Upload concurrency bound.
        remote_name (str): The git remote identifying the GitHub repository.
    """

    path: Path
    token: str = field(repr=False)
    branch: str | None = None
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    max_workers: int = DEFAULT_MAX_WORKERS
    remote_name: str = DEFAULT_REMOTE


def resolve_path(value: str | None, environ: Mapping[str, str] | None = None) -> Path:
    """Determines the repository path from a flag, INPUT_PATH, or the cwd."""
    environ = os.environ if environ is None else environ
    raw = value or environ.get("INPUT_PATH") or "."
    return Path(raw).resolve()


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Repository targeting settings.
        commit (CommitConfig): Remote commit settings.
        upload (UploadConfig): Blob upload settings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)

    # Cache for the base global configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, repo_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, and local sources.

        Args:
            repo_path (Path | None): The repository root to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        # Start with a copy of the cached global config
        instance = replace(cls._global_cache)

        # 2. Load Local Config (if applicable)
        if repo_path:
            local_toml = repo_path / LOCAL_CONFIG_NAME
            pyproject = repo_path / "pyproject.toml"

            if local_toml.exists():
                instance._merge_from_file(local_toml)
            elif pyproject.exists():
                instance._merge_from_file(pyproject, section=PYPROJECT_SECTION)

        return instance

    def _merge_from_file(self, path: Path, section: str | None = None) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated table path
                                  (e.g., 'tool.verified-commit').
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if section:
                for key in section.split("."):
                    data = data.get(key, {})

            if not data:
                return

            if "token" in data:
                logger.warning(
                    f"Ignoring 'token' in {path}: tokens are read from the "
                    "environment or the command line only."
                )

            if "core" in data:
                self.core = self._update_dataclass("core", self.core, data["core"])
            if "commit" in data:
                self.commit = self._update_dataclass(
                    "commit", self.commit, data["commit"]
                )
            if "upload" in data:
                self.upload = self._update_dataclass(
                    "upload", self.upload, data["upload"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and malformed values."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_workers":
                    filtered_updates[k] = parse_workers(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)

    def to_run_config(
        self,
        path: Path,
        token: str | None = None,
        branch: str | None = None,
        message: str | None = None,
        max_workers: int | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> RunConfig:
        """Freezes this configuration into the settings of one run.

        Explicit arguments (command-line flags) win over the GitHub Actions
        style `INPUT_*` environment variables, which win over file values.

        Raises:
            ValueError: If no API token is available.
        """
        environ = os.environ if environ is None else environ

        token = token or next(
            (environ[name] for name in TOKEN_ENV_VARS if environ.get(name)), None
        )
        if not token:
            raise ValueError(
                "A GitHub token is required (--token, INPUT_TOKEN or GITHUB_TOKEN)."
            )

        return RunConfig(
            path=path,
            token=token,
            branch=branch or environ.get("INPUT_BRANCH") or self.core.branch,
            commit_message=message
            or environ.get("INPUT_COMMIT-MESSAGE")
            or self.commit.message,
            max_workers=max_workers or self.upload.max_workers,
            remote_name=self.core.remote_name,
        )
