"""git-verified-commit: GitHub-signed commits from local changes.

This package provides the command-line interface and the replication logic
that turns working tree changes into a commit created through the GitHub Git
Data API, so GitHub signs it as verified.
"""

from . import (
    cli,
    config,
    constants,
    git_wrapper,
    remote,
    replicate,
    tree,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "git_wrapper",
    "remote",
    "replicate",
    "tree",
]
