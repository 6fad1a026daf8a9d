"""Tree snapshots of local commits and the blob diff between two of them."""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .constants import APP_NAME
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)

_SHA_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


class CommitNotFoundError(LookupError):
    """Raised when a commit reference cannot be resolved in the local repository."""

    def __init__(self, rev: str):
        super().__init__(f"No such commit: {rev}")
        self.rev = rev


class ObjectType(str, Enum):
    """Git object kinds that can appear as leaf entries of a recursive tree."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


@dataclass(frozen=True)
class TreeEntry:
    """One leaf of a commit's tree.

    Attributes:
        mode (str): The file mode token, forwarded to the remote untouched.
        type (ObjectType): The object kind (blob, or commit for submodules).
        sha (str): The content-addressed object id.
        path (str): Slash-separated path relative to the repository root.
    """

    mode: str
    type: ObjectType
    sha: str
    path: str

    def __post_init__(self) -> None:
        if not _SHA_RE.match(self.sha):
            raise ValueError(f"Invalid object id '{self.sha}' for '{self.path}'")
        if not self.path:
            raise ValueError("Tree entry path must not be empty")
        # Accept plain strings from callers and normalise to the enum.
        object.__setattr__(self, "type", ObjectType(self.type))

    def to_api(self) -> dict[str, str]:
        """Returns the entry in the shape the GitHub tree endpoint expects."""
        return {
            "mode": self.mode,
            "type": self.type.value,
            "sha": self.sha,
            "path": self.path,
        }


@dataclass(frozen=True)
class UploadTask:
    """A file whose content is not yet known to the remote object store."""

    path: str
    sha: str


def parse_ls_tree(output: str) -> list[TreeEntry]:
    """Parses `git ls-tree -r -z` output into tree entries.

    Each record reads `<mode> SP <type> SP <sha> TAB <path>` and records are
    NUL-terminated, so paths arrive unquoted. Only the first tab separates the
    path.

    Args:
        output (str): Raw ls-tree output.

    Returns:
        list[TreeEntry]: Entries in listing order. Empty output yields an empty list.

    Raises:
        ValueError: If a record does not follow the ls-tree format.
    """
    entries = []
    for line in output.split("\0"):
        if not line:
            continue
        meta, sep, path = line.partition("\t")
        fields = meta.split()
        if not sep or len(fields) != 3:
            raise ValueError(f"Malformed ls-tree line: {line!r}")
        mode, obj_type, sha = fields
        entries.append(
            TreeEntry(mode=mode, type=ObjectType(obj_type), sha=sha, path=path)
        )
    return entries


def read_tree(repo: GitRepo, rev: str) -> list[TreeEntry]:
    """Reads the full recursive tree of a commit.

    Args:
        repo (GitRepo): The local repository.
        rev (str): Any commit reference, including relative ones like 'abc~1'.

    Returns:
        list[TreeEntry]: Every leaf entry of the commit's tree.

    Raises:
        CommitNotFoundError: If `rev` does not resolve to a commit.
    """
    sha = repo.rev_parse(rev)
    if not sha:
        raise CommitNotFoundError(rev)
    logger.debug(f"Getting tree for commit {sha}")
    return parse_ls_tree(repo.ls_tree(sha))


def diff_blobs(parent: list[TreeEntry], target: list[TreeEntry]) -> list[UploadTask]:
    """Finds the target entries whose content is absent from the parent snapshot.

    Matching is by object id only, so renamed or copied files are not uploaded
    again. The result keeps target order.
    """
    known = {entry.sha for entry in parent}
    return [
        UploadTask(path=entry.path, sha=entry.sha)
        for entry in target
        if entry.sha not in known
    ]
