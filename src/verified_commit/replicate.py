"""Replication of a local commit onto GitHub through the Git Data API.

The pipeline reads the tree of the local commit and of its parent, uploads only
the blobs GitHub has not seen through the parent, recreates the full tree
remotely, commits it on top of the current remote tip and force-moves the
branch. Because the GitHub API creates the commit, GitHub signs it with the
token's identity.
"""

import base64
import logging
import os
from collections.abc import Callable
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from .config import RunConfig
from .constants import (
    APP_NAME,
    DEFAULT_MAX_WORKERS,
    HELPER_COMMIT_MESSAGE,
    LOCAL_USER_EMAIL,
    LOCAL_USER_NAME,
)
from .git_wrapper import GitRepo
from .remote import (
    GitHubRemote,
    RefAlreadyExistsError,
    RemoteRepository,
    parse_remote_url,
)
from .tree import (
    CommitNotFoundError,
    ObjectType,
    TreeEntry,
    UploadTask,
    diff_blobs,
    read_tree,
)

logger = logging.getLogger(APP_NAME)

RemoteFactory = Callable[[str, str, str], RemoteRepository]


class UploadError(RuntimeError):
    """Raised when a blob could not be created on the remote."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Cannot upload blob for '{path}': {cause}")
        self.path = path


class TreeCreationError(RuntimeError):
    """Raised when the remote refuses to create the tree object."""


@dataclass(frozen=True)
class RepositoryInfo:
    """Identity of the local checkout and its GitHub counterpart.

    Attributes:
        owner (str): GitHub owner parsed from the remote URL.
        repo (str): GitHub repository name parsed from the remote URL.
        branch (str): The currently checked-out branch.
        sha (str): HEAD before any helper commit; the remote tip to build on.
    """

    owner: str
    repo: str
    branch: str
    sha: str


@dataclass(frozen=True)
class BranchTarget:
    """The branch a run writes to, and whether it differs from the checkout."""

    name: str
    is_new: bool


@dataclass
class RemoteCommitState:
    """The most recent remote commit of the run.

    Seeded with the remote tip and overwritten once the new commit exists, so
    the commit parent and the ref update always agree.
    """

    sha: str


def identify_repository(repo: GitRepo, remote_name: str = "origin") -> RepositoryInfo:
    """Collects owner, repository, branch and HEAD for the local checkout.

    Raises:
        CommitNotFoundError: If HEAD does not resolve (repository has no commits).
    """
    branch = repo.current_branch()
    sha = repo.rev_parse("HEAD")
    if not sha:
        raise CommitNotFoundError("HEAD")
    owner, name = parse_remote_url(repo.remote_url(remote_name))

    logger.debug("Repository:")
    logger.debug(f"  repo: {name}")
    logger.debug(f"  owner: {owner}")
    logger.debug(f"  branch: {branch}")
    logger.debug(f"  lastCommitSha: {sha}")

    return RepositoryInfo(owner=owner, repo=name, branch=branch, sha=sha)


def resolve_branch(requested: str | None, current: str) -> BranchTarget:
    """Picks the target branch, defaulting to the checked-out one."""
    if requested and requested != current:
        return BranchTarget(name=requested, is_new=True)
    return BranchTarget(name=current, is_new=False)


def summarize_status(lines: list[str]) -> dict[str, list[str]]:
    """Groups porcelain status lines by their two-letter status code."""
    groups: dict[str, list[str]] = {}
    for line in lines:
        groups.setdefault(line[:2].strip(), []).append(line[3:])
    return groups


def ensure_branch(remote: RemoteRepository, branch: str, base_sha: str) -> bool:
    """Creates `refs/heads/<branch>` at `base_sha` unless it already exists.

    Returns:
        bool: True if the branch was created, False if it was already there.
    """
    try:
        remote.create_ref(f"refs/heads/{branch}", base_sha)
    except RefAlreadyExistsError:
        logger.debug(f"Branch {branch} already exists")
        return False
    logger.debug(f"Created new branch {branch}")
    return True


def _read_content(path: Path) -> bytes:
    """Returns the bytes git hashes for a working tree file.

    For a symlink that is the link text itself, not the file it points to.
    """
    if path.is_symlink():
        return os.fsencode(os.readlink(path))
    return path.read_bytes()


def _upload_one(remote: RemoteRepository, base_path: Path, task: UploadTask) -> str:
    content = _read_content(base_path / task.path)
    logger.debug(f"Creating blob in GitHub for file '{task.path}'")
    return remote.create_blob(base64.b64encode(content).decode("ascii"))


def upload_blobs(
    remote: RemoteRepository,
    tasks: list[UploadTask],
    base_path: Path,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> None:
    """Uploads the content of every task concurrently.

    The returned blob ids are not kept: GitHub and git address blobs the same
    way, so the tree refers to each blob by its local id.

    Raises:
        UploadError: On the first failed upload. Uploads that have not started
            are cancelled; those in flight finish and are ignored.
    """
    if not tasks:
        logger.debug("No new blobs to create")
        return

    logger.debug(f"Creating {len(tasks)} missing blobs on GitHub")
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(_upload_one, remote, base_path, task): task for task in tasks
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        for future in done:
            if (exc := future.exception()) is not None:
                raise UploadError(futures[future].path, exc) from exc
    logger.debug("GitHub blobs created")


def create_tree_and_commit(
    remote: RemoteRepository,
    tree: list[TreeEntry],
    message: str,
    state: RemoteCommitState,
) -> str:
    """Recreates `tree` remotely and commits it on top of `state.sha`.

    Every blob referenced by `tree` must already exist on the remote.

    Returns:
        str: The id of the new remote commit, also stored in `state`.

    Raises:
        TreeCreationError: If the tree cannot be created.
    """
    logger.debug("Creating a GitHub tree")
    try:
        tree_sha = remote.create_tree([entry.to_api() for entry in tree])
    except Exception as e:
        raise TreeCreationError(f"Cannot create a new GitHub tree: {e}") from e

    logger.debug("Creating a commit for the GitHub tree")
    state.sha = remote.create_commit(message, [state.sha], tree_sha)
    return state.sha


def update_branch_ref(remote: RemoteRepository, branch: str, sha: str) -> None:
    """Force-moves `heads/<branch>` to `sha`, without checking its old value."""
    logger.debug(f"Updating branch {branch} ref")
    remote.update_ref(f"heads/{branch}", sha, force=True)


def replicate_commit(
    repo: GitRepo,
    remote: RemoteRepository,
    local_commit: str,
    branch: str,
    message: str,
    state: RemoteCommitState,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> str:
    """Replays one local commit on the remote branch.

    A root commit has no parent to diff against; every file is uploaded.

    Returns:
        str: The id of the new remote commit.
    """
    target = read_tree(repo, local_commit)
    try:
        parent = read_tree(repo, f"{local_commit}~1")
    except CommitNotFoundError:
        logger.info(f"Commit {local_commit} has no parent; uploading every file")
        parent = []

    # Submodule entries point at commits in other repositories; nothing to upload.
    blobs = [entry for entry in target if entry.type is ObjectType.BLOB]
    upload_blobs(remote, diff_blobs(parent, blobs), repo.path, max_workers)

    sha = create_tree_and_commit(remote, target, message, state)
    update_branch_ref(remote, branch, sha)
    logger.debug("Commit using GitHub API completed")
    return sha


def _github_remote(token: str, owner: str, name: str) -> RemoteRepository:
    return GitHubRemote(token, owner, name)


def run(
    config: RunConfig, remote_factory: RemoteFactory = _github_remote
) -> str | None:
    """Commits the working tree changes of `config.path` through the GitHub API.

    Returns:
        str | None: The new remote commit id, or None when there was nothing
        to commit.

    Raises:
        ValueError: If HEAD is detached and no target branch was given.
    """
    repo = GitRepo(config.path)
    repo.set_config("user.name", LOCAL_USER_NAME)
    repo.set_config("user.email", LOCAL_USER_EMAIL)

    info = identify_repository(repo, config.remote_name)
    state = RemoteCommitState(info.sha)
    target = resolve_branch(config.branch, info.branch)

    status = repo.status_porcelain()
    logger.debug("git status:")
    for code, paths in summarize_status(status).items():
        logger.debug(f"  {code}: {paths}")

    if not status:
        logger.info(
            f"The git repository {info.owner}/{info.repo} with path {config.path} "
            "has no changes. Exiting."
        )
        return None

    # Detached HEAD (e.g. pull_request checkouts) has no branch to default to.
    if not target.name:
        raise ValueError("No branch is checked out; pass --branch to choose one.")

    remote = remote_factory(config.token, info.owner, info.repo)

    if target.is_new:
        ensure_branch(remote, target.name, info.sha)

    logger.debug("Creating local commit with the changes as helper")
    repo.add_all()
    repo.commit(HELPER_COMMIT_MESSAGE)
    local_commit = repo.rev_parse("HEAD")
    if not local_commit:
        raise CommitNotFoundError("HEAD")
    logger.debug(f"Local commit created: {local_commit}")

    return replicate_commit(
        repo,
        remote,
        local_commit,
        target.name,
        config.commit_message,
        state,
        config.max_workers,
    )
