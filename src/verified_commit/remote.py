"""Access to the GitHub Git Data API (blobs, trees, commits and refs)."""

import logging
import re
from urllib.parse import urlparse

from github import Auth, Github, GithubException, InputGitTreeElement
from github.GitTree import GitTree

from .constants import APP_NAME, REF_EXISTS_MESSAGE

logger = logging.getLogger(APP_NAME)

_SCP_LIKE_RE = re.compile(r"^[\w.-]+@[^:/]+:(?P<path>.+)$")


class RefAlreadyExistsError(RuntimeError):
    """Raised when creating a ref that already exists on the remote."""

    def __init__(self, ref: str):
        super().__init__(f"{REF_EXISTS_MESSAGE}: {ref}")
        self.ref = ref


def parse_remote_url(url: str) -> tuple[str, str]:
    """Extracts the owner and repository name from a git remote URL.

    Supports both URL forms (`https://github.com/owner/repo.git`) and the
    scp-like SSH form (`git@github.com:owner/repo.git`).

    Args:
        url (str): The remote URL as reported by git.

    Returns:
        tuple[str, str]: The (owner, repo) pair.

    Raises:
        ValueError: If the URL has fewer than two path segments.
    """
    url = url.strip()
    url = re.sub(r"\.git$", "", url)
    if match := _SCP_LIKE_RE.match(url):
        path = match.group("path")
    else:
        path = urlparse(url).path
    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        raise ValueError(f"Cannot determine owner/repo from remote URL '{url}'")
    return segments[-2], segments[-1]


class RemoteRepository:
    """Interface for the object-graph operations of a hosted repository.

    Object ids are content addressed and shared with the local repository, so
    a blob created here is referenced later by its local id.
    """

    def create_blob(self, content_b64: str) -> str:
        """Stores base64-encoded file content and returns the blob id."""
        raise NotImplementedError

    def create_tree(self, entries: list[dict[str, str]]) -> str:
        """Creates a tree from full `{mode, type, sha, path}` entries."""
        raise NotImplementedError

    def create_commit(self, message: str, parents: list[str], tree_sha: str) -> str:
        """Creates a commit object and returns its id."""
        raise NotImplementedError

    def create_ref(self, ref: str, sha: str) -> None:
        """Creates a fully qualified ref (`refs/heads/...`).

        Raises:
            RefAlreadyExistsError: If the ref is already present.
        """
        raise NotImplementedError

    def update_ref(self, ref: str, sha: str, force: bool = True) -> None:
        """Points an existing ref (`heads/...`) at a commit."""
        raise NotImplementedError


class GitHubRemote(RemoteRepository):
    """RemoteRepository backed by PyGithub.

    Attributes:
        owner (str): Repository owner (user or organisation).
        name (str): Repository name.
    """

    def __init__(self, token: str, owner: str, name: str, client: Github | None = None):
        self.owner = owner
        self.name = name
        self._gh = client or Github(auth=Auth.Token(token))
        self._repo = self._gh.get_repo(f"{owner}/{name}", lazy=True)
        # Trees created by this client, reused as commit input.
        self._trees: dict[str, GitTree] = {}

    def create_blob(self, content_b64: str) -> str:
        return self._repo.create_git_blob(content_b64, "base64").sha

    def create_tree(self, entries: list[dict[str, str]]) -> str:
        elements = [
            InputGitTreeElement(
                path=e["path"], mode=e["mode"], type=e["type"], sha=e["sha"]
            )
            for e in entries
        ]
        tree = self._repo.create_git_tree(elements)
        self._trees[tree.sha] = tree
        return tree.sha

    def create_commit(self, message: str, parents: list[str], tree_sha: str) -> str:
        tree = self._trees.get(tree_sha) or self._repo.get_git_tree(tree_sha)
        # PyGithub's create_git_commit only accepts GitCommit objects as
        # parents, and the public API builds those from a GET.
        parent_commits = [self._repo.get_git_commit(sha) for sha in parents]
        return self._repo.create_git_commit(message, tree, parent_commits).sha

    def create_ref(self, ref: str, sha: str) -> None:
        try:
            self._repo.create_git_ref(ref=ref, sha=sha)
        except GithubException as e:
            if _error_message(e) == REF_EXISTS_MESSAGE:
                raise RefAlreadyExistsError(ref) from e
            raise

    def update_ref(self, ref: str, sha: str, force: bool = True) -> None:
        self._repo.get_git_ref(ref).edit(sha, force=force)


def _error_message(exc: GithubException) -> str:
    """Returns the `message` field of a GitHub API error body, if any."""
    data = exc.data
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""
