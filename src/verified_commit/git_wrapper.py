import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    This class exposes the handful of local plumbing and porcelain commands the
    replication pipeline needs: resolving revisions, listing trees, reading
    remotes and status, and creating the local helper commit.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git entry.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.

        Returns:
            str:    The stdout of the command with trailing whitespace removed
                    if capture is True, otherwise an empty string.

        Raises:
            RuntimeError: If the git command returns a non-zero exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
            )
            # Leading whitespace is significant for porcelain status lines.
            return res.stdout.rstrip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {e.stderr or e}") from e

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch.

        Returns:
            str: The name of the current branch (empty when HEAD is detached).
        """
        return self._run(["branch", "--show-current"])

    def remote_url(self, name: str = "origin") -> str:
        """Returns the fetch URL configured for a remote.

        Args:
            name (str, optional): The remote name. Defaults to 'origin'.

        Returns:
            str: The remote URL.
        """
        return self._run(["remote", "get-url", name]).strip()

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []

    def set_config(self, key: str, value: str) -> None:
        """Sets a repository-local git configuration value."""
        self._run(["config", "--local", key, value], capture=False)

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "-A"], capture=False)

    def commit(self, message: str) -> None:
        """Creates a new commit from the index, bypassing hooks.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "--no-verify", "-m", message])

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (branch, relative ref, SHA) to a full commit hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'main', 'abc123~1').

        Returns:
            Optional[str]:  The full commit hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except Exception as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def ls_tree(self, sha: str) -> str:
        """Lists every leaf entry of a commit's tree, recursively.

        Args:
            sha (str): The commit hash whose tree is listed.

        Returns:
            str: Raw `git ls-tree -r -z --full-tree` output, NUL-terminated records.
        """
        return self._run(["ls-tree", "-r", "-z", "--full-tree", sha])
