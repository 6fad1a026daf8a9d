import argparse
import logging
import os
import sys

from rich.console import Console

from . import replicate
from .config import Config, parse_workers, resolve_path
from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, or if the GitHub Actions debug switch
                        (RUNNER_DEBUG=1) is set, debug messages are emitted.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    debug = verbose or os.environ.get("RUNNER_DEBUG") == "1"
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    """Builds the command-line parser."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Commit the working tree changes through the GitHub API so the "
            "commit is signed by GitHub."
        ),
    )
    parser.add_argument(
        "--path", "-C", help="Repository path (default: current directory)"
    )
    parser.add_argument(
        "--branch", "-b", help="Target branch (default: the checked-out branch)"
    )
    parser.add_argument("--message", "-m", help="Message of the remote commit")
    parser.add_argument(
        "--token",
        help="GitHub token (default: $INPUT_TOKEN or $GITHUB_TOKEN)",
    )
    parser.add_argument(
        "--max-workers",
        type=parse_workers,
        help="Maximum concurrent blob uploads",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the git-verified-commit CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    console.print("Action started")
    try:
        path = resolve_path(args.path)
        run_config = Config.load(repo_path=path).to_run_config(
            path,
            token=args.token,
            branch=args.branch,
            message=args.message,
            max_workers=args.max_workers,
        )
        with console.status("Replicating commit on GitHub...", spinner="dots"):
            sha = replicate.run(run_config)
    except Exception as e:
        logger.critical(f"Action failed: {e}")
        err_console.print(f"[bold red]Action failed with error {e}[/bold red]")
        sys.exit(1)

    if sha is None:
        console.print("[yellow]No changes to commit.[/yellow]")
    else:
        console.print(f"[bold green]✔ Remote commit created:[/bold green] {sha}")
    console.print("Action completed")


if __name__ == "__main__":
    main()
