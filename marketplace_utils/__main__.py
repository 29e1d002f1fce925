"""Entry point for running plugin hooks and session maintenance commands."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import NoReturn

logger = logging.getLogger(__name__)


def run_version() -> None:
    from marketplace_utils import __version__

    print(f"marketplace-utils {__version__}")


def run_session(args: argparse.Namespace) -> int:
    """Show or reset the session record of the current session.

    Args:
        args: Parsed command line arguments.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    from marketplace_utils.config import get_settings
    from marketplace_utils.core.locking import select_lock_provider
    from marketplace_utils.core.session import FileSessionBackend, SessionStore

    settings = get_settings()
    store = SessionStore(
        FileSessionBackend(settings.session_file_path()),
        select_lock_provider(settings),
        session_key=settings.session_key(),
    )

    try:
        if args.action == "reset":
            store.reset()
            print(f"Session reset: {settings.session_file_path()}")
            return 0

        record = store.snapshot()
        if not record.session_id:
            print(f"No session at {settings.session_file_path()}")
            return 0
        data = record.model_dump()
        data["age_seconds"] = store.session_age()
        print(json.dumps(data, indent=2))
        return 0
    except Exception as e:
        logger.error(f"Session {args.action} failed: {e}")
        print(f"\nError: {e}")
        return 1


def run_cleanup(args: argparse.Namespace) -> int:
    """Remove the session artifacts of the current session."""
    from marketplace_utils.config import get_settings
    from marketplace_utils.hooks.lifecycle import cleanup_session_artifacts

    settings = get_settings()
    keep_logs = True if args.keep_logs else None
    removed = cleanup_session_artifacts(settings, keep_logs=keep_logs)
    if not removed:
        print("Nothing to remove.")
    for path in removed:
        print(f"Removed {path}")
    return 0


def main() -> NoReturn:
    """Main entry point with subcommand support."""
    # Fast-path: bypass argparse for hook dispatch
    if len(sys.argv) >= 2 and sys.argv[1] == "hook":
        from marketplace_utils.hooks.dispatcher import main as hook_main

        hook_main(sys.argv[2:])

    parser = argparse.ArgumentParser(
        prog="marketplace-utils",
        description="Session coordination for plugin hook scripts",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
    )

    # Hook command (handled by the fast path above; registered for --help)
    subparsers.add_parser(
        "hook",
        help="Run a plugin hook: hook <plugin> <event> (request on stdin)",
    )

    session_parser = subparsers.add_parser(
        "session",
        help="Inspect or reset the current session record",
    )
    session_parser.add_argument(
        "action",
        choices=["show", "reset"],
        nargs="?",
        default="show",
        help="show (default) or reset",
    )

    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Remove session file, locks, log and error journal",
    )
    cleanup_parser.add_argument(
        "--keep-logs",
        action="store_true",
        help="Keep the log and error journal",
    )

    args = parser.parse_args()

    if args.version:
        run_version()
        sys.exit(0)

    if args.command == "session":
        sys.exit(run_session(args))
    elif args.command == "cleanup":
        sys.exit(run_cleanup(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
