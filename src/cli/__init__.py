# SPDX-License-Identifier: Apache-2.0
"""CLI for cowspace: manage copy-on-write repository workspaces."""

import argparse
import json
import sys
from typing import Optional

from cowspace.exceptions import OperationCancelled


def _load_manager(args: argparse.Namespace, cancel=None):
    """Build a WorkspaceManager from --config (or the default file)."""
    from cowspace.config import load_config
    from cowspace.core.manager import WorkspaceManager

    return WorkspaceManager(load_config(getattr(args, "config", None)), cancel=cancel)


def _print_result(data: dict, args: argparse.Namespace) -> None:
    """Print result as JSON (if --json) or human-readable text."""
    if getattr(args, "json", False):
        print(json.dumps(data))
    else:
        for key, value in data.items():
            print(f"{key}: {value}")


def _print_error(message: str, args: Optional[argparse.Namespace] = None) -> None:
    """Print error as JSON (if --json) or plain text to stderr."""
    if getattr(args, "json", False):
        print(json.dumps({"error": message}), file=sys.stderr)
    else:
        print(f"error: {message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cowspace",
        description="Copy-on-write workspaces over local or sshfs-mounted repositories.",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        metavar="PATH",
        help="Config file (default: $COWSPACE_CONFIG or ~/.cowspace/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level for diagnostics on stderr (default: WARNING)",
    )
    parser.add_argument("--debug", action="store_true", help="Shorthand for --log-level DEBUG")
    sub = parser.add_subparsers(dest="command")

    # --- create ---
    p_create = sub.add_parser(
        "create",
        help="Create a workspace.",
        description=(
            "Create a workspace for REPO, a local path or user@host:/remote/repo. "
            "Remote repositories are attached with sshfs first."
        ),
    )
    p_create.add_argument("repo", metavar="REPO", help="Repository path or user@host:/path")
    p_create.add_argument("-n", "--name", help="Workspace name (generated if omitted)")
    p_create.add_argument("--json", action="store_true", help="JSON output")

    # --- delete ---
    p_delete = sub.add_parser(
        "delete",
        help="Delete a workspace.",
        description="Unmount a workspace's overlay and sshfs layers and remove its directories.",
    )
    p_delete.add_argument("name", nargs="?", metavar="NAME", help="Workspace name")
    p_delete.add_argument("-a", "--all", action="store_true", help="Delete all workspaces")

    # --- list ---
    p_list = sub.add_parser("list", help="List workspaces.")
    p_list.add_argument("name", nargs="?", metavar="NAME", help="Workspace name")
    p_list.add_argument("-a", "--all", action="store_true", help="List all workspaces")
    p_list.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Include raw sshfs mounts; NAME matches the end of the mount path",
    )
    p_list.add_argument("--json", action="store_true", help="JSON output")

    # --- run ---
    p_run = sub.add_parser(
        "run",
        help="Open a shell in a workspace.",
        description="Open an interactive shell in NAME (prompted for if omitted).",
    )
    p_run.add_argument("name", nargs="?", metavar="NAME", help="Workspace name")
    p_run.add_argument("--shell", default=None, help="Shell to run (default: $SHELL or /bin/bash)")

    # --- clean ---
    p_clean = sub.add_parser(
        "clean",
        help="Remove directories inside a workspace.",
        description=(
            "Remove directories with overlay-aware fallbacks. Use instead of "
            "'rm -rf' inside a workspace to avoid 'Directory not empty' errors."
        ),
    )
    p_clean.add_argument("paths", nargs="+", metavar="PATH", help="Directories to remove")
    p_clean.add_argument(
        "-f", "--force",
        action="store_true",
        help="Allow absolute paths (use with caution)",
    )

    # --- status ---
    p_status = sub.add_parser("status", help="Show mount toolchain status.")
    p_status.add_argument("--json", action="store_true", help="JSON output")

    # --- mount / unmount ---
    for verb, text in (("mount", "Mount REPO at an explicit path."),
                       ("unmount", "Unmount a path mounted with 'mount'.")):
        p = sub.add_parser(verb, help=text, description=text)
        p.add_argument(
            "-r", "--repository",
            required=True,
            metavar="REPO",
            help="Repository path (user@host:/remote/repo[:/local/mirror])",
        )
        p.add_argument("path", metavar="MOUNT_PATH", help="Overlay mount path")
        if verb == "mount":
            p.add_argument("--json", action="store_true", help="JSON output")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from cowspace.log import setup_logging
    setup_logging("DEBUG" if args.debug else args.log_level)

    try:
        if args.command == "create":
            from .create import cmd_create
            sys.exit(cmd_create(args))
        elif args.command == "delete":
            from .delete import cmd_delete
            sys.exit(cmd_delete(args))
        elif args.command == "list":
            from .listing import cmd_list
            sys.exit(cmd_list(args))
        elif args.command == "run":
            from .run import cmd_run
            sys.exit(cmd_run(args))
        elif args.command == "clean":
            from .clean import cmd_clean
            sys.exit(cmd_clean(args))
        elif args.command == "status":
            from .status import cmd_status
            sys.exit(cmd_status(args))
        elif args.command == "mount":
            from .mount import cmd_mount
            sys.exit(cmd_mount(args))
        elif args.command == "unmount":
            from .mount import cmd_unmount
            sys.exit(cmd_unmount(args))
        else:
            parser.print_help()
            sys.exit(1)
    except OperationCancelled as e:
        print("operation cancelled", file=sys.stderr)
        if e.completed:
            print(f"completed before cancel: {', '.join(e.completed)}", file=sys.stderr)
        sys.exit(130)
    except KeyboardInterrupt:
        print(file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        _print_error(str(e), args)
        sys.exit(1)
