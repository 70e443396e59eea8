# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace list' command."""

import json

from rich.console import Console
from rich.table import Table

from . import _load_manager, _print_error

COLUMNS = ("NAME", "MOUNT", "FILESYSTEM", "SOURCE", "CREATED")


def _render_table(workspaces) -> Table:
    table = Table(*COLUMNS, box=None, header_style="bold")
    for ws in workspaces:
        table.add_row(ws.name, str(ws.mount_path), ws.filesystem, ws.source, ws.created)
    return table


def cmd_list(args) -> int:
    if not args.name and not args.all:
        _print_error("please specify a workspace name or --all", args)
        return 1

    manager = _load_manager(args)
    workspaces = manager.list(args.name, verbose=args.verbose)

    if getattr(args, "json", False):
        print(json.dumps({"workspaces": [ws.to_dict() for ws in workspaces]}))
    else:
        Console().print(_render_table(workspaces))

    return 0
