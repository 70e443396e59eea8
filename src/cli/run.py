# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace run' command."""

import os
import subprocess

from rich.console import Console
from rich.prompt import Prompt

from cowspace.exceptions import WorkspaceNotFoundError

from . import _load_manager

WELCOME = (
    "Workspace [bold cyan]{name}[/bold cyan] at {path}\n"
    "Use [green]cowspace clean PATH[/green] to remove directories inside the overlay.\n"
    "Type [bold]exit[/bold] when done."
)

PS1 = r"\[\033[0;32m\]cowspace:{name} \[\033[01;34m\]\w \[\033[00m\]\$ "


def _select_workspace(manager, console: Console) -> str:
    """Prompt for one of the named workspaces."""
    names = [ws.name for ws in manager.list() if ws.name]
    if not names:
        raise WorkspaceNotFoundError(
            "no workspaces found; create one first with 'cowspace create'"
        )
    if len(names) == 1:
        return names[0]
    for index, name in enumerate(names, 1):
        console.print(f"  [cyan]{index}[/cyan]. {name}")
    choice = Prompt.ask(
        "Select a workspace",
        choices=[str(i) for i in range(1, len(names) + 1)],
        console=console,
    )
    return names[int(choice) - 1]


def cmd_run(args) -> int:
    console = Console()
    manager = _load_manager(args)

    name = args.name or _select_workspace(manager, console)
    ws = manager.get(name)

    shell = args.shell or os.environ.get("SHELL") or "/bin/bash"
    env = dict(os.environ, PS1=PS1.format(name=ws.name), COWSPACE_WORKSPACE=ws.name)

    console.print(WELCOME.format(name=ws.name, path=ws.mount_path))
    result = subprocess.run([shell], cwd=ws.mount_path, env=env)
    console.print("[bold]Left workspace[/bold] {}".format(ws.name))
    return result.returncode
