# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace status' command."""

import json
import os
import shutil

TOOLS = {
    "fuse-overlayfs": "install fuse-overlayfs (e.g. 'apt install fuse-overlayfs')",
    "sshfs": "install sshfs (e.g. 'apt install sshfs')",
    "fusermount": "install fuse (e.g. 'apt install fuse3')",
}


def _tool_status(tool: str) -> dict:
    path = shutil.which(tool)
    if path is None:
        return {"installed": False, "path": None, "executable": False}
    return {
        "installed": True,
        "path": path,
        "executable": os.access(path, os.X_OK),
        "size": os.path.getsize(path),
    }


def cmd_status(args) -> int:
    data = {tool: _tool_status(tool) for tool in TOOLS}

    if getattr(args, "json", False):
        print(json.dumps({"command": "status", "tools": data}))
        return 0

    for tool, info in data.items():
        print(f"{tool}:")
        if info["installed"]:
            print(f"  installed: yes ({info['path']}, {info['size']} bytes)")
            print(f"  executable: {'yes' if info['executable'] else 'no'}")
        else:
            print("  installed: no")
            print(f"  hint: {TOOLS[tool]}")

    return 0
