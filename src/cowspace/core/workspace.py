# SPDX-License-Identifier: Apache-2.0
"""Workspace record as reconstructed from the mount table or directory tree."""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

SOURCE_LOCAL = "local"
SOURCE_REMOTE = "remote"

FS_OVERLAY = "overlay"
FS_SSHFS = "sshfs"


@dataclass
class Workspace:
    """
    A copy-on-write view of a repository.

    Nothing about a workspace is stored; every field is derived from the
    mount point on demand.

    Attributes:
        name: Workspace name, empty for anonymous entries (raw sshfs
            mounts and scaffold directories in verbose listings)
        mount_path: Merged, writable view
        filesystem: Filesystem kind as reported by discovery
        source: "local" or "remote" (remote has an sshfs layer underneath)
        created: Modification time of the mount directory, or "N/A"
    """

    name: str
    mount_path: Path
    filesystem: str = FS_OVERLAY
    source: str = SOURCE_LOCAL
    created: str = "N/A"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "mount": str(self.mount_path),
            "filesystem": self.filesystem,
            "source": self.source,
            "created": self.created,
        }


def created_time(path: Union[str, Path]) -> str:
    """Format the mtime of ``path``, or "N/A" if it cannot be read."""
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        return "N/A"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(mtime))
