# SPDX-License-Identifier: Apache-2.0
"""Mount table parsing from /proc/mounts and the mount(8) listing."""

import errno
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

PROC_MOUNTS = "/proc/mounts"

# "<source> on <mountpoint> type <fstype> (<options>)"
_LISTING_RE = re.compile(
    r"^(?P<source>.*?) on (?P<mountpoint>.+) type (?P<fstype>\S+)"
    r"(?: \((?P<options>[^)]*)\))?\s*$"
)

# /proc/mounts escapes space, tab, newline and backslash as octal
_OCTAL_RE = re.compile(r"\\([0-7]{3})")

# Unmount helpers exit 1 for every failure; these mean "nothing mounted"
NOT_MOUNTED_MARKERS = ("not mounted", "not found in", "Invalid argument")


@dataclass
class MountInfo:
    """Information about a mounted filesystem."""

    mountpoint: Path
    source: str
    fstype: str
    options: str


def _unescape(field: str) -> str:
    return _OCTAL_RE.sub(lambda m: chr(int(m.group(1), 8)), field)


def parse_mounts(path: str = PROC_MOUNTS) -> List[MountInfo]:
    """
    Parse /proc/mounts and return list of MountInfo.

    Raises:
        OSError: If the mounts file cannot be read
    """
    mounts = []
    with open(path) as f:
        for line in f:
            parts = line.strip().split()
            if len(parts) >= 4:
                mounts.append(
                    MountInfo(
                        source=_unescape(parts[0]),
                        mountpoint=Path(_unescape(parts[1])),
                        fstype=parts[2],
                        options=parts[3],
                    )
                )
    return mounts


def parse_mount_output(text: str) -> List[MountInfo]:
    """
    Parse the output of the mount(8) listing command.

    The mount point is everything between `` on `` and `` type ``; it
    may contain spaces, so the line is not split on whitespace.
    """
    mounts = []
    for line in text.splitlines():
        match = _LISTING_RE.match(line.strip())
        if match is None:
            continue
        mounts.append(
            MountInfo(
                source=match.group("source"),
                mountpoint=Path(match.group("mountpoint")),
                fstype=match.group("fstype"),
                options=match.group("options") or "",
            )
        )
    return mounts


def list_mounts(command: str = "mount") -> List[MountInfo]:
    """
    Run the mount listing command and parse its output.

    Raises:
        OSError: If the command is not available
        subprocess.CalledProcessError: If the command exits non-zero
    """
    result = subprocess.run(
        [command], capture_output=True, text=True, check=True
    )
    return parse_mount_output(result.stdout)


def is_mounted(mountpoint: Union[str, Path]) -> bool:
    """
    Check whether ``mountpoint`` appears in /proc/mounts.

    Paths are compared lexically; a dead FUSE mount cannot be resolved.

    Raises:
        OSError: If /proc/mounts cannot be read
    """
    target = os.path.abspath(str(mountpoint))
    return any(
        os.path.abspath(str(m.mountpoint)) == target for m in parse_mounts()
    )


def is_not_mounted_error(error: OSError) -> bool:
    """True if an unmount failure only means nothing was mounted there."""
    if error.errno == errno.EINVAL:
        return True
    return any(marker in str(error) for marker in NOT_MOUNTED_MARKERS)
