# SPDX-License-Identifier: Apache-2.0
"""Reconstruct the set of workspaces from the live system.

There is no registry: the mount table and the directory tree under the
overlay root are the only record. Every query is recomputed from them.
"""

import os
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from loguru import logger

from ..config import Config
from ..fs._mount import MountInfo, list_mounts
from ..fs.overlay import is_scaffold_name
from .workspace import (
    FS_OVERLAY,
    FS_SSHFS,
    SOURCE_LOCAL,
    SOURCE_REMOTE,
    Workspace,
    created_time,
)


def _root_forms(root: Path) -> List[Path]:
    """``root`` as configured and with symlinks resolved.

    The mount table always reports canonical paths.
    """
    return [root, Path(os.path.realpath(root))]


def _child_name(roots: Sequence[Path], mountpoint: Path) -> Optional[str]:
    """Name of ``mountpoint`` if it is a direct child of one of ``roots``."""
    path = Path(os.path.normpath(str(mountpoint)))
    if path.parent not in roots or not path.name:
        return None
    return path.name


def _children(mounts: Iterable[MountInfo], root: Path) -> List[MountInfo]:
    roots = _root_forms(root)
    return [m for m in mounts if _child_name(roots, m.mountpoint) is not None]


def _classify(name: str, verbose: bool) -> Optional[str]:
    """Workspace name for a directory, "" for a verbose scaffold, or None."""
    if is_scaffold_name(name):
        return "" if verbose else None
    return name


def _from_mount_table(
    mounts: List[MountInfo], overlay_root: Path, sshfs_root: Path, verbose: bool
) -> List[Workspace]:
    sshfs_mounts = _children(mounts, sshfs_root)
    remote_names: Set[str] = {m.mountpoint.name for m in sshfs_mounts}

    workspaces = []
    for m in _children(mounts, overlay_root):
        dirname = m.mountpoint.name
        name = _classify(dirname, verbose)
        if name is None:
            continue
        workspaces.append(
            Workspace(
                name=name,
                mount_path=overlay_root / dirname,
                filesystem=m.fstype,
                source=SOURCE_REMOTE if dirname in remote_names else SOURCE_LOCAL,
                created=created_time(m.mountpoint),
            )
        )

    if verbose:
        for m in sshfs_mounts:
            workspaces.append(
                Workspace(
                    name="",
                    mount_path=sshfs_root / m.mountpoint.name,
                    filesystem=m.fstype,
                    source=SOURCE_REMOTE,
                    created=created_time(m.mountpoint),
                )
            )

    return workspaces


def _subdirectories(root: Path) -> List[Path]:
    try:
        return sorted(p for p in root.iterdir() if p.is_dir())
    except OSError as e:
        logger.debug("Cannot list {}: {}", root, e)
        return []


def _from_filesystem(overlay_root: Path, sshfs_root: Path, verbose: bool) -> List[Workspace]:
    """
    Walk the overlay root one level deep.

    The filesystem kind cannot be verified without the mount table and is
    reported as overlay; stale directories left by a failed teardown are
    indistinguishable from live workspaces here.
    """
    remote_dirs = {p.name for p in _subdirectories(sshfs_root)}

    workspaces = []
    for path in _subdirectories(overlay_root):
        name = _classify(path.name, verbose)
        if name is None:
            continue
        workspaces.append(
            Workspace(
                name=name,
                mount_path=path,
                filesystem=FS_OVERLAY,
                source=SOURCE_REMOTE if path.name in remote_dirs else SOURCE_LOCAL,
                created=created_time(path),
            )
        )

    if verbose:
        for path in _subdirectories(sshfs_root):
            workspaces.append(
                Workspace(
                    name="",
                    mount_path=path,
                    filesystem=FS_SSHFS,
                    source=SOURCE_REMOTE,
                    created=created_time(path),
                )
            )

    return workspaces


def query_workspaces(config: Config, verbose: bool = False) -> List[Workspace]:
    """
    List the workspaces that currently exist.

    Args:
        config: Supplies the overlay and sshfs roots
        verbose: Also return scaffold directories and raw sshfs mounts,
            with an empty name

    Returns:
        Workspaces from the mount table, or from the overlay root
        directory if the mount table cannot be listed
    """
    overlay_root = config.overlay_root
    sshfs_root = config.sshfs_root

    try:
        mounts = list_mounts()
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning("Cannot list mounts ({}), falling back to directory scan", e)
        return _from_filesystem(overlay_root, sshfs_root, verbose)

    return _from_mount_table(mounts, overlay_root, sshfs_root, verbose)


def filter_workspaces(
    workspaces: Iterable[Workspace], name: str, verbose: bool = False
) -> List[Workspace]:
    """
    Select workspaces by name.

    Non-verbose matching is exact on the workspace name. Verbose matching
    is a suffix match on the mount directory, so anonymous entries
    (raw sshfs mounts) can be found too.
    """
    if verbose:
        return [w for w in workspaces if w.mount_path.name.endswith(name)]
    return [w for w in workspaces if w.name == name]
