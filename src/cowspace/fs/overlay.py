# SPDX-License-Identifier: Apache-2.0
"""Overlay (union) layer.

Every overlay mount ``<root>/<name>`` owns two sibling directories that
are derived from its path alone:

    <root>/<name>          merged, writable view
    <root>/upper-<name>    writable delta
    <root>/work-<name>     overlay scratch space

Nothing else records that a workspace exists, so attach and detach only
ever need the mount path.

Two drivers are supported: the ``fuse-overlayfs`` helper (unprivileged)
and the in-kernel ``overlay`` filesystem via mount(2).
"""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..exceptions import (
    CleanupError,
    OverlayMountError,
    PermissionCheckError,
    UnmountError,
)
from . import _syscalls
from ._mount import is_mounted, is_not_mounted_error
from ._remove import remove_tree

UPPER_PREFIX = "upper-"
WORK_PREFIX = "work-"
# Upper directories were called cow-<name> by early releases
LEGACY_UPPER_PREFIX = "cow-"
SCAFFOLD_PREFIXES = (UPPER_PREFIX, WORK_PREFIX, LEGACY_UPPER_PREFIX)

WRITE_TEST_FILE = ".write_test"

DRIVER_FUSE = "fuse-overlayfs"
DRIVER_KERNEL = "kernel"


@dataclass(frozen=True)
class Scaffold:
    """The three directories backing one overlay mount."""

    mount: Path
    upper: Path
    work: Path

    @property
    def dirs(self) -> Tuple[Path, Path, Path]:
        return (self.mount, self.upper, self.work)

    @property
    def legacy_upper(self) -> Path:
        return self.mount.parent / f"{LEGACY_UPPER_PREFIX}{self.mount.name}"


def is_scaffold_name(name: str) -> bool:
    """True for upper/work directory names, which are not workspaces."""
    return name.startswith(SCAFFOLD_PREFIXES)


def scaffold_paths(mount_dir: Union[str, Path]) -> Scaffold:
    """Derive the upper and work directories for ``mount_dir``."""
    mount = Path(os.path.normpath(str(mount_dir)))
    return Scaffold(
        mount=mount,
        upper=mount.parent / f"{UPPER_PREFIX}{mount.name}",
        work=mount.parent / f"{WORK_PREFIX}{mount.name}",
    )


def overlay_options(
    lower: Path, upper: Path, work: Path, index: Optional[str] = None
) -> str:
    opts = f"lowerdir={lower},upperdir={upper},workdir={work}"
    if index:
        opts += f",index={index}"
    return opts


def check_writable(upper: Path) -> None:
    """
    Write and delete a sentinel file in ``upper``.

    Raises:
        PermissionCheckError: If the directory is not writable
    """
    sentinel = upper / WRITE_TEST_FILE
    try:
        sentinel.write_text("test")
        sentinel.unlink()
    except OSError as e:
        raise PermissionCheckError(
            f"failed to write test file to upper directory {upper} - check permissions: {e}"
        ) from e


def _run_checked(cmd: List[str]) -> None:
    """Run ``cmd``, raising OSError with its diagnostics on failure."""
    logger.debug("Running {}", " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        diagnostic = (result.stderr or result.stdout or "").strip()
        raise OSError(
            f"{' '.join(cmd)}: {diagnostic or f'exit status {result.returncode}'}"
        )


def _mount_fuse(lower: Path, scaffold: Scaffold, index: Optional[str]) -> None:
    # fuse-overlayfs has no index feature
    opts = overlay_options(lower, scaffold.upper, scaffold.work)
    _run_checked([DRIVER_FUSE, "-o", opts, str(scaffold.mount)])


def _mount_kernel(lower: Path, scaffold: Scaffold, index: Optional[str]) -> None:
    opts = overlay_options(lower, scaffold.upper, scaffold.work, index)
    logger.debug("mount(overlay, {}, {})", scaffold.mount, opts)
    _syscalls.mount("overlay", str(scaffold.mount), "overlay", 0, opts)


_MOUNTERS: Dict[str, Callable[[Path, Scaffold, Optional[str]], None]] = {
    DRIVER_FUSE: _mount_fuse,
    DRIVER_KERNEL: _mount_kernel,
}


@dataclass(frozen=True)
class UnmountStrategy:
    """One rung of the unmount escalation ladder."""

    name: str
    run: Callable[[Path], None]


def _command_strategy(name: str, argv: Sequence[str]) -> UnmountStrategy:
    return UnmountStrategy(name, lambda mount: _run_checked([*argv, str(mount)]))


def _syscall_strategy(name: str, flags: int) -> UnmountStrategy:
    return UnmountStrategy(name, lambda mount: _syscalls.umount(str(mount), flags))


UNMOUNT_STRATEGIES: Dict[str, Tuple[UnmountStrategy, ...]] = {
    DRIVER_FUSE: (
        _command_strategy("normal", ["fusermount", "-u"]),
        _command_strategy("forced", ["fusermount", "-uz"]),
        _command_strategy("lazy", ["umount", "-l"]),
    ),
    DRIVER_KERNEL: (
        _syscall_strategy("normal", 0),
        _syscall_strategy("forced", _syscalls.MNT_FORCE),
        _syscall_strategy("lazy", _syscalls.MNT_DETACH),
    ),
}


def unmount_escalating(mount: Path, strategies: Sequence[UnmountStrategy]) -> str:
    """
    Try each strategy in order, stopping at the first success.

    A "not mounted" failure counts as success, so unmounting a stale
    directory is a no-op.

    Returns:
        Name of the strategy that succeeded

    Raises:
        UnmountError: Naming every failed attempt
    """
    attempts: List[str] = []
    for strategy in strategies:
        try:
            strategy.run(mount)
        except OSError as e:
            if is_not_mounted_error(e):
                logger.debug("Nothing mounted at {}: {}", mount, e)
                return strategy.name
            logger.debug("{} unmount of {} failed: {}", strategy.name, mount, e)
            attempts.append(f"{strategy.name}: {e}")
            continue
        return strategy.name

    raise UnmountError(
        f"all unmount attempts failed for {mount}: {'; '.join(attempts)}", attempts
    )


def _driver(driver: str) -> str:
    if driver not in _MOUNTERS:
        raise OverlayMountError(f"unknown overlay driver {driver!r}")
    return driver


def _discard_scaffold(scaffold: Scaffold) -> None:
    for directory in scaffold.dirs:
        try:
            remove_tree(directory)
        except CleanupError as e:
            logger.warning("Failed to clean up directory {}: {}", directory, e)


def attach_overlay(
    lower_dir: Union[str, Path],
    mount_dir: Union[str, Path],
    driver: str = DRIVER_FUSE,
    index: Optional[str] = "off",
) -> Scaffold:
    """
    Create the scaffold and mount an overlay of ``lower_dir`` at ``mount_dir``.

    The upper directory is write-tested before mounting. On any failure
    the three scaffold directories are removed again.

    Raises:
        PermissionCheckError: If the upper directory is not writable
        OverlayMountError: If the scaffold or the mount failed
    """
    if not lower_dir or not mount_dir:
        raise OverlayMountError("lower and mount directories are required")
    mounter = _MOUNTERS[_driver(driver)]

    lower = Path(os.path.normpath(str(lower_dir)))
    scaffold = scaffold_paths(mount_dir)

    try:
        for directory in scaffold.dirs:
            directory.mkdir(parents=True, exist_ok=True)
        check_writable(scaffold.upper)
        mounter(lower, scaffold, index)
    except PermissionCheckError:
        _discard_scaffold(scaffold)
        raise
    except OSError as e:
        _discard_scaffold(scaffold)
        raise OverlayMountError(
            f"failed to mount overlay at {scaffold.mount} with {driver}: {e}"
        ) from e

    logger.info("Mounted overlay of {} at {}", lower, scaffold.mount)
    return scaffold


def detach_overlay(mount_dir: Union[str, Path], driver: str = DRIVER_FUSE) -> None:
    """
    Unmount the overlay at ``mount_dir`` and remove its scaffold.

    Unmounting escalates normal -> forced -> lazy. Scaffold removal,
    including a legacy ``cow-<name>`` upper directory, is attempted
    whatever the unmount outcome.

    Raises:
        UnmountError: If every unmount attempt failed
        CleanupError: If a scaffold directory could not be removed
    """
    strategies = UNMOUNT_STRATEGIES[_driver(driver)]
    scaffold = scaffold_paths(mount_dir)

    try:
        mounted = is_mounted(scaffold.mount)
    except OSError as e:
        logger.debug("Cannot read mount table ({}), unmounting {} anyway", e, scaffold.mount)
        mounted = os.path.lexists(scaffold.mount)

    error: Optional[UnmountError] = None
    if not mounted:
        logger.debug("No overlay mounted at {}", scaffold.mount)
    else:
        try:
            used = unmount_escalating(scaffold.mount, strategies)
            logger.info("Unmounted overlay at {} ({})", scaffold.mount, used)
        except UnmountError as e:
            error = e

    failures: List[str] = []
    for directory in (scaffold.mount, scaffold.work, scaffold.upper, scaffold.legacy_upper):
        try:
            remove_tree(directory)
        except CleanupError as e:
            logger.warning("{}", e)
            failures.append(str(e))

    if error is not None:
        raise error
    if failures:
        raise CleanupError(
            f"cleanup errors occurred for workspace {scaffold.mount.name}: {'; '.join(failures)}"
        )
