# SPDX-License-Identifier: Apache-2.0
"""sshfs remote layer.

Attaches a remote repository tree at a local directory so the overlay
layer can use it as its lower directory. One call mounts exactly one
port; port fallback is the caller's job.
"""

import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from loguru import logger

from ..exceptions import AuthenticationError, RemoteMountError, UnmountError
from ._mount import NOT_MOUNTED_MARKERS, is_mounted

SSHFS = "sshfs"
FUSERMOUNT = "fusermount"

# Substrings of ssh diagnostics that mean the key/password was rejected
AUTH_FAILURE_MARKERS = ("Permission denied", "password")


def _ownership_option() -> str:
    if os.getuid() == 0:
        return "umask=022"
    return f"uid={os.getuid()},gid={os.getgid()},umask=022"


def build_sshfs_command(
    remote_spec: str, local_dir: Path, port: int, options: Sequence[str] = ()
) -> List[str]:
    """Assemble the sshfs argv for one attach attempt."""
    cmd = [SSHFS, remote_spec, os.path.normpath(str(local_dir))]
    cmd += ["-o", f"port={port}"]
    cmd += ["-o", _ownership_option()]
    for opt in options:
        if opt:
            cmd += ["-o", opt]
    return cmd


def _discard_mountpoint(local: Path, created: bool) -> None:
    if not created:
        return
    try:
        local.rmdir()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to clean up mount directory {}: {}", local, e)


def attach_remote(
    remote_spec: str,
    local_dir: Union[str, Path],
    port: int,
    options: Sequence[str] = (),
    timeout: Optional[float] = 30.0,
) -> None:
    """
    Mount ``remote_spec`` at ``local_dir`` over sshfs on ``port``.

    Args:
        remote_spec: ``user@host:/remote/path``
        local_dir: Local mount point, created if absent
        port: SSH port for this attempt
        options: sshfs ``-o`` option strings, passed through verbatim
        timeout: Deadline in seconds for the sshfs command

    Raises:
        AuthenticationError: If the remote host rejected the credentials
        RemoteMountError: If the mount failed for any other reason
    """
    if not remote_spec or not local_dir:
        raise RemoteMountError("remote spec and local directory are required")

    local = Path(local_dir)
    created = not os.path.lexists(local)
    try:
        local.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RemoteMountError(f"failed to create mount directory {local}: {e}") from e

    cmd = build_sshfs_command(remote_spec, local, port, options)
    logger.debug("Running {}", " ".join(cmd))

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        _discard_mountpoint(local, created)
        raise RemoteMountError(
            f"sshfs {remote_spec} (port {port}) timed out after {timeout:g}s"
        ) from e
    except OSError as e:
        _discard_mountpoint(local, created)
        raise RemoteMountError(f"failed to run {SSHFS}: {e}") from e

    if result.returncode != 0:
        _discard_mountpoint(local, created)
        diagnostic = (result.stderr or result.stdout or "").strip()
        if any(marker in diagnostic for marker in AUTH_FAILURE_MARKERS):
            raise AuthenticationError(
                f"failed to mount sshfs {remote_spec} (port {port}) - ensure ssh key "
                f"authentication is set up for user {os.environ.get('USER', '')}: {diagnostic}"
            )
        raise RemoteMountError(
            f"failed to mount sshfs {remote_spec} (port {port}): "
            f"{diagnostic or f'exit status {result.returncode}'}"
        )

    logger.info("Mounted sshfs {} at {} (port {})", remote_spec, local, port)


def _fusermount(local: Path) -> None:
    cmd = [FUSERMOUNT, "-u", os.path.normpath(str(local))]
    logger.debug("Running {}", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise UnmountError(f"failed to run {FUSERMOUNT}: {e}", [str(e)]) from e

    if result.returncode == 0:
        logger.info("Unmounted sshfs at {}", local)
        return

    diagnostic = (result.stderr or result.stdout or "").strip()
    if any(marker in diagnostic for marker in NOT_MOUNTED_MARKERS):
        logger.debug("Nothing mounted at {}: {}", local, diagnostic)
        return
    raise UnmountError(
        f"failed to unmount sshfs at {local}: "
        f"{diagnostic or f'exit status {result.returncode}'}",
        [diagnostic],
    )


def detach_remote(local_dir: Union[str, Path]) -> None:
    """
    Unmount the sshfs layer at ``local_dir`` and remove the mount point.

    A missing mount point is a no-op. The directory is removed with
    rmdir whether or not the unmount succeeded, so a mount that is still
    attached is never traversed.

    Raises:
        UnmountError: If fusermount failed for a reason other than
            "nothing mounted" (raised after the directory cleanup)
    """
    local = Path(local_dir)

    try:
        mounted: Optional[bool] = is_mounted(local)
    except OSError as e:
        logger.debug("Cannot read mount table ({}), unmounting {} anyway", e, local)
        mounted = None

    if not mounted and not os.path.lexists(local):
        return

    error: Optional[UnmountError] = None
    if mounted is not False:
        try:
            _fusermount(local)
        except UnmountError as e:
            error = e

    try:
        local.rmdir()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove sshfs mount directory {}: {}", local, e)

    if error is not None:
        raise error
