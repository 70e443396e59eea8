# SPDX-License-Identifier: Apache-2.0
"""Tests for mount table parsing."""

import errno
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cowspace.fs._mount import (
    MountInfo,
    is_mounted,
    is_not_mounted_error,
    list_mounts,
    parse_mount_output,
    parse_mounts,
)

LISTING = """\
proc on /proc type proc (rw,nosuid,nodev,noexec,relatime)
fuse-overlayfs on /mnt/cowspace/overlay/app-Ab3dE9z type fuse.fuse-overlayfs (rw,nosuid,nodev,relatime,user_id=0,group_id=0,default_permissions,allow_other)
alice@build01:/srv/repo on /mnt/cowspace/sshfs/my repo type fuse.sshfs (rw,nosuid,nodev,relatime,user_id=1000,group_id=1000)
overlay on /var/lib/docker/overlay2/abc/merged type overlay (rw,relatime,lowerdir=/l,upperdir=/u,workdir=/w)

garbage line without markers
"""


def test_parse_mount_output():
    mounts = parse_mount_output(LISTING)
    assert len(mounts) == 4
    assert mounts[1].mountpoint == Path("/mnt/cowspace/overlay/app-Ab3dE9z")
    assert mounts[1].fstype == "fuse.fuse-overlayfs"
    assert mounts[1].source == "fuse-overlayfs"


def test_parse_mount_output_mountpoint_with_spaces():
    mounts = parse_mount_output(LISTING)
    sshfs = mounts[2]
    assert sshfs.mountpoint == Path("/mnt/cowspace/sshfs/my repo")
    assert sshfs.source == "alice@build01:/srv/repo"
    assert sshfs.fstype == "fuse.sshfs"


def test_parse_proc_mounts_unescapes(tmp_path):
    proc = tmp_path / "mounts"
    proc.write_text(
        "sshfs /mnt/sshfs/my\\040repo fuse.sshfs rw,nosuid 0 0\n"
        "tmpfs /tmp tmpfs rw 0 0\n"
    )
    mounts = parse_mounts(str(proc))
    assert mounts[0].mountpoint == Path("/mnt/sshfs/my repo")
    assert mounts[1].fstype == "tmpfs"


@patch("cowspace.fs._mount.parse_mounts")
def test_is_mounted(mock_parse):
    mock_parse.return_value = [
        MountInfo(Path("/mnt/overlay/ws1"), "fuse-overlayfs", "fuse.fuse-overlayfs", "rw"),
    ]
    assert is_mounted("/mnt/overlay/ws1")
    assert is_mounted(Path("/mnt/overlay/ws1/"))
    assert not is_mounted("/mnt/overlay/ws2")


@patch("cowspace.fs._mount.subprocess.run")
def test_list_mounts_runs_mount(mock_run):
    mock_run.return_value = MagicMock(stdout=LISTING, returncode=0)
    mounts = list_mounts()
    mock_run.assert_called_once_with(["mount"], capture_output=True, text=True, check=True)
    assert len(mounts) == 4


@patch("cowspace.fs._mount.subprocess.run", side_effect=FileNotFoundError("mount"))
def test_list_mounts_missing_command(mock_run):
    with pytest.raises(OSError):
        list_mounts()


@patch(
    "cowspace.fs._mount.subprocess.run",
    side_effect=subprocess.CalledProcessError(1, ["mount"]),
)
def test_list_mounts_failure(mock_run):
    with pytest.raises(subprocess.CalledProcessError):
        list_mounts()


def test_listing_keeps_raw_options():
    overlay = parse_mount_output(LISTING)[3]
    assert overlay.options == "rw,relatime,lowerdir=/l,upperdir=/u,workdir=/w"


@pytest.mark.parametrize("error,expected", [
    (OSError(errno.EINVAL, "umount2: Invalid argument"), True),
    (OSError("umount -l /x: umount: /x: not mounted."), True),
    (OSError("fusermount -u /x: fusermount: entry for /x not found in /etc/mtab"), True),
    (OSError(errno.EBUSY, "umount2: Device or resource busy"), False),
    (OSError("fusermount -u /x: failed to unmount /x: Device or resource busy"), False),
])
def test_is_not_mounted_error(error, expected):
    assert is_not_mounted_error(error) is expected
