# SPDX-License-Identifier: Apache-2.0
"""Tests for the sshfs remote layer.

The sshfs and fusermount commands are mocked; directories are real.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from cowspace.exceptions import AuthenticationError, RemoteMountError, UnmountError
from cowspace.fs.sshfs import attach_remote, build_sshfs_command, detach_remote


def _completed(returncode=0, stderr=""):
    return MagicMock(returncode=returncode, stdout="", stderr=stderr)


def test_build_command_passes_port_and_options(tmp_path):
    cmd = build_sshfs_command("alice@h:/srv/repo", tmp_path / "m", 2222, ["allow_other", "", "cache=yes"])
    assert cmd[:3] == ["sshfs", "alice@h:/srv/repo", str(tmp_path / "m")]
    assert cmd[3:5] == ["-o", "port=2222"]
    assert cmd[-4:] == ["-o", "allow_other", "-o", "cache=yes"]


@patch("cowspace.fs.sshfs.subprocess.run")
def test_attach_creates_directory(mock_run, tmp_path):
    mock_run.return_value = _completed()
    local = tmp_path / "sshfs" / "ws1"
    attach_remote("alice@h:/srv/repo", local, 22, ["allow_other"], timeout=5)

    assert local.is_dir()
    args, kwargs = mock_run.call_args
    assert args[0][0] == "sshfs"
    assert "port=22" in args[0]
    assert kwargs["timeout"] == 5


@patch("cowspace.fs.sshfs.subprocess.run")
def test_attach_failure_removes_created_directory(mock_run, tmp_path):
    mock_run.return_value = _completed(1, "connection refused")
    local = tmp_path / "ws1"
    with pytest.raises(RemoteMountError, match="connection refused"):
        attach_remote("alice@h:/srv/repo", local, 2222)
    assert not local.exists()


@patch("cowspace.fs.sshfs.subprocess.run")
def test_attach_failure_keeps_existing_directory(mock_run, tmp_path):
    mock_run.return_value = _completed(1, "connection refused")
    local = tmp_path / "ws1"
    local.mkdir()
    with pytest.raises(RemoteMountError):
        attach_remote("alice@h:/srv/repo", local, 2222)
    assert local.is_dir()


@patch("cowspace.fs.sshfs.subprocess.run")
def test_attach_authentication_failure(mock_run, tmp_path):
    mock_run.return_value = _completed(1, "alice@h: Permission denied (publickey).")
    with pytest.raises(AuthenticationError):
        attach_remote("alice@h:/srv/repo", tmp_path / "ws1", 22)


@patch("cowspace.fs.sshfs.subprocess.run", side_effect=subprocess.TimeoutExpired("sshfs", 5))
def test_attach_timeout(mock_run, tmp_path):
    local = tmp_path / "ws1"
    with pytest.raises(RemoteMountError, match="timed out"):
        attach_remote("alice@h:/srv/repo", local, 22, timeout=5)
    assert not local.exists()


@patch("cowspace.fs.sshfs.subprocess.run", side_effect=FileNotFoundError("sshfs"))
def test_attach_missing_binary(mock_run, tmp_path):
    with pytest.raises(RemoteMountError):
        attach_remote("alice@h:/srv/repo", tmp_path / "ws1", 22)


def test_attach_requires_arguments(tmp_path):
    with pytest.raises(RemoteMountError):
        attach_remote("", tmp_path / "ws1", 22)


@patch("cowspace.fs.sshfs.is_mounted", return_value=False)
@patch("cowspace.fs.sshfs.subprocess.run")
def test_detach_missing_directory_is_noop(mock_run, mock_mounted, tmp_path):
    detach_remote(tmp_path / "absent")
    mock_run.assert_not_called()


@patch("cowspace.fs.sshfs.is_mounted", return_value=True)
@patch("cowspace.fs.sshfs.subprocess.run")
def test_detach_unmounts_and_removes(mock_run, mock_mounted, tmp_path):
    mock_run.return_value = _completed()
    local = tmp_path / "ws1"
    local.mkdir()

    detach_remote(local)

    assert mock_run.call_args[0][0] == ["fusermount", "-u", str(local)]
    assert not local.exists()


@patch("cowspace.fs.sshfs.is_mounted", return_value=False)
@patch("cowspace.fs.sshfs.subprocess.run")
def test_detach_unmounted_directory_only_removes(mock_run, mock_mounted, tmp_path):
    local = tmp_path / "ws1"
    local.mkdir()
    detach_remote(local)
    mock_run.assert_not_called()
    assert not local.exists()


@patch("cowspace.fs.sshfs.is_mounted", side_effect=OSError("no /proc"))
@patch("cowspace.fs.sshfs.subprocess.run")
def test_detach_not_mounted_diagnostic_is_not_error(mock_run, mock_mounted, tmp_path):
    mock_run.return_value = _completed(1, "fusermount: entry for /x not found in /etc/mtab")
    local = tmp_path / "ws1"
    local.mkdir()
    detach_remote(local)
    assert not local.exists()


@patch("cowspace.fs.sshfs.is_mounted", return_value=True)
@patch("cowspace.fs.sshfs.subprocess.run")
def test_detach_failure_still_removes_directory(mock_run, mock_mounted, tmp_path):
    mock_run.return_value = _completed(1, "fusermount: failed to unmount: Device or resource busy")
    local = tmp_path / "ws1"
    local.mkdir()

    with pytest.raises(UnmountError, match="busy"):
        detach_remote(local)
    assert not local.exists()
