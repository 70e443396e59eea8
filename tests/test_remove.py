# SPDX-License-Identifier: Apache-2.0
"""Tests for overlay-aware directory removal."""

import errno
from unittest.mock import MagicMock, patch

import pytest

from cowspace.exceptions import CleanupError
from cowspace.fs._remove import overlay_clean, remove_tree


def test_remove_tree_missing_is_noop(tmp_path):
    remove_tree(tmp_path / "absent")


def test_remove_tree(tmp_path):
    (tmp_path / "d" / "e").mkdir(parents=True)
    remove_tree(tmp_path / "d")
    assert not (tmp_path / "d").exists()


@patch("cowspace.fs._remove.subprocess.run")
@patch("cowspace.fs._remove.shutil.rmtree", side_effect=OSError("Directory not empty"))
def test_remove_tree_falls_back_to_rm(mock_rmtree, mock_run, tmp_path):
    target = tmp_path / "d"
    target.mkdir()

    def fake_rm(cmd, **kwargs):
        target.rmdir()
        return MagicMock(returncode=0)

    mock_run.side_effect = fake_rm
    remove_tree(target)
    assert mock_run.call_args[0][0] == ["rm", "-rf", str(target)]


@patch("cowspace.fs._remove.subprocess.run", return_value=MagicMock(returncode=1))
@patch("cowspace.fs._remove.shutil.rmtree", side_effect=OSError("Permission denied"))
def test_remove_tree_reports_failure(mock_rmtree, mock_run, tmp_path):
    (tmp_path / "d").mkdir()
    with pytest.raises(CleanupError, match="Permission denied"):
        remove_tree(tmp_path / "d")


def test_overlay_clean(tmp_path):
    (tmp_path / "d" / "e").mkdir(parents=True)
    assert overlay_clean(tmp_path / "d")
    assert overlay_clean(tmp_path / "d")


@patch("cowspace.fs._remove.subprocess.run", return_value=MagicMock(returncode=1))
@patch("cowspace.fs._remove.shutil.rmtree", side_effect=OSError("Directory not empty"))
def test_overlay_clean_gives_up_without_raising(mock_rmtree, mock_run, tmp_path):
    (tmp_path / "d" / "e").mkdir(parents=True)
    assert overlay_clean(tmp_path / "d") is False
    commands = [c[0][0] for c in mock_run.call_args_list]
    assert ["find", str(tmp_path / "d"), "-depth", "-delete"] in commands


def test_remove_tree_dead_mount_raises_cleanup_error(tmp_path):
    target = tmp_path / "ws2"
    dead = OSError(errno.ENOTCONN, "Transport endpoint is not connected")

    with patch("cowspace.fs._remove.os.lstat", side_effect=dead), \
            patch("cowspace.fs._remove.shutil.rmtree", side_effect=dead), \
            patch("cowspace.fs._remove.subprocess.run", return_value=MagicMock(returncode=1)):
        with pytest.raises(CleanupError, match="not connected"):
            remove_tree(target)


@patch("cowspace.fs._remove.os.lstat", side_effect=FileNotFoundError())
@patch("cowspace.fs._remove.shutil.rmtree")
def test_remove_tree_missing_skips_rmtree(mock_rmtree, mock_lstat, tmp_path):
    remove_tree(tmp_path / "gone")
    mock_rmtree.assert_not_called()
