# SPDX-License-Identifier: Apache-2.0
"""Tests for workspace discovery from the mount table and directory tree."""

import os
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from cowspace.config import Config, OverlayConfig, SshfsConfig
from cowspace.core.discovery import filter_workspaces, query_workspaces
from cowspace.core.workspace import Workspace
from cowspace.fs._mount import MountInfo


@pytest.fixture
def config(tmp_path):
    return Config(
        overlay=OverlayConfig(mount=str(tmp_path / "overlay")),
        sshfs=SshfsConfig(mount=str(tmp_path / "sshfs")),
    )


def _mounts(root: Path):
    ov = root / "overlay"
    ss = root / "sshfs"
    return [
        MountInfo(Path("/proc"), "proc", "proc", "rw"),
        MountInfo(ov / "ws1", "fuse-overlayfs", "fuse.fuse-overlayfs", "rw"),
        MountInfo(ov / "ws2", "fuse-overlayfs", "fuse.fuse-overlayfs", "rw"),
        MountInfo(ov / "nested" / "deep", "overlay", "overlay", "rw"),
        MountInfo(ss / "ws2", "alice@build01:/srv/repo", "fuse.sshfs", "rw"),
        MountInfo(ss / "raw", "bob@build02:/srv/other", "fuse.sshfs", "rw"),
    ]


class TestMountTable:
    @patch("cowspace.core.discovery.list_mounts")
    def test_direct_children_only(self, mock_list, config, tmp_path):
        mock_list.return_value = _mounts(tmp_path)
        workspaces = query_workspaces(config)

        assert [w.name for w in workspaces] == ["ws1", "ws2"]
        ws1, ws2 = workspaces
        assert ws1.mount_path == tmp_path / "overlay" / "ws1"
        assert ws1.filesystem == "fuse.fuse-overlayfs"
        assert ws1.source == "local"
        assert ws2.source == "remote"

    @patch("cowspace.core.discovery.list_mounts")
    def test_verbose_includes_raw_sshfs(self, mock_list, config, tmp_path):
        mock_list.return_value = _mounts(tmp_path)
        workspaces = query_workspaces(config, verbose=True)

        anonymous = [w for w in workspaces if not w.name]
        assert sorted(w.mount_path.name for w in anonymous) == ["raw", "ws2"]
        assert all(w.filesystem == "fuse.sshfs" for w in anonymous)
        assert all(w.source == "remote" for w in anonymous)

    @patch("cowspace.core.discovery.list_mounts", return_value=[])
    def test_no_mounts(self, mock_list, config):
        assert query_workspaces(config) == []


class TestDirectoryFallback:
    @patch("cowspace.core.discovery.list_mounts")
    def test_scaffold_dirs_are_hidden(self, mock_list, config, tmp_path):
        mock_list.side_effect = subprocess.CalledProcessError(1, ["mount"])
        ov = tmp_path / "overlay"
        for d in ("ws1", "upper-ws1", "work-ws1", "cow-old"):
            (ov / d).mkdir(parents=True)
        (tmp_path / "sshfs" / "ws1").mkdir(parents=True)

        workspaces = query_workspaces(config)

        assert len(workspaces) == 1
        ws = workspaces[0]
        assert ws.name == "ws1"
        assert ws.filesystem == "overlay"
        assert ws.source == "remote"
        assert ws.created != "N/A"

    @patch("cowspace.core.discovery.list_mounts", side_effect=FileNotFoundError("mount"))
    def test_verbose_shows_scaffold_and_sshfs_dirs(self, mock_list, config, tmp_path):
        for d in ("ws1", "upper-ws1", "work-ws1"):
            (tmp_path / "overlay" / d).mkdir(parents=True)
        (tmp_path / "sshfs" / "raw").mkdir(parents=True)

        workspaces = query_workspaces(config, verbose=True)

        assert [w.name for w in workspaces if w.name] == ["ws1"]
        anonymous = sorted(w.mount_path.name for w in workspaces if not w.name)
        assert anonymous == ["raw", "upper-ws1", "work-ws1"]

    @patch("cowspace.core.discovery.list_mounts", side_effect=OSError("no mount"))
    def test_missing_roots(self, mock_list, config):
        assert query_workspaces(config) == []


class TestFilter:
    def _workspaces(self):
        return [
            Workspace("ws1", Path("/mnt/ov/ws1")),
            Workspace("myws1", Path("/mnt/ov/myws1")),
            Workspace("", Path("/mnt/ss/other-ws1"), "fuse.sshfs", "remote"),
        ]

    def test_exact_match(self):
        assert [w.name for w in filter_workspaces(self._workspaces(), "ws1")] == ["ws1"]

    def test_verbose_suffix_match(self):
        matched = filter_workspaces(self._workspaces(), "ws1", verbose=True)
        assert [w.mount_path.name for w in matched] == ["ws1", "myws1", "other-ws1"]


@patch("cowspace.core.discovery.list_mounts")
def test_symlinked_overlay_root(mock_list, tmp_path):
    real = tmp_path / "real"
    (real / "overlay").mkdir(parents=True)
    (tmp_path / "link").symlink_to(real)
    config = Config(
        overlay=OverlayConfig(mount=str(tmp_path / "link" / "overlay")),
        sshfs=SshfsConfig(mount=str(tmp_path / "link" / "sshfs")),
    )
    canonical = Path(os.path.realpath(real))
    mock_list.return_value = [
        MountInfo(canonical / "overlay" / "ws1", "fuse-overlayfs", "fuse.fuse-overlayfs", "rw"),
        MountInfo(canonical / "sshfs" / "ws1", "alice@h:/srv/repo", "fuse.sshfs", "rw"),
    ]

    workspaces = query_workspaces(config)

    assert [w.name for w in workspaces] == ["ws1"]
    assert workspaces[0].mount_path == tmp_path / "link" / "overlay" / "ws1"
    assert workspaces[0].source == "remote"
