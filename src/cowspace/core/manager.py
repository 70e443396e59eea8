# SPDX-License-Identifier: Apache-2.0
"""WorkspaceManager - create, delete and list copy-on-write workspaces."""

import os
import secrets
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..config import Config
from ..exceptions import (
    ConfigError,
    CowspaceError,
    MountError,
    RemoteMountError,
    WorkspaceError,
    WorkspaceExistsError,
    WorkspaceNotFoundError,
)
from ..fs.overlay import attach_overlay, detach_overlay, is_scaffold_name
from ..fs.sshfs import attach_remote, detach_remote
from ..paths import RepoPath, expand_home, parse_remote, repo_basename
from .cancel import CancelToken
from .discovery import filter_workspaces, query_workspaces
from .workspace import (
    FS_OVERLAY,
    SOURCE_LOCAL,
    SOURCE_REMOTE,
    Workspace,
    created_time,
)

NAME_ALPHABET = string.ascii_letters + string.digits
NAME_SUFFIX_LENGTH = 7
# Prepended to bases that would otherwise read as scaffold directories
GENERATED_PREFIX = "ws-"


def generate_name(repo: str) -> str:
    """
    Derive a workspace name like ``myrepo-a1B2c3D``.

    Leading dots are dropped and a scaffold-looking base such as
    ``work-api`` becomes ``ws-work-api``, so the result is always a
    valid workspace name.
    """
    base = repo_basename(repo).lstrip(".") or "workspace"
    if is_scaffold_name(base):
        base = f"{GENERATED_PREFIX}{base}"
    suffix = "".join(secrets.choice(NAME_ALPHABET) for _ in range(NAME_SUFFIX_LENGTH))
    return f"{base}-{suffix}"


@dataclass
class DeleteResult:
    """Outcome of deleting one workspace; errors were logged, not raised."""

    name: str
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class WorkspaceManager:
    """
    Lifecycle orchestrator for workspaces.

    A workspace is an overlay mount under the overlay root, optionally
    stacked on an sshfs mount of the same name under the sshfs root.

    Example:
        manager = WorkspaceManager(load_config())
        ws = manager.create("user@host:/srv/repo")
        ...
        manager.delete(ws.name)

    Callers must not run create and delete concurrently on the same name.
    """

    def __init__(self, config: Config, cancel: Optional[CancelToken] = None):
        self._config = config.validate()
        self._cancel = cancel or CancelToken()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def _driver(self) -> str:
        return self._config.overlay.driver

    def _check_name(self, name: str) -> str:
        if not name or "/" in name or name.startswith(".") or is_scaffold_name(name):
            raise WorkspaceError(f"invalid workspace name: {name!r}")
        return name

    def overlay_path(self, name: str) -> Path:
        return self._config.overlay_root / self._check_name(name)

    def sshfs_path(self, name: str) -> Path:
        return self._config.sshfs_root / self._check_name(name)

    def _resolve_repo(self, repo: str) -> RepoPath:
        expanded = expand_home(repo)
        if not expanded:
            raise ConfigError(f"cannot expand {repo!r}: home directory unknown")
        return parse_remote(expanded)

    # -- layer composition ---------------------------------------------------

    def _attach_remote_sweep(self, repo: RepoPath, local: Path) -> int:
        """
        Try every configured port in order; the first success wins.

        Partial mounts are detached between attempts.

        Returns:
            The port that mounted
        """
        ports = self._config.sshfs.ports
        if not ports:
            raise ConfigError("no sshfs ports configured")

        last_error: Optional[RemoteMountError] = None
        for port in ports:
            self._cancel.raise_if_cancelled()
            try:
                attach_remote(
                    repo.remote_spec,
                    local,
                    port,
                    self._config.sshfs.options,
                    timeout=self._config.sshfs.timeout,
                )
                return port
            except RemoteMountError as e:
                logger.warning("sshfs attach on port {} failed: {}", port, e)
                last_error = e
                self._rollback_remote(local)

        assert last_error is not None
        raise last_error

    def _rollback_remote(self, local: Path) -> None:
        try:
            detach_remote(local)
        except (MountError, OSError) as e:
            logger.warning("Failed to roll back sshfs mount at {}: {}", local, e)

    def _compose(self, repo: RepoPath, mount_path: Path, sshfs_local: Path) -> str:
        """Attach the optional remote layer, then the overlay on top of it."""
        if repo.is_remote:
            port = self._attach_remote_sweep(repo, sshfs_local)
            logger.debug("Using sshfs port {}", port)
            lower = sshfs_local
        else:
            lower = Path(repo.local_dir)
            if not lower.is_dir():
                raise WorkspaceError(f"repository not found: {lower}")

        try:
            self._cancel.raise_if_cancelled()
            attach_overlay(lower, mount_path, self._driver, self._config.overlay.index)
        except CowspaceError:
            if repo.is_remote:
                self._rollback_remote(sshfs_local)
            raise

        return SOURCE_REMOTE if repo.is_remote else SOURCE_LOCAL

    def _decompose(self, mount_path: Path, sshfs_local: Path) -> List[str]:
        """Detach overlay then sshfs, collecting errors instead of raising."""
        errors: List[str] = []

        try:
            detach_overlay(mount_path, self._driver)
        except (CowspaceError, OSError) as e:
            logger.error("{}", e)
            errors.append(str(e))

        try:
            detach_remote(sshfs_local)
        except (CowspaceError, OSError) as e:
            logger.error("{}", e)
            errors.append(str(e))

        return errors

    # -- workspace verbs -----------------------------------------------------

    def create(self, repo: str, name: Optional[str] = None) -> Workspace:
        """
        Create a workspace for ``repo``.

        Args:
            repo: Local path, ``user@host:/path`` or
                ``user@host:/path:/local/mirror`` (the mirror part is
                ignored; the sshfs layer always lives under the sshfs root)
            name: Workspace name, generated from the repository if None

        Raises:
            WorkspaceExistsError: If the name is taken
            OperationCancelled: If cancelled during the port sweep
            MountError: If a layer could not be attached (nothing is left
                behind)
        """
        name = name or generate_name(repo)
        mount_path = self.overlay_path(name)
        sshfs_local = self.sshfs_path(name)

        if os.path.lexists(mount_path):
            raise WorkspaceExistsError(f"workspace already exists: {name}")

        source = self._compose(self._resolve_repo(repo), mount_path, sshfs_local)
        logger.info("Created workspace {} at {}", name, mount_path)

        return Workspace(
            name=name,
            mount_path=mount_path,
            filesystem=FS_OVERLAY,
            source=source,
            created=created_time(mount_path),
        )

    def delete(self, name: str) -> DeleteResult:
        """
        Delete one workspace, best-effort.

        Deleting a workspace that has no mounts left is a no-op. The
        cancel token is not consulted: once started, both layers are
        detached.
        """
        errors = self._decompose(self.overlay_path(name), self.sshfs_path(name))
        if not errors:
            logger.info("Deleted workspace {}", name)
        return DeleteResult(name, errors)

    def delete_all(self) -> List[DeleteResult]:
        """
        Delete every discovered workspace, continuing past failures.

        Raises:
            OperationCancelled: If cancelled; ``completed`` lists the
                workspaces already processed, the rest are untouched
        """
        results: List[DeleteResult] = []
        for ws in query_workspaces(self._config):
            self._cancel.raise_if_cancelled(completed=[r.name for r in results])
            try:
                results.append(self.delete(ws.name))
            except (WorkspaceError, OSError) as e:
                logger.error("{}", e)
                results.append(DeleteResult(ws.name, [str(e)]))
        return results

    def list(self, name: Optional[str] = None, verbose: bool = False) -> List[Workspace]:
        """
        List workspaces, optionally filtered by name.

        With ``verbose`` the filter is a suffix match on the mount path
        and raw sshfs mounts are included.
        """
        workspaces = query_workspaces(self._config, verbose=verbose)
        if name:
            return filter_workspaces(workspaces, name, verbose)
        return workspaces

    def get(self, name: str) -> Workspace:
        """
        Look up a workspace by exact name.

        Raises:
            WorkspaceNotFoundError: If no such workspace exists
        """
        for ws in self.list(name):
            return ws
        raise WorkspaceNotFoundError(f"workspace not found: {name}")

    # -- explicit paths ------------------------------------------------------

    def _mirror_path(self, repo: RepoPath, mount_path: Path) -> Path:
        if repo.local_dir:
            return Path(expand_home(repo.local_dir) or repo.local_dir)
        return self.sshfs_path(mount_path.name)

    def mount(self, repo: str, mount_path: str) -> Workspace:
        """
        Mount ``repo`` at an explicit path instead of under the overlay root.

        A four-part ``user@host:/remote:/local`` spec chooses the sshfs
        mirror directory.

        Raises:
            WorkspaceExistsError: If ``mount_path`` is a non-empty directory
        """
        target = Path(os.path.abspath(expand_home(mount_path) or mount_path))
        if target.is_dir() and any(target.iterdir()):
            raise WorkspaceExistsError(f"mount path is not empty: {target}")

        resolved = self._resolve_repo(repo)
        mirror = self._mirror_path(resolved, target)
        source = self._compose(resolved, target, mirror)

        return Workspace(
            name=target.name,
            mount_path=target,
            filesystem=FS_OVERLAY,
            source=source,
            created=created_time(target),
        )

    def unmount(self, repo: str, mount_path: str) -> DeleteResult:
        """Tear down a mount made by mount(), best-effort."""
        target = Path(os.path.abspath(expand_home(mount_path) or mount_path))
        resolved = self._resolve_repo(repo)

        errors: List[str] = []
        try:
            detach_overlay(target, self._driver)
        except (CowspaceError, OSError) as e:
            logger.error("{}", e)
            errors.append(str(e))

        if resolved.is_remote:
            try:
                detach_remote(self._mirror_path(resolved, target))
            except (CowspaceError, OSError) as e:
                logger.error("{}", e)
                errors.append(str(e))

        return DeleteResult(target.name, errors)

    def __repr__(self) -> str:
        return (
            f"WorkspaceManager(overlay_root={str(self._config.overlay_root)!r}, "
            f"sshfs_root={str(self._config.sshfs_root)!r})"
        )
