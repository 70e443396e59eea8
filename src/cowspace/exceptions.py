# SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for workspace operations."""

from typing import List, Optional


class CowspaceError(Exception):
    """Base exception for all cowspace errors."""

    pass


class ConfigError(CowspaceError):
    """Configuration is missing or invalid."""

    pass


class WorkspaceError(CowspaceError):
    """Workspace operation failed."""

    pass


class WorkspaceExistsError(WorkspaceError):
    """A workspace with the requested name is already present."""

    pass


class WorkspaceNotFoundError(WorkspaceError):
    """Workspace does not exist."""

    pass


class MountError(CowspaceError):
    """Mount or unmount operation failed."""

    pass


class RemoteMountError(MountError):
    """sshfs attach failed."""

    pass


class AuthenticationError(RemoteMountError):
    """sshfs attach was rejected by the remote host's authentication."""

    pass


class OverlayMountError(MountError):
    """Union mount failed."""

    pass


class PermissionCheckError(OverlayMountError):
    """Upper directory is not writable (pre-flight write test failed)."""

    pass


class UnmountError(MountError):
    """Every unmount attempt failed.

    Attributes:
        attempts: One diagnostic per attempted strategy, in order.
    """

    def __init__(self, message: str, attempts: Optional[List[str]] = None):
        super().__init__(message)
        self.attempts = list(attempts or [])


class CleanupError(CowspaceError):
    """Scaffold directories could not be removed."""

    pass


class OperationCancelled(CowspaceError):
    """Operation was interrupted by the user.

    Attributes:
        completed: Workspaces fully processed before cancellation.
    """

    def __init__(self, message: str = "operation cancelled",
                 completed: Optional[List[str]] = None):
        super().__init__(message)
        self.completed = list(completed or [])
