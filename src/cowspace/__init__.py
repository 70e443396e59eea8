# SPDX-License-Identifier: Apache-2.0
"""
cowspace - ephemeral copy-on-write workspaces for repositories.

A workspace is an overlay mount on top of a repository tree. The tree is
either local or attached from a remote host over sshfs. The mount table
and the directory tree are the only record of which workspaces exist.

Layers are loaded lazily, so importing exceptions does not pull in the
ctypes mount bindings:

    from cowspace import WorkspaceManager, load_config

    manager = WorkspaceManager(load_config())
    ws = manager.create("user@host:/srv/repo")
    subprocess.run(["make"], cwd=ws.mount_path)
    manager.delete(ws.name)
"""

# Exceptions are lightweight and always available.
from .exceptions import (
    CowspaceError,
    ConfigError,
    WorkspaceError,
    WorkspaceExistsError,
    WorkspaceNotFoundError,
    MountError,
    RemoteMountError,
    AuthenticationError,
    OverlayMountError,
    PermissionCheckError,
    UnmountError,
    CleanupError,
    OperationCancelled,
)

__all__ = [
    # Core
    "WorkspaceManager",
    "Workspace",
    "DeleteResult",
    "CancelToken",
    "cancel_on_signals",
    "generate_name",
    "query_workspaces",
    # Config
    "Config",
    "load_config",
    # Exceptions
    "CowspaceError",
    "ConfigError",
    "WorkspaceError",
    "WorkspaceExistsError",
    "WorkspaceNotFoundError",
    "MountError",
    "RemoteMountError",
    "AuthenticationError",
    "OverlayMountError",
    "PermissionCheckError",
    "UnmountError",
    "CleanupError",
    "OperationCancelled",
]

__version__ = "0.1.0"

# Lazy imports: each layer loads only when first accessed.
_LAZY_IMPORTS = {
    "WorkspaceManager": ".core.manager",
    "DeleteResult": ".core.manager",
    "generate_name": ".core.manager",
    "Workspace": ".core.workspace",
    "CancelToken": ".core.cancel",
    "cancel_on_signals": ".core.cancel",
    "query_workspaces": ".core.discovery",
    "Config": ".config",
    "load_config": ".config",
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        import importlib
        module = importlib.import_module(_LAZY_IMPORTS[name], __name__)
        value = getattr(module, name)
        # Cache on the module so __getattr__ isn't called again.
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
