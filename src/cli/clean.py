# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace clean' command."""

import os

from cowspace.fs._remove import overlay_clean

from . import _print_error

SYSTEM_PATHS = (
    "/", "/usr", "/etc", "/var", "/sys", "/proc", "/dev",
    "/boot", "/lib", "/lib64", "/sbin", "/bin",
)


def is_system_path(path: str) -> bool:
    """True for system directories and anything beneath them."""
    path = os.path.normpath(path)
    for sys_path in SYSTEM_PATHS:
        if path == sys_path:
            return True
        if sys_path != "/" and path.startswith(sys_path + "/"):
            return True
    return False


def cmd_clean(args) -> int:
    for target in args.paths:
        if os.path.isabs(target) and not args.force:
            _print_error(f"absolute paths not allowed without --force: {target}")
            return 1
        resolved = os.path.abspath(target)
        if is_system_path(resolved):
            _print_error(f"cannot clean system directory: {resolved}")
            return 1
        if not os.path.lexists(target):
            print(f"path does not exist: {target}")
            continue

        print(f"cleaning: {target}")
        if not overlay_clean(target):
            _print_error(f"failed to clean {target}")
            return 1
        print(f"cleaned: {target}")

    return 0
