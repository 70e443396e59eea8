# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace mount' and 'cowspace unmount' commands."""

from cowspace.core.cancel import CancelToken, cancel_on_signals

from . import _load_manager, _print_error, _print_result


def cmd_mount(args) -> int:
    token = CancelToken()
    manager = _load_manager(args, cancel=token)

    with cancel_on_signals(token):
        ws = manager.mount(args.repository, args.path)

    _print_result({"command": "mount", **ws.to_dict()}, args)
    return 0


def cmd_unmount(args) -> int:
    manager = _load_manager(args)
    result = manager.unmount(args.repository, args.path)

    for error in result.errors:
        _print_error(error)
    if result.ok:
        print(f"unmounted: {args.path}")
        return 0
    return 1
