# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace delete' command."""

from cowspace.core.cancel import CancelToken, cancel_on_signals

from . import _load_manager, _print_error


def _report(result) -> None:
    for error in result.errors:
        _print_error(f"{result.name}: {error}")
    if result.ok:
        print(f"deleted: {result.name}")


def cmd_delete(args) -> int:
    if not args.name and not args.all:
        _print_error("please specify a workspace name or --all")
        return 1

    token = CancelToken()
    manager = _load_manager(args, cancel=token)

    with cancel_on_signals(token):
        if args.all:
            results = manager.delete_all()
        else:
            results = [manager.delete(args.name)]

    for result in results:
        _report(result)

    # Teardown is best-effort: failures were reported above.
    return 0
