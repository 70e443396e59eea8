# SPDX-License-Identifier: Apache-2.0
"""Implementation of 'cowspace create' command."""

from cowspace.core.cancel import CancelToken, cancel_on_signals

from . import _load_manager, _print_result


def cmd_create(args) -> int:
    token = CancelToken()
    manager = _load_manager(args, cancel=token)

    with cancel_on_signals(token):
        ws = manager.create(args.repo, name=args.name)

    _print_result({"command": "create", **ws.to_dict()}, args)
    return 0
