# SPDX-License-Identifier: Apache-2.0
"""Path resolution for repository arguments.

A repository argument is one of:

    /local/repo                              local tree, no remote layer
    user@host:/remote/repo                   remote tree, mirrored by sshfs
    user@host:/remote/repo:/local/mirror     remote tree with explicit mirror
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path

_REMOTE_RE = re.compile(r"^([^@]+)@([^:]+):([^:]+)$")
_MIRROR_RE = re.compile(r"^([^@]+)@([^:]+):([^:]+):([^:]+)$")


@dataclass(frozen=True)
class RepoPath:
    """A repository argument split into its remote and local parts."""

    user: str = ""
    host: str = ""
    remote_dir: str = ""
    local_dir: str = ""

    @property
    def is_remote(self) -> bool:
        return bool(self.user and self.host)

    @property
    def remote_spec(self) -> str:
        """sshfs source argument (``user@host:/remote/repo``)."""
        if not self.is_remote:
            return ""
        return f"{self.user}@{self.host}:{self.remote_dir}"


def expand_home(path: str) -> str:
    """Replace a leading ``~`` or ``~/`` with the invoking user's home directory.

    Other users' homes (``~bob``) are not expanded.

    Returns an empty string if the home directory cannot be determined.
    """
    if path != "~" and not path.startswith("~/"):
        return path
    try:
        home = str(Path.home())
    except (RuntimeError, KeyError):
        return ""
    rest = path[1:].lstrip("/")
    return os.path.join(home, rest) if rest else home


def parse_remote(spec: str) -> RepoPath:
    """Split a repository argument into a RepoPath.

    Non-matching input is a local repository: the whole string becomes
    ``local_dir`` and the remote fields stay empty.
    """
    match = _MIRROR_RE.match(spec)
    if match:
        user, host, remote_dir, local_dir = match.groups()
        return RepoPath(user, host, remote_dir, local_dir)

    match = _REMOTE_RE.match(spec)
    if match:
        user, host, remote_dir = match.groups()
        return RepoPath(user, host, remote_dir)

    return RepoPath(local_dir=spec)


def repo_basename(repo: str) -> str:
    """Last path segment of a repository path, remote spec or URL.

    A trailing ``.git`` is dropped, so ``https://host/org/myrepo.git``
    gives ``myrepo``.
    """
    name = repo.rstrip("/")
    if name.endswith(".git"):
        name = name[: -len(".git")]
    name = name.rsplit("/", 1)[-1]
    # user@host:repo without a slash in the remote part
    name = name.rsplit(":", 1)[-1]
    if name in ("", ".", ".."):
        return os.path.basename(os.path.abspath(repo))
    return name
