# SPDX-License-Identifier: Apache-2.0
"""YAML configuration for mount roots and sshfs settings.

Example ``~/.cowspace/config.yaml``:

    overlay:
      mount: "/mnt/cowspace/overlay"
      driver: "fuse-overlayfs"
    sshfs:
      mount: "/mnt/cowspace/sshfs"
      options:
        - "allow_other,default_permissions,follow_symlinks"
      ports: [2222, 22]
      timeout: 30
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from .exceptions import ConfigError
from .paths import expand_home

DEFAULT_CONFIG_PATH = "~/.cowspace/config.yaml"
CONFIG_ENV = "COWSPACE_CONFIG"

OVERLAY_DRIVERS = ("fuse-overlayfs", "kernel")

DEFAULT_SSHFS_OPTIONS = [
    "allow_other,default_permissions,follow_symlinks",
    "cache=yes,kernel_cache,compression=no,cache_timeout=115200",
    "Cipher=aes128-ctr,StrictHostKeyChecking=no,UserKnownHostsFile=/dev/null",
    "ConnectTimeout=10,ServerAliveInterval=15,ServerAliveCountMax=3",
]


@dataclass
class OverlayConfig:
    mount: str = "/mnt/cowspace/overlay"
    driver: str = "fuse-overlayfs"
    index: str = "off"


@dataclass
class SshfsConfig:
    mount: str = "/mnt/cowspace/sshfs"
    options: List[str] = field(default_factory=lambda: list(DEFAULT_SSHFS_OPTIONS))
    ports: List[int] = field(default_factory=lambda: [22])
    timeout: float = 30.0


@dataclass
class Config:
    """Read-only settings consumed by the workspace manager."""

    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    sshfs: SshfsConfig = field(default_factory=SshfsConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Config":
        """Build a Config from parsed YAML.

        Top-level ``options`` and ``ports`` keys are accepted as sshfs
        settings for files written by older releases.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("config root must be a mapping")

        overlay = _section(data, "overlay")
        sshfs = _section(data, "sshfs")
        for legacy in ("options", "ports"):
            if legacy in data and legacy not in sshfs:
                sshfs[legacy] = data[legacy]

        try:
            config = cls(overlay=OverlayConfig(**overlay), sshfs=SshfsConfig(**sshfs))
        except TypeError as e:
            raise ConfigError(f"unknown config key: {e}") from e

        if isinstance(config.sshfs.options, str):
            config.sshfs.options = [config.sshfs.options]
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def overlay_root(self) -> Path:
        return _root(self.overlay.mount, "overlay.mount")

    @property
    def sshfs_root(self) -> Path:
        return _root(self.sshfs.mount, "sshfs.mount")

    def validate(self) -> "Config":
        """Check the settings, raising ConfigError on the first problem."""
        _root(self.overlay.mount, "overlay.mount")
        _root(self.sshfs.mount, "sshfs.mount")

        if self.overlay.driver not in OVERLAY_DRIVERS:
            raise ConfigError(
                f"overlay.driver must be one of {', '.join(OVERLAY_DRIVERS)}, "
                f"got {self.overlay.driver!r}"
            )

        if not isinstance(self.sshfs.ports, list):
            raise ConfigError("sshfs.ports must be a list")
        for port in self.sshfs.ports:
            if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
                raise ConfigError(f"invalid sshfs port: {port!r}")

        if not all(isinstance(opt, str) for opt in self.sshfs.options):
            raise ConfigError("sshfs.options must be a list of strings")

        try:
            timeout = float(self.sshfs.timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid sshfs.timeout: {self.sshfs.timeout!r}") from e
        if timeout <= 0:
            raise ConfigError("sshfs.timeout must be positive")
        self.sshfs.timeout = timeout

        return self


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' section must be a mapping")
    return dict(value)


def _root(value: str, key: str) -> Path:
    if not value:
        raise ConfigError(f"{key} is not set")
    expanded = expand_home(str(value))
    if not expanded:
        raise ConfigError(f"{key}: cannot expand {value!r} (home directory unknown)")
    return Path(os.path.abspath(expanded))


def write_default_config(path: Path) -> None:
    """Write the default settings to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        yaml.safe_dump(Config().to_dict(), f, default_flow_style=False, sort_keys=False)
    logger.info("Created default config at {}", path)


def load_config(path: Optional[str] = None) -> Config:
    """Load and validate configuration.

    Lookup order: ``path``, then ``$COWSPACE_CONFIG``, then
    ``~/.cowspace/config.yaml``. Only the default location is created
    when missing; an explicit path that does not exist is an error.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    explicit = path or os.environ.get(CONFIG_ENV)
    resolved = expand_home(explicit or DEFAULT_CONFIG_PATH)
    if not resolved:
        raise ConfigError("cannot locate config file: home directory unknown")
    config_file = Path(resolved)

    if not config_file.exists():
        if explicit:
            raise ConfigError(f"config file not found: {config_file}")
        try:
            write_default_config(config_file)
        except OSError as e:
            raise ConfigError(f"failed to create config {config_file}: {e}") from e

    try:
        with config_file.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config {config_file}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config {config_file}: {e}") from e

    logger.debug("Loaded config from {}", config_file)
    return Config.from_dict(data).validate()
