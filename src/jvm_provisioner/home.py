"""Provisioner home directory discovery.

Provides the canonical functions for locating:
- The provisioner home (registry file + installed runtimes)
- The user configuration file
"""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "jvm-provisioner"
HOME_ENV_VAR = "JVM_PROVISIONER_HOME"
CONFIG_ENV_VAR = "JVM_PROVISIONER_CONFIG"

REGISTRY_FILENAME = "registry.json"
RUNTIMES_DIRNAME = "runtimes"


def get_provisioner_home() -> Path:
    """Return the directory holding the registry and installed runtimes.

    Resolution order:
    1. JVM_PROVISIONER_HOME environment variable (all platforms)
    2. platformdirs user data directory (``~/.local/share/jvm-provisioner``,
       ``~/Library/Application Support/jvm-provisioner``,
       ``%LOCALAPPDATA%\\jvm-provisioner``)
    """
    if env_home := os.environ.get(HOME_ENV_VAR):
        return Path(env_home).expanduser()
    return Path(user_data_dir(APP_NAME, appauthor=False))


def get_config_path() -> Path:
    """Return the path of the user ``config.toml``.

    JVM_PROVISIONER_CONFIG overrides the platformdirs user config directory.
    """
    if env_config := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_config).expanduser()
    return Path(user_config_dir(APP_NAME, appauthor=False)) / "config.toml"


def registry_path(home: Path) -> Path:
    return home / REGISTRY_FILENAME


def runtimes_root(home: Path) -> Path:
    return home / RUNTIMES_DIRNAME
