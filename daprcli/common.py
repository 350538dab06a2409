"""Locations inside a Dapr runtime installation and a description of a command to start."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_DAPR_DIR_NAME = ".dapr"
DEFAULT_CONFIG_FILE_NAME = "config.yaml"
DEFAULT_RESOURCES_DIR_NAME = "resources"
DEFAULT_DAPR_BIN_DIR_NAME = "bin"
DEFAULT_COMPONENTS_DIR_NAME = "components"

RUNTIME_PATH_ENV = "DAPR_RUNTIME_PATH"
IS_WINDOWS = os.name == "nt"


@dataclass
class Command:
    """A program to start: executable path, argv (argv[0] first), directory and environment.

    An ``env`` of ``None`` inherits the current environment; ``None`` streams are inherited.
    """

    path: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] | None = None
    stdin: Any = None
    stdout: Any = None
    stderr: Any = None

    def __post_init__(self) -> None:
        if not self.args:
            self.args = [self.path]

    def start(self) -> subprocess.Popen:
        """Start the program and return the running process."""
        return subprocess.Popen(
            self.args,
            executable=self.path,
            cwd=self.cwd,
            env=self.env,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
        )


def _join(*parts: str) -> str:
    return os.path.normpath(os.path.join(*parts))


def get_dapr_runtime_path(dapr_runtime_path: str = "") -> str:
    """Return the Dapr installation directory.

    Precedence: the given path, then ``DAPR_RUNTIME_PATH``, then the home directory;
    each has ``.dapr`` appended.
    """
    runtime_path = dapr_runtime_path.strip()
    if runtime_path:
        return _join(runtime_path, DEFAULT_DAPR_DIR_NAME)

    env_runtime_path = os.environ.get(RUNTIME_PATH_ENV, "").strip()
    if env_runtime_path:
        return _join(env_runtime_path, DEFAULT_DAPR_DIR_NAME)

    return _join(str(Path.home()), DEFAULT_DAPR_DIR_NAME)


def get_dapr_bin_path(dapr_dir: str) -> str:
    """Return the directory holding the Dapr binaries."""
    return _join(dapr_dir, DEFAULT_DAPR_BIN_DIR_NAME)


def binary_file_path_with_dir(binary_dir: str, binary_file_prefix: str) -> str:
    """Return the path of a binary in a directory, with ``.exe`` on Windows."""
    binary_path = _join(binary_dir, binary_file_prefix)
    if IS_WINDOWS:
        binary_path += ".exe"
    return binary_path


def lookup_binary_file_path(input_install_path: str, binary_file_prefix: str) -> str:
    """Return the path of a Dapr binary for the given installation path."""
    dapr_path = get_dapr_runtime_path(input_install_path)
    return binary_file_path_with_dir(get_dapr_bin_path(dapr_path), binary_file_prefix)


def get_dapr_components_path(dapr_dir: str) -> str:
    """Return the default components directory."""
    return _join(dapr_dir, DEFAULT_COMPONENTS_DIR_NAME)


def get_dapr_config_path(dapr_dir: str) -> str:
    """Return the default configuration file path."""
    return _join(dapr_dir, DEFAULT_CONFIG_FILE_NAME)