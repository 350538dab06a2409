"""Apps and the common section of a run template file, with their log files."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Any

from daprcli.common import DEFAULT_DAPR_DIR_NAME
from daprcli.run import CONSOLE, RunConfig, SharedRunConfig

APP_LOG_FILE_NAME_PREFIX = "app"
DAPRD_LOG_FILE_NAME_PREFIX = "daprd"
LOG_FILE_EXTENSION = ".log"
LOGS_DIR = "logs"
_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass
class Common(SharedRunConfig):
    """Options of the common section, shared by every app of the run."""


@dataclass
class App(RunConfig):
    """One app of a run template, with the log files it writes to."""

    app_dir_path: str = field(default="", metadata={"yaml": "appDirPath"})
    app_log_file_name: str = ""
    daprd_log_file_name: str = ""
    app_log_writer: IO[Any] | None = field(default=None, repr=False, compare=False)
    daprd_log_writer: IO[Any] | None = field(default=None, repr=False, compare=False)

    def logs_dir(self) -> str:
        """Return the app's log directory, creating it if needed."""
        logs_path = os.path.join(self.app_dir_path, DEFAULT_DAPR_DIR_NAME, LOGS_DIR)
        os.makedirs(logs_path, mode=0o755, exist_ok=True)
        return logs_path

    def _create_log_file(self, log_type: str) -> IO[Any]:
        timestamp = datetime.now().strftime(_TIMESTAMP_FORMAT)
        file_name = f"{self.app_id}_{log_type}_{timestamp}{LOG_FILE_EXTENSION}"
        return open(os.path.join(self.logs_dir(), file_name), "w", encoding="utf-8")

    def _open_log(self, destination: str, log_type: str) -> tuple[IO[Any], str]:
        if destination == CONSOLE:
            return sys.stdout, getattr(sys.stdout, "name", "<stdout>")
        handle = self._create_log_file(log_type)
        return handle, handle.name

    def create_app_log_file(self) -> None:
        """Open where the app's output goes: standard output or a new log file.

        Raises OSError if the file cannot be created.
        """
        self.app_log_writer, self.app_log_file_name = self._open_log(
            self.app_log_destination, APP_LOG_FILE_NAME_PREFIX
        )

    def create_daprd_log_file(self) -> None:
        """Open where the sidecar's output goes: standard output or a new log file.

        Raises OSError if the file cannot be created.
        """
        self.daprd_log_writer, self.daprd_log_file_name = self._open_log(
            self.daprd_log_destination, DAPRD_LOG_FILE_NAME_PREFIX
        )

    @staticmethod
    def _close(writer: IO[Any] | None) -> None:
        if writer is None or writer is sys.stdout or writer is sys.__stdout__:
            return
        writer.close()

    def close_app_log_file(self) -> None:
        """Close the app's log file, if one is open."""
        self._close(self.app_log_writer)

    def close_daprd_log_file(self) -> None:
        """Close the sidecar's log file, if one is open."""
        self._close(self.daprd_log_writer)