"""Removal of the deprecated file that once held local run state."""

from __future__ import annotations

import os
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime

from filelock import FileLock, Timeout

RUN_DATA_FILE = "dapr-run-data.ldj"
RUN_DATA_LOCK_FILE = "dapr-run-data.lock"

_LOCK_ATTEMPTS = 10
_LOCK_RETRY_DELAY = 0.05


class RunDataLockError(RuntimeError):
    """The run data lock could not be taken."""


@dataclass
class RunData:
    """One record of the deprecated run data file."""

    dapr_run_id: str
    dapr_http_port: int
    dapr_grpc_port: int
    app_id: str
    app_port: int
    command: str
    created: datetime
    pid: int


def _acquire_run_data_lock() -> FileLock:
    lock = FileLock(os.path.join(tempfile.gettempdir(), RUN_DATA_LOCK_FILE))
    for _ in range(_LOCK_ATTEMPTS):
        try:
            lock.acquire(timeout=0)
        except Timeout:
            time.sleep(_LOCK_RETRY_DELAY)
        else:
            return lock
    raise RunDataLockError(f"unable to acquire lock {lock.lock_file}")


def delete_run_data_file() -> None:
    """Delete the deprecated run data file from the temporary directory.

    Raises RunDataLockError if the lock is held elsewhere and OSError if the
    file cannot be removed.
    """
    lock = _acquire_run_data_lock()
    try:
        os.remove(os.path.join(tempfile.gettempdir(), RUN_DATA_FILE))
    finally:
        lock.release()