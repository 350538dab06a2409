"""Discovery of the Dapr sidecars running on this machine."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime

import psutil

DEFAULT_DAPR_HTTP_PORT = 3500
DEFAULT_DAPR_GRPC_PORT = 50001
DEFAULT_MAX_REQUEST_BODY_SIZE = 4
DEFAULT_READ_BUFFER_SIZE = 4

CREATED_FORMAT = "%Y-%m-%d %H:%M.%S"

_DAPRD_EXECUTABLES = frozenset({"daprd", "daprd.exe"})
_COMMAND_DISPLAY_WIDTH = 20
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_BOOL_VALUES = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}

MetadataFetcher = Callable[[int, str, str], Mapping[str, str]]
"""Called with (http_port, app_id, socket); returns the sidecar's extended metadata."""


@dataclass
class ListOutput:
    """One running Dapr sidecar and the app attached to it."""

    app_id: str = ""
    http_port: int = 0
    grpc_port: int = 0
    app_port: int = 0
    metrics_enabled: bool = False
    command: str = ""
    age: str = ""
    created: str = ""
    daprd_pid: int = 0
    cli_pid: int = 0
    app_pid: int = 0
    max_request_body_size: int = 0
    http_read_buffer_size: int = 0
    run_template_path: str = ""
    app_log_path: str = ""
    daprd_log_path: str = ""
    run_template_name: str = ""


def _atoi(text: str) -> int | None:
    if _INT_PATTERN.fullmatch(text):
        return int(text)
    return None


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[:width] + "..."


def _age(created: datetime, now: datetime | None = None) -> str:
    seconds = max(0, int(((now or datetime.now()) - created).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def parse_daprd_arguments(cmd_line: str) -> dict[str, str]:
    """Parse a ``daprd --flag value --switch ...`` command line into a flag map.

    Flags followed by another flag map to an empty string; a flag in last
    position with no value is not recorded.
    """
    items = cmd_line.split()
    arguments: dict[str, str] = {}
    i = 1
    while i < len(items) - 1:
        if not items[i + 1].startswith("--"):
            arguments[items[i]] = items[i + 1]
            i += 2
        else:
            arguments[items[i]] = ""
            i += 1
    return arguments


def get_int_arg(arguments: Mapping[str, str], key: str, default: int) -> int:
    """Return the integer value of a flag, or the default if absent or not an integer."""
    value = arguments.get(key)
    if value is not None:
        parsed = _atoi(value)
        if parsed is not None:
            return parsed
    return default


def _fetch_extended(
    fetch_metadata: MetadataFetcher | None, http_port: int, app_id: str, socket: str
) -> dict[str, str]:
    if fetch_metadata is None:
        return {}
    try:
        return dict(fetch_metadata(http_port, app_id, socket))
    except Exception:  # an unreachable sidecar just has no metadata
        return {}


def _row_for(proc: psutil.Process, fetch_metadata: MetadataFetcher | None) -> ListOutput | None:
    if proc.name().lower() not in _DAPRD_EXECUTABLES:
        return None

    cmd_line = " ".join(proc.cmdline())
    if len(cmd_line.split()) <= 1:
        return None

    arguments = parse_daprd_arguments(cmd_line)
    http_port = get_int_arg(arguments, "--dapr-http-port", DEFAULT_DAPR_HTTP_PORT)
    grpc_port = get_int_arg(arguments, "--dapr-grpc-port", DEFAULT_DAPR_GRPC_PORT)
    app_port = get_int_arg(arguments, "--app-port", 0)
    metrics_enabled = _BOOL_VALUES.get(arguments.get("--enable-metrics", ""), True)
    max_request_body_size = get_int_arg(
        arguments, "--dapr-http-max-request-size", DEFAULT_MAX_REQUEST_BODY_SIZE
    )
    http_read_buffer_size = get_int_arg(
        arguments, "--dapr-http-read-buffer-size", DEFAULT_READ_BUFFER_SIZE
    )
    app_id = arguments.get("--app-id", "")
    socket = arguments.get("--unix-domain-socket", "")

    extended = _fetch_extended(fetch_metadata, http_port, app_id, socket)

    created = datetime.fromtimestamp(int(proc.create_time()))

    return ListOutput(
        app_id=app_id,
        http_port=http_port,
        grpc_port=grpc_port,
        app_port=app_port,
        metrics_enabled=metrics_enabled,
        command=_truncate(extended.get("appCommand", ""), _COMMAND_DISPLAY_WIDTH),
        age=_age(created),
        created=created.strftime(CREATED_FORMAT),
        daprd_pid=proc.pid,
        cli_pid=_atoi(extended.get("cliPID", "")) or 0,
        app_pid=_atoi(extended.get("appPID", "")) or 0,
        max_request_body_size=max_request_body_size,
        http_read_buffer_size=http_read_buffer_size,
        run_template_path=extended.get("runTemplatePath", ""),
        app_log_path=extended.get("appLogPath", ""),
        daprd_log_path=extended.get("daprdLogPath", ""),
        run_template_name=extended.get("runTemplateName", ""),
    )


def list_instances(fetch_metadata: MetadataFetcher | None = None) -> list[ListOutput]:
    """List every running daprd process that has an app ID.

    ``fetch_metadata`` supplies the extended metadata of a sidecar; without it,
    fields that come from metadata stay empty.
    """
    rows: list[ListOutput] = []
    for proc in psutil.process_iter():
        try:
            row = _row_for(proc, fetch_metadata)
        except psutil.Error:
            continue
        if row is not None and row.app_id:
            rows.append(row)
    return rows


def get_cli_pid_count_map(apps: Iterable[ListOutput]) -> dict[int, int]:
    """Map each CLI PID to the number of apps it started."""
    return dict(Counter(app.cli_pid for app in apps))