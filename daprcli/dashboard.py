"""Building the command that starts the Dapr dashboard."""

from __future__ import annotations

import os
import socket

from daprcli.common import Command, lookup_binary_file_path


def free_port() -> int:
    """Return a TCP port on localhost that is currently free."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]


def new_dashboard_cmd(input_install_path: str = "", port: int = 0) -> Command:
    """Return the command that runs the dashboard; port 0 picks a free port."""
    if port == 0:
        port = free_port()
    dashboard_path = lookup_binary_file_path(input_install_path, "dashboard")
    return Command(
        path=dashboard_path,
        args=[os.path.basename(dashboard_path), "--port", str(port)],
        cwd=os.path.dirname(dashboard_path),
    )