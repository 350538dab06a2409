import os
import socket

import pytest

from daprcli.dashboard import free_port, new_dashboard_cmd


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.delenv("DAPR_RUNTIME_PATH", raising=False)
    return str(tmp_path)


def test_build_cmd():
    cmd = new_dashboard_cmd("", 9090)
    assert "dashboard" in cmd.args[0]
    assert cmd.args[1] == "--port"
    assert cmd.args[2] == "9090"


def test_start_dashboard_on_random_free_port():
    cmd = new_dashboard_cmd("", 0)
    assert "dashboard" in cmd.args[0]
    assert cmd.args[1] == "--port"
    assert cmd.args[2] != "0"
    assert 0 < int(cmd.args[2]) < 65536


def test_paths_follow_install_dir(tmp_path):
    cmd = new_dashboard_cmd(str(tmp_path), 9090)
    bin_dir = os.path.join(str(tmp_path), ".dapr", "bin")
    assert cmd.cwd == bin_dir
    assert os.path.dirname(cmd.path) == bin_dir
    assert cmd.args[0] == os.path.basename(cmd.path)


def test_free_port_is_bindable():
    port = free_port()
    assert 0 < port < 65536
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", port))
        assert sock.getsockname()[1] == port