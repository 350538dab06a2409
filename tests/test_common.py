import os
import subprocess
import sys

import pytest

from daprcli.common import (
    DEFAULT_DAPR_DIR_NAME,
    Command,
    binary_file_path_with_dir,
    get_dapr_bin_path,
    get_dapr_components_path,
    get_dapr_config_path,
    get_dapr_runtime_path,
    lookup_binary_file_path,
)


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.delenv("DAPR_RUNTIME_PATH", raising=False)
    return str(tmp_path)


def test_without_flag_value_or_env_var(home):
    assert get_dapr_runtime_path("") == os.path.join(home, DEFAULT_DAPR_DIR_NAME)


def test_trim_spaces(home, monkeypatch):
    assert get_dapr_runtime_path("      ") == os.path.join(home, DEFAULT_DAPR_DIR_NAME)
    monkeypatch.setenv("DAPR_RUNTIME_PATH", "      ")
    assert get_dapr_runtime_path("") == os.path.join(home, DEFAULT_DAPR_DIR_NAME)


def test_with_flag_value(home):
    given = os.path.join("path", "to", "dapr")
    assert get_dapr_runtime_path(given) == os.path.join(given, ".dapr")


def test_with_env_var(home, monkeypatch):
    given = os.path.join("path", "to", "dapr")
    monkeypatch.setenv("DAPR_RUNTIME_PATH", given)
    assert get_dapr_runtime_path("") == os.path.join(given, ".dapr")


def test_flag_value_wins_over_env_var(home, monkeypatch):
    given = os.path.join("path", "to", "dapr")
    other = os.path.join("path", "to", "dapr2")
    monkeypatch.setenv("DAPR_RUNTIME_PATH", other)
    assert get_dapr_runtime_path(given) == os.path.join(given, ".dapr")


def test_derived_paths():
    base = os.path.join("some", "dir")
    assert get_dapr_bin_path(base) == os.path.join(base, "bin")
    assert get_dapr_components_path(base) == os.path.join(base, "components")
    assert get_dapr_config_path(base) == os.path.join(base, "config.yaml")


def test_binary_file_path_with_dir():
    base = os.path.join("some", "bin")
    expected = os.path.join(base, "daprd")
    if os.name == "nt":
        expected += ".exe"
    assert binary_file_path_with_dir(base, "daprd") == expected


def test_lookup_binary_file_path(tmp_path, home):
    path = lookup_binary_file_path(str(tmp_path), "daprd")
    expected = os.path.join(str(tmp_path), ".dapr", "bin", "daprd")
    if os.name == "nt":
        expected += ".exe"
    assert path == expected


def test_command_default_args():
    cmd = Command(path="prog")
    assert cmd.args == ["prog"]


def test_command_start_runs_program():
    cmd = Command(
        path=sys.executable,
        args=["python", "-c", "print(42)"],
        stdout=subprocess.PIPE,
    )
    proc = cmd.start()
    out, _ = proc.communicate(timeout=30)
    assert out.strip() == b"42"
    assert proc.returncode == 0