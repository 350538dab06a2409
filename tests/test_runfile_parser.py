import os
import tempfile

import pytest

from daprcli.run import ConfigError
from daprcli.runfile_parser import RunFileConfig, get_base_path_from_abs_path

VALID_RUN_FILE = """\
version: 1
common:
  resourcesPath: ./app/resources
  appProtocol: HTTP
  appHealthProbeTimeout: 10
  env:
    DEBUG: true
    tty: sts
apps:
  - appDirPath: ./webapp/
    resourcesPath: ./resources
    configFilePath: ./config.yaml
    appPort: 8080
    appHealthProbeTimeout: 1
    env:
      DEBUG: false
  - appID: backend
    appDirPath: ./backend/
    appProtocol: GRPC
    appPort: 3000
    unixDomainSocket: /tmp/test-socket
    env:
      DEBUG: "true"
"""

PRECEDENCE_RUN_FILE = """\
version: 1
common:
  resourcesPath: ./app/resources
  configFilePath: ./app/config.yaml
apps:
  - appDirPath: ./webapp/
    resourcesPath: ./resources
    configFilePath: ./config.yaml
  - appDirPath: ./backend/
  - appDirPath: ./frontend/
"""

DAPR_DIR_RUN_FILE = """\
version: 1
apps:
  - appDirPath: ./frontend/
  - appDirPath: ./frontend/
    runtimePath: ./custom
"""

LOG_DESTINATION_RUN_FILE = """\
version: 1
apps:
  - appDirPath: ./frontend/
  - appDirPath: ./frontend/
    daprdLogDestination: fileAndConsole
    appLogDestination: fileAndConsole
  - appDirPath: ./frontend/
    daprdLogDestination: file
    appLogDestination: file
  - appDirPath: ./frontend/
    daprdLogDestination: console
    appLogDestination: console
  - appDirPath: ./frontend/
    daprdLogDestination: console
    appLogDestination: file
  - appDirPath: ./frontend/
    daprdLogDestination: file
    appLogDestination: console
"""

MULTI_RESOURCES_RUN_FILE = """\
version: 1
common:
  resourcesPaths:
    - ./app/resources
  resourcesPath: ./app2/resources
apps:
  - appDirPath: ./webapp/
    resourcesPaths:
      - ../backend/.dapr/resources
    resourcesPath: ./resources
  - appDirPath: ./frontend/
  - appDirPath: ./backend/
"""


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "runfileconfig"
    for rel in (
        "webapp/resources",
        "backend/.dapr/resources",
        "app/resources",
        "app2/resources",
        "frontend",
        "custom",
    ):
        (root / rel).mkdir(parents=True, exist_ok=True)
    (root / "webapp" / "config.yaml").write_text("kind: Configuration\n")
    (root / "backend" / ".dapr" / "config.yaml").write_text("kind: Configuration\n")
    (root / "app" / "config.yaml").write_text("kind: Configuration\n")
    return root


def _write(root, name, text):
    path = root / name
    path.write_text(text)
    return str(path)


def test_parse_valid_run_template(tree):
    path = _write(tree, "test_run_config.yaml", VALID_RUN_FILE)
    config = RunFileConfig()
    config.parse_apps_config(path)

    assert len(config.apps) == 2
    assert config.version == 1
    assert config.common.resources_path != ""
    assert config.common.env == {"DEBUG": "true", "tty": "sts"}
    assert config.apps[0].app_id == ""
    assert config.apps[1].app_protocol == "GRPC"
    assert config.apps[0].app_port == 8080
    assert config.apps[0].unix_domain_socket == ""


def test_get_apps(tree):
    path = _write(tree, "test_run_config.yaml", VALID_RUN_FILE)
    config = RunFileConfig()
    apps = config.get_apps(path)

    assert len(apps) == 2
    assert apps[0].app_id == "webapp"
    assert apps[1].app_id == "backend"
    assert apps[0].app_protocol == "HTTP"
    assert apps[1].app_protocol == "GRPC"
    assert apps[0].app_port == 8080
    assert apps[1].app_port == 3000
    assert apps[0].app_health_timeout == 1
    assert apps[1].app_health_timeout == 10
    assert apps[0].unix_domain_socket == ""
    assert apps[1].unix_domain_socket == "/tmp/test-socket"

    assert apps[0].resources_paths[0] == os.path.join(apps[0].app_dir_path, "resources")
    assert apps[1].resources_paths[0] == os.path.join(apps[1].app_dir_path, ".dapr", "resources")
    assert apps[0].config_file == os.path.join(apps[0].app_dir_path, "config.yaml")
    assert apps[1].config_file == os.path.join(apps[1].app_dir_path, ".dapr", "config.yaml")

    apps[0].resources_paths = []
    config.resolve_resources_and_config_file_paths()
    assert apps[0].resources_paths[0] == config.common.resources_paths[0]
    assert apps[1].resources_paths[0] == os.path.join(apps[1].app_dir_path, ".dapr", "resources")

    assert len(apps[0].env) == 2
    assert len(apps[1].env) == 2
    assert apps[0].env["DEBUG"] == "false"
    assert apps[0].env["tty"] == "sts"
    assert apps[1].env["DEBUG"] == "true"
    assert apps[1].env["tty"] == "sts"


def test_get_apps_resolves_absolute_app_dir(tree):
    path = _write(tree, "test_run_config.yaml", VALID_RUN_FILE)
    apps = RunFileConfig().get_apps(path)
    assert apps[0].app_dir_path == str(tree / "webapp")
    assert apps[1].app_dir_path == str(tree / "backend")


def test_precedence_for_resources_and_config(tree):
    path = _write(tree, "test_run_config_precedence_rule.yaml", PRECEDENCE_RUN_FILE)
    config = RunFileConfig()
    config.parse_apps_config(path)
    config.validate_run_config(path)
    config.resolve_resources_and_config_file_paths()

    apps = config.apps
    assert apps[0].resources_paths[0] == os.path.join(apps[0].app_dir_path, "resources")
    assert apps[0].config_file == os.path.join(apps[0].app_dir_path, "config.yaml")
    assert apps[1].resources_paths[0] == os.path.join(apps[1].app_dir_path, ".dapr", "resources")
    assert apps[1].config_file == os.path.join(apps[1].app_dir_path, ".dapr", "config.yaml")
    assert apps[2].resources_paths[0] == config.common.resources_paths[0]
    assert apps[2].config_file == config.common.config_file
    assert config.common.config_file == str(tree / "app" / "config.yaml")


def test_precedence_with_dapr_install_dir(tree, tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.delenv("DAPR_RUNTIME_PATH", raising=False)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))

    path = _write(tree, "test_run_config_precedence_rule_dapr_dir.yaml", DAPR_DIR_RUN_FILE)
    config = RunFileConfig()
    config.parse_apps_config(path)
    config.validate_run_config(path)
    config.resolve_resources_and_config_file_paths()

    apps = config.apps
    assert apps[0].resources_paths[0] == str(home / ".dapr" / "components")
    assert apps[0].config_file == str(home / ".dapr" / "config.yaml")
    assert apps[1].resources_paths[0] == str(tree / "custom" / ".dapr" / "components")
    assert apps[1].config_file == str(tree / "custom" / ".dapr" / "config.yaml")


def test_validate_valid_run_config(tree):
    path = _write(tree, "test_run_config.yaml", VALID_RUN_FILE)
    config = RunFileConfig()
    config.parse_apps_config(path)
    config.validate_run_config(path)
    assert config.common.resources_paths == [str(tree / "app" / "resources")]


def test_validate_empty_app_dir_fails(tree):
    path = _write(
        tree,
        "test_run_config_empty_app_dir.yaml",
        "version: 1\napps:\n  - appID: webapp\n    appPort: 8080\n",
    )
    config = RunFileConfig()
    config.parse_apps_config(path)
    with pytest.raises(ConfigError, match="appDirPath"):
        config.validate_run_config(path)


def test_validate_invalid_app_dir_fails(tree):
    path = _write(
        tree,
        "test_run_config_invalid_path.yaml",
        "version: 1\napps:\n  - appDirPath: ./does-not-exist/\n",
    )
    config = RunFileConfig()
    config.parse_apps_config(path)
    with pytest.raises(ConfigError, match="does-not-exist"):
        config.validate_run_config(path)


def test_validate_missing_version_fails(tree):
    path = _write(tree, "no_version.yaml", "apps:\n  - appDirPath: ./webapp/\n")
    config = RunFileConfig()
    config.parse_apps_config(path)
    with pytest.raises(ConfigError, match="version"):
        config.validate_run_config(path)


def test_log_destinations(tree):
    path = _write(tree, "test_run_config_log_destination.yaml", LOG_DESTINATION_RUN_FILE)
    apps = RunFileConfig().get_apps(path)
    assert len(apps) == 6
    expected = [
        ("file", "fileAndConsole"),
        ("fileAndConsole", "fileAndConsole"),
        ("file", "file"),
        ("console", "console"),
        ("console", "file"),
        ("file", "console"),
    ]
    assert [(str(a.daprd_log_destination), str(a.app_log_destination)) for a in apps] == expected


def test_invalid_log_destination_fails(tree):
    path = _write(
        tree,
        "bad_log.yaml",
        "version: 1\napps:\n  - appDirPath: ./frontend/\n    appLogDestination: nowhere\n",
    )
    with pytest.raises(ConfigError, match="invalid log destination type: nowhere"):
        RunFileConfig().get_apps(path)


@pytest.mark.parametrize(
    "app_index, count, contained",
    [
        (0, 2, os.path.join("webapp", "resources")),
        (0, 2, os.path.join("backend", ".dapr", "resources")),
        (1, 2, os.path.join("app", "resources")),
        (2, 1, os.path.join("backend", ".dapr", "resources")),
    ],
)
def test_multi_resource_paths_resolution(tree, app_index, count, contained):
    path = _write(tree, "test_run_config_multiple_resources_paths.yaml", MULTI_RESOURCES_RUN_FILE)
    config = RunFileConfig()
    config.parse_apps_config(path)
    config.validate_run_config(path)
    config.resolve_resources_and_config_file_paths()

    paths = config.apps[app_index].resources_paths
    assert len(paths) == count
    assert any(contained in p for p in paths)


def test_parse_malformed_yaml_fails(tree):
    path = _write(tree, "broken.yaml", "version: 1\napps: [\n")
    with pytest.raises(ConfigError, match="error in parsing"):
        RunFileConfig().parse_apps_config(path)


def test_parse_non_integer_port_fails(tree):
    path = _write(tree, "bad_port.yaml", "version: 1\napps:\n  - appPort: abc\n")
    with pytest.raises(ConfigError, match="appPort"):
        RunFileConfig().parse_apps_config(path)


def test_parse_missing_file_fails(tree):
    with pytest.raises(FileNotFoundError):
        RunFileConfig().parse_apps_config(str(tree / "missing.yaml"))


def test_get_base_path_from_abs_path_valid():
    assert get_base_path_from_abs_path(os.path.join(tempfile.gettempdir(), "test")) == "test"


@pytest.mark.parametrize("relative", [os.path.join("..", "test"), os.path.join(".", "test")])
def test_get_base_path_from_relative_path_fails(relative):
    with pytest.raises(ConfigError, match="error in getting the base path"):
        get_base_path_from_abs_path(relative)