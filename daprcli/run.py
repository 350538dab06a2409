"""Run configuration for a Dapr sidecar and its app, and the commands that start them."""

from __future__ import annotations

import os
import random
import socket
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from daprcli.common import IS_WINDOWS, Command, lookup_binary_file_path
from daprcli.dashboard import free_port
from daprcli.listing import list_instances

SENTRY_DEFAULT_ADDRESS = "localhost:50001"
_PLACEMENT_PORT_WINDOWS = 6050
_PLACEMENT_PORT_DEFAULT = 50005
_COMPONENT_SUFFIXES = (".yaml", ".yml")


class ConfigError(ValueError):
    """A run configuration is not valid."""


class LogDestType(str):
    """Where logs of daprd or an app go: ``console``, ``file`` or ``fileAndConsole``."""

    def validate(self) -> LogDestType:
        """Return the destination itself; raise ConfigError if it is not known."""
        if self not in _VALID_LOG_DESTS:
            raise ConfigError(f"invalid log destination type: {self}")
        return self

    def __repr__(self) -> str:
        return f"LogDestType({str.__repr__(self)})"


CONSOLE = LogDestType("console")
FILE = LogDestType("file")
FILE_AND_CONSOLE = LogDestType("fileAndConsole")
DEFAULT_DAPRD_LOG_DEST = FILE
DEFAULT_APP_LOG_DEST = FILE_AND_CONSOLE
_VALID_LOG_DESTS = frozenset({CONSOLE, FILE, FILE_AND_CONSOLE})


def _opt(
    default: Any = None,
    *,
    factory: Any = None,
    arg: str | None = None,
    env: str | None = None,
    ifneq: str | None = None,
    schema_default: str | None = None,
    yaml_key: str | None = None,
) -> Any:
    metadata: dict[str, str] = {}
    if arg:
        metadata["arg"] = arg
    if env:
        metadata["env"] = env
    if ifneq is not None:
        metadata["ifneq"] = ifneq
    if schema_default is not None:
        metadata["default"] = schema_default
    if yaml_key:
        metadata["yaml"] = yaml_key
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


@dataclass
class SharedRunConfig:
    """Options that several apps of a run can share."""

    config_file: str = _opt("", arg="config", yaml_key="configFilePath")
    app_protocol: str = _opt("", arg="app-protocol", schema_default="http", yaml_key="appProtocol")
    api_listen_addresses: str = _opt("", arg="dapr-listen-addresses", yaml_key="apiListenAddresses")
    enable_profiling: bool = _opt(False, arg="enable-profiling", yaml_key="enableProfiling")
    log_level: str = _opt("", arg="log-level", yaml_key="logLevel")
    max_concurrency: int = _opt(
        0, arg="app-max-concurrency", schema_default="-1", yaml_key="appMaxConcurrency"
    )
    placement_host_addr: str = _opt(
        "", arg="placement-host-address", yaml_key="placementHostAddress"
    )
    components_path: str = _opt("", arg="components-path")
    resources_path: str = _opt("", yaml_key="resourcesPath")
    resources_paths: list[str] = _opt(factory=list, arg="resources-path", yaml_key="resourcesPaths")
    app_ssl: bool = _opt(False, arg="app-ssl", yaml_key="appSSL")
    max_request_body_size: int = _opt(
        0, arg="dapr-http-max-request-size", schema_default="-1", yaml_key="daprHTTPMaxRequestSize"
    )
    http_read_buffer_size: int = _opt(
        0, arg="dapr-http-read-buffer-size", schema_default="-1", yaml_key="daprHTTPReadBufferSize"
    )
    enable_app_health: bool = _opt(
        False, arg="enable-app-health-check", yaml_key="enableAppHealthCheck"
    )
    app_health_path: str = _opt("", arg="app-health-check-path", yaml_key="appHealthCheckPath")
    app_health_interval: int = _opt(
        0, arg="app-health-probe-interval", ifneq="0", yaml_key="appHealthProbeInterval"
    )
    app_health_timeout: int = _opt(
        0, arg="app-health-probe-timeout", ifneq="0", yaml_key="appHealthProbeTimeout"
    )
    app_health_threshold: int = _opt(
        0, arg="app-health-threshold", ifneq="0", yaml_key="appHealthThreshold"
    )
    enable_api_logging: bool = _opt(False, arg="enable-api-logging", yaml_key="enableApiLogging")
    daprd_install_path: str = _opt("", yaml_key="runtimePath")
    env: dict[str, str] = _opt(factory=dict, yaml_key="env")
    daprd_log_destination: LogDestType = _opt(LogDestType(""), yaml_key="daprdLogDestination")
    app_log_destination: LogDestType = _opt(LogDestType(""), yaml_key="appLogDestination")


@dataclass
class RunConfig(SharedRunConfig):
    """Everything needed to start one app and its sidecar."""

    app_id: str = _opt("", env="APP_ID", arg="app-id", yaml_key="appID")
    app_channel_address: str = _opt(
        "", env="APP_CHANNEL_ADDRESS", arg="app-channel-address", ifneq="127.0.0.1",
        yaml_key="appChannelAddress",
    )
    app_port: int = _opt(0, env="APP_PORT", arg="app-port", schema_default="-1", yaml_key="appPort")
    http_port: int = _opt(
        0, env="DAPR_HTTP_PORT", arg="dapr-http-port", schema_default="-1", yaml_key="daprHTTPPort"
    )
    grpc_port: int = _opt(
        0, env="DAPR_GRPC_PORT", arg="dapr-grpc-port", schema_default="-1", yaml_key="daprGRPCPort"
    )
    profile_port: int = _opt(0, arg="profile-port", schema_default="-1", yaml_key="profilePort")
    command: list[str] = _opt(factory=list, yaml_key="command")
    metrics_port: int = _opt(
        0, env="DAPR_METRICS_PORT", arg="metrics-port", schema_default="-1", yaml_key="metricsPort"
    )
    unix_domain_socket: str = _opt("", arg="unix-domain-socket", yaml_key="unixDomainSocket")
    internal_grpc_port: int = _opt(
        0, arg="dapr-internal-grpc-port", schema_default="-1", yaml_key="daprInternalGRPCPort"
    )

    def set_default_from_schema(self) -> None:
        """Give every unset (zero) field that has a schema default its default."""
        for f in fields(self):
            default = f.metadata.get("default")
            if default is None:
                continue
            value = getattr(self, f.name)
            if isinstance(value, bool):
                continue
            if isinstance(value, int) and value == 0:
                try:
                    setattr(self, f.name, int(default))
                except ValueError:
                    pass
            elif isinstance(value, str) and value == "":
                setattr(self, f.name, type(value)(default))

    def _validate_resources_paths(self) -> None:
        dir_paths = list(self.resources_paths) or [self.components_path]
        for path in dir_paths:
            try:
                os.stat(path)
            except OSError as err:
                raise ConfigError(
                    f"error validating resources path {dir_paths!r} : {err}"
                ) from err
        for path in dir_paths:
            directory = Path(path)
            if not directory.is_dir():
                continue
            for component_file in sorted(directory.iterdir()):
                if component_file.suffix not in _COMPONENT_SUFFIXES or not component_file.is_file():
                    continue
                try:
                    with component_file.open(encoding="utf-8") as fh:
                        list(yaml.safe_load_all(fh))
                except (OSError, yaml.YAMLError) as err:
                    raise ConfigError(
                        f"error validating components in resources path {dir_paths!r} : {err}"
                    ) from err

    def _validate_placement_host_addr(self) -> None:
        address = self.placement_host_addr or "localhost"
        if ":" not in address:
            port = _PLACEMENT_PORT_WINDOWS if IS_WINDOWS else _PLACEMENT_PORT_DEFAULT
            address = f"{address}:{port}"
        self.placement_host_addr = address

    def _validate_port(self, port_name: str, attr: str, meta: DaprMeta) -> None:
        port = getattr(self, attr)
        if port <= 0:
            setattr(self, attr, free_port())
            return
        if meta.port_exists(port):
            raise ConfigError(
                f"invalid configuration for {port_name}. Port {port} is not available"
            )

    def validate(self) -> None:
        """Check the configuration and fill in app ID, free ports and addresses.

        Raises ConfigError if a resources path is invalid or a port is taken.
        """
        meta = new_dapr_meta()
        if not self.app_id:
            self.app_id = meta.new_app_id()

        self._validate_resources_paths()
        if self.resources_paths:
            self.components_path = ""

        if self.app_port < 0:
            self.app_port = 0

        self._validate_port("HTTPPort", "http_port", meta)
        self._validate_port("GRPCPort", "grpc_port", meta)
        self._validate_port("MetricsPort", "metrics_port", meta)
        self._validate_port("InternalGRPCPort", "internal_grpc_port", meta)
        if self.enable_profiling:
            self._validate_port("ProfilePort", "profile_port", meta)

        if self.max_concurrency < 1:
            self.max_concurrency = -1
        if self.max_request_body_size < 0:
            self.max_request_body_size = -1
        if self.http_read_buffer_size < 0:
            self.http_read_buffer_size = -1

        self._validate_placement_host_addr()

    def get_args(self) -> list[str]:
        """Return the daprd command-line flags for this configuration."""
        args: list[str] = []
        for f in fields(self):
            arg = f.metadata.get("arg")
            if not arg:
                continue
            key = "--" + arg
            value = getattr(self, f.name)
            if isinstance(value, bool):
                if value:
                    args.append(key)
            elif isinstance(value, list):
                for item in value:
                    args += [key, str(item)]
            else:
                text = str(value)
                ifneq = f.metadata.get("ifneq")
                if text and (ifneq is None or text != ifneq):
                    args += [key, text]

        if self.config_file:
            sentry_address = mtls_endpoint(self.config_file)
            if sentry_address:
                args += ["--enable-mtls", "--sentry-address", sentry_address]
        return args

    def get_env(self) -> list[str]:
        """Return ``KEY=value`` entries for the app's environment."""
        env: list[str] = []
        for f in fields(self):
            key = f.metadata.get("env")
            if not key:
                continue
            value = getattr(self, f.name)
            if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
                continue
            env.append(f"{key}={value}")
        env += [f"{key}={value}" for key, value in self.env.items()]
        return env


_ADJECTIVES = (
    "amber", "bold", "brave", "calm", "clever", "crimson", "curious", "eager",
    "fancy", "gentle", "golden", "happy", "jolly", "keen", "lively", "lucky",
    "mellow", "nimble", "proud", "quiet", "rapid", "silent", "sturdy", "swift",
    "tidy", "vivid", "wild", "witty", "young", "zesty",
)
_NOUNS = (
    "badger", "beacon", "comet", "falcon", "ferret", "galaxy", "harbor", "heron",
    "island", "jaguar", "kestrel", "lantern", "meadow", "moose", "nebula", "otter",
    "panther", "pebble", "quokka", "raven", "river", "rocket", "salmon", "summit",
    "thunder", "tiger", "valley", "walrus", "willow", "zephyr",
)


def _silly_name() -> str:
    return f"{random.choice(_ADJECTIVES).capitalize()} {random.choice(_NOUNS).capitalize()}"


@dataclass
class DaprMeta:
    """App IDs and ports already taken by running sidecars."""

    existing_ids: set[str] = field(default_factory=set)
    existing_ports: set[int] = field(default_factory=set)

    def id_exists(self, app_id: str) -> bool:
        return app_id in self.existing_ids

    def port_exists(self, port: int) -> bool:
        """Tell whether a port is taken; a free port is reserved for later checks."""
        if port <= 0:
            return False
        if port in self.existing_ports:
            return True
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind(("", port))
                sock.listen()
        except OSError:
            return True
        self.existing_ports.add(port)
        return False

    def new_app_id(self) -> str:
        """Return a generated app ID that no running sidecar uses."""
        while True:
            app_id = _silly_name().replace(" ", "-").lower()
            if not self.id_exists(app_id):
                return app_id


def new_dapr_meta() -> DaprMeta:
    """Collect the app IDs and ports of the sidecars running now."""
    meta = DaprMeta()
    for instance in list_instances():
        meta.existing_ids.add(instance.app_id)
        meta.existing_ports.update((instance.app_port, instance.http_port, instance.grpc_port))
    return meta


def mtls_endpoint(config_file: str) -> str:
    """Return the sentry address if the config file enables mTLS, else an empty string."""
    if not config_file:
        return ""
    try:
        with open(config_file, encoding="utf-8") as fh:
            document = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return ""
    if not isinstance(document, dict):
        return ""
    spec = document.get("spec")
    mtls = spec.get("mtls") if isinstance(spec, dict) else None
    if isinstance(mtls, dict) and mtls.get("enabled") is True:
        return SENTRY_DEFAULT_ADDRESS
    return ""


def get_dapr_command(config: RunConfig) -> Command:
    """Return the command that starts daprd for a configuration."""
    daprd_path = lookup_binary_file_path(config.daprd_install_path, "daprd")
    return Command(path=daprd_path, args=[daprd_path, *config.get_args()])


def get_app_command(config: RunConfig) -> Command | None:
    """Return the command that starts the app, or None if none is configured."""
    if not config.command:
        return None
    env = dict(os.environ)
    for entry in config.get_env():
        key, _, value = entry.partition("=")
        env[key] = value
    return Command(path=config.command[0], args=list(config.command), env=env)