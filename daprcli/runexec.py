"""Building the sidecar and app commands of a run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from daprcli.common import Command
from daprcli.run import RunConfig, get_app_command, get_dapr_command


class CommandNotSetError(ValueError):
    """An output stream was attached to a process that has no command."""


@dataclass
class CmdProcess:
    """A command to start, the error it ended with, and where its output goes."""

    command: Command | None = None
    command_err: BaseException | None = None
    output_writer: Any = None
    error_writer: Any = None

    def attach_stdout(self, writer: Any) -> None:
        """Send the command's standard output to ``writer``.

        Raises CommandNotSetError if there is no command.
        """
        self.output_writer = writer
        if self.command is None:
            raise CommandNotSetError("command is nil")
        self.command.stdout = writer

    def attach_stderr(self, writer: Any) -> None:
        """Send the command's standard error to ``writer``.

        Raises CommandNotSetError if there is no command.
        """
        self.error_writer = writer
        if self.command is None:
            raise CommandNotSetError("command is nil")
        self.command.stderr = writer


@dataclass
class RunExec:
    """The processes of one app of a run and the ports its sidecar uses."""

    dapr_cmd: CmdProcess | None
    app_cmd: CmdProcess | None
    app_id: str
    dapr_http_port: int
    dapr_grpc_port: int
    dapr_metric_port: int


@dataclass
class RunOutput:
    """The commands of a single run and the ports its sidecar listens on."""

    dapr_cmd: Command
    dapr_http_port: int
    dapr_grpc_port: int
    app_id: str
    app_cmd: Command | None = None
    dapr_err: BaseException | None = None
    app_err: BaseException | None = None


def new_run_exec(
    config: RunConfig,
    dapr_cmd_process: CmdProcess | None,
    app_cmd_process: CmdProcess | None,
) -> RunExec:
    """Bundle the processes of an app with the ports from its configuration."""
    return RunExec(
        dapr_cmd=dapr_cmd_process,
        app_cmd=app_cmd_process,
        app_id=config.app_id,
        dapr_http_port=config.http_port,
        dapr_grpc_port=config.grpc_port,
        dapr_metric_port=config.metrics_port,
    )


def get_dapr_cmd_process(config: RunConfig) -> CmdProcess:
    """Return the sidecar process of a configuration."""
    return CmdProcess(command=get_dapr_command(config))


def get_app_cmd_process(config: RunConfig) -> CmdProcess:
    """Return the app process of a configuration; its command may be None."""
    return CmdProcess(command=get_app_command(config))


def new_output(config: RunConfig) -> RunOutput:
    """Apply defaults, validate the configuration and build both commands.

    The configuration is updated in place. Raises ConfigError if it is invalid.
    """
    config.set_default_from_schema()
    config.validate()
    dapr_cmd = get_dapr_command(config)
    app_cmd = get_app_command(config)
    return RunOutput(
        dapr_cmd=dapr_cmd,
        app_cmd=app_cmd,
        app_id=config.app_id,
        dapr_http_port=config.http_port,
        dapr_grpc_port=config.grpc_port,
    )