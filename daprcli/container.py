"""Helpers that drive a container runtime such as Docker or Podman."""

from __future__ import annotations

import os
import shutil
import subprocess
from typing import BinaryIO

_RUN_ERROR_EXIT_CODE = 125
_COMMAND_NOT_FOUND_EXIT_CODE = 127


class ContainerError(RuntimeError):
    """A container runtime operation failed."""


def container_runtime_cmd(container_runtime: str) -> str:
    """Return the executable for a container runtime name."""
    if container_runtime.strip().lower() == "podman":
        return "podman"
    return "docker"


def _run_cmd_and_wait(cmd: str, *args: str) -> str:
    completed = subprocess.run(
        [cmd, *args], capture_output=True, text=True, check=False
    )
    if completed.returncode != 0:
        raise subprocess.CalledProcessError(
            completed.returncode, completed.args, completed.stdout, completed.stderr
        )
    return completed.stdout


def load_container_from_reader(stream: BinaryIO, container_runtime: str) -> None:
    """Feed an image archive to ``<runtime> load``.

    Raises CalledProcessError if the runtime exits with an error.
    """
    args = [container_runtime_cmd(container_runtime), "load"]
    proc = subprocess.Popen(args, stdin=subprocess.PIPE)
    try:
        shutil.copyfileobj(stream, proc.stdin)
    except BaseException:
        proc.stdin.close()
        proc.kill()
        proc.wait()
        raise
    proc.stdin.close()
    returncode = proc.wait()
    if returncode:
        raise subprocess.CalledProcessError(returncode, args)


def load_container(directory: str, image_file_name: str, container_runtime: str) -> None:
    """Load an image archive stored in a directory into the container runtime."""
    try:
        image_file = open(os.path.join(directory, image_file_name), "rb")
    except OSError as err:
        raise ContainerError(
            f"fail to read docker image file {image_file_name}: {err}"
        ) from err
    with image_file:
        try:
            load_container_from_reader(image_file, container_runtime)
        except (OSError, subprocess.CalledProcessError) as err:
            raise ContainerError(
                f"fail to load docker image from file {image_file_name}: {err}"
            ) from err


def confirm_container_is_running_or_exists(
    container_name: str, is_running: bool, runtime_cmd: str
) -> bool:
    """Tell whether a container exists, or with ``is_running``, that it runs.

    Raises ContainerError if the runtime cannot be queried, or if ``is_running``
    is set and the container is not running.
    """
    args = ["ps", "--all", "--filter", f"name={container_name}"]
    if is_running:
        args += ["--filter", "status=running"]
    args += ["--format", "{{.Names}}"]

    try:
        response = _run_cmd_and_wait(runtime_cmd, *args)
    except (OSError, subprocess.CalledProcessError) as err:
        raise ContainerError(
            f"unable to confirm whether {container_name} is running or exists. error\n{err}"
        ) from err

    response = response.removesuffix("\n")
    if response != container_name:
        if is_running:
            raise ContainerError(f"container {container_name} is not running")
        return False
    return True


def is_container_run_error(err: BaseException) -> bool:
    """Tell whether an error is the runtime's own failure to run a container."""
    return (
        isinstance(err, subprocess.CalledProcessError)
        and err.returncode == _RUN_ERROR_EXIT_CODE
    )


def parse_container_runtime_error(component: str, err: BaseException) -> BaseException:
    """Turn a runtime exit status into a readable error, or return the error unchanged."""
    if isinstance(err, subprocess.CalledProcessError):
        if err.returncode == _RUN_ERROR_EXIT_CODE:
            return ContainerError(f"failed to launch {component}. Is it already running?")
        if err.returncode == _COMMAND_NOT_FOUND_EXIT_CODE:
            return ContainerError(
                f"failed to launch {component}. Make sure Docker is installed and running"
            )
    return err


def try_pull_image(image_name: str, container_runtime: str) -> bool:
    """Pull an image; return whether it succeeded."""
    try:
        _run_cmd_and_wait(container_runtime_cmd(container_runtime), "pull", image_name)
    except (OSError, subprocess.CalledProcessError):
        return False
    return True