"""Parsing and resolving a run template file that describes several apps."""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from daprcli.common import (
    DEFAULT_CONFIG_FILE_NAME,
    DEFAULT_DAPR_DIR_NAME,
    DEFAULT_RESOURCES_DIR_NAME,
    get_dapr_components_path,
    get_dapr_config_path,
    get_dapr_runtime_path,
)
from daprcli.run import (
    DEFAULT_APP_LOG_DEST,
    DEFAULT_DAPRD_LOG_DEST,
    ConfigError,
    LogDestType,
    SharedRunConfig,
)
from daprcli.runfile import App, Common

_TRUE_WORDS = frozenset({"y", "Y", "yes", "Yes", "YES", "true", "True", "TRUE", "on", "On", "ON"})
_FALSE_WORDS = frozenset({"n", "N", "no", "No", "NO", "false", "False", "FALSE", "off", "Off", "OFF"})
_NULL_WORDS = frozenset({"", "~", "null", "Null", "NULL"})


def _scalar(raw: Any, key: str) -> str:
    if isinstance(raw, (dict, list)):
        raise ConfigError(
            f"error in parsing the provided app config file: {key!r} must be a scalar"
        )
    return str(raw)


def _convert(current: Any, raw: Any, key: str) -> Any:
    """Convert a raw YAML value (loaded as strings) to the type of ``current``."""
    if isinstance(current, bool):
        text = _scalar(raw, key)
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
        raise ConfigError(
            f"error in parsing the provided app config file: {key!r} is not a boolean: {text}"
        )
    if isinstance(current, int):
        text = _scalar(raw, key)
        try:
            return int(text.replace("_", ""), 0)
        except ValueError:
            try:
                return int(text)
            except ValueError:
                raise ConfigError(
                    f"error in parsing the provided app config file: "
                    f"{key!r} is not an integer: {text}"
                ) from None
    if isinstance(current, LogDestType):
        return LogDestType(_scalar(raw, key))
    if isinstance(current, str):
        return _scalar(raw, key)
    if isinstance(current, list):
        if not isinstance(raw, list):
            raise ConfigError(f"error in parsing the provided app config file: {key!r} must be a list")
        return [_scalar(item, key) for item in raw]
    if isinstance(current, dict):
        if not isinstance(raw, dict):
            raise ConfigError(f"error in parsing the provided app config file: {key!r} must be a mapping")
        return {_scalar(k, key): _scalar(v, key) for k, v in raw.items()}
    return raw


def _populate(target: Any, document: Any, section: str) -> Any:
    if document is None or (isinstance(document, str) and document in _NULL_WORDS):
        return target
    if not isinstance(document, Mapping):
        raise ConfigError(f"error in parsing the provided app config file: {section} must be a mapping")
    for f in fields(target):
        key = f.metadata.get("yaml")
        if not key or key not in document:
            continue
        raw = document[key]
        if raw is None or (isinstance(raw, str) and raw in _NULL_WORDS):
            continue
        setattr(target, f.name, _convert(getattr(target, f.name), raw, key))
    return target


def _validate_file_path(path: str) -> None:
    try:
        os.stat(path)
    except OSError as err:
        raise ConfigError(f"error in validating the path {path}: {err}") from err


def _resolve_home_dir(path: str) -> str:
    if path.startswith("~"):
        return path.replace("~", str(Path.home()), 1)
    return path


def _resolve_path(base_dir: str, path: str) -> str:
    """Make a path absolute against ``base_dir`` and check that it exists."""
    if not path:
        return path
    path = _resolve_home_dir(path)
    if not os.path.isabs(path):
        path = os.path.join(base_dir, path)
    path = os.path.normpath(path)
    _validate_file_path(path)
    return path


def _resolve_attrs(target: Any, base_dir: str, *attrs: str) -> None:
    for attr in attrs:
        setattr(target, attr, _resolve_path(base_dir, getattr(target, attr)))


def _resolve_shared_paths(target: SharedRunConfig, base_dir: str) -> None:
    _resolve_attrs(target, base_dir, "config_file", "resources_path", "daprd_install_path")
    target.resources_paths = [_resolve_path(base_dir, p) for p in target.resources_paths]
    if target.resources_path.strip():
        target.resources_paths.append(target.resources_path)


def get_base_path_from_abs_path(app_dir_path: str) -> str:
    """Return the last element of an absolute path; raise ConfigError if it is relative."""
    if os.path.isabs(app_dir_path):
        return os.path.basename(os.path.normpath(app_dir_path))
    raise ConfigError(
        f'error in getting the base path from the provided appDirPath "{app_dir_path}": '
    )


@dataclass
class RunFileConfig:
    """The whole content of a run template file."""

    common: Common = field(default_factory=Common)
    apps: list[App] = field(default_factory=list)
    version: int = 0
    name: str = ""

    def parse_apps_config(self, run_file_path: str) -> None:
        """Read the run file into this configuration.

        Raises OSError if it cannot be read and ConfigError if it does not parse.
        """
        with open(run_file_path, encoding="utf-8") as fh:
            text = fh.read()
        try:
            document = yaml.load(text, Loader=yaml.BaseLoader)
        except yaml.YAMLError as err:
            raise ConfigError(f"error in parsing the provided app config file: {err}") from err
        if document is None:
            return
        if not isinstance(document, Mapping):
            raise ConfigError("error in parsing the provided app config file: not a mapping")

        if "common" in document:
            self.common = _populate(Common(), document["common"], "common")
        if "apps" in document:
            raw_apps = document["apps"]
            if raw_apps in (None, "") or (isinstance(raw_apps, str) and raw_apps in _NULL_WORDS):
                self.apps = []
            elif not isinstance(raw_apps, list):
                raise ConfigError("error in parsing the provided app config file: apps must be a list")
            else:
                self.apps = [_populate(App(), raw, "app") for raw in raw_apps]
        if "version" in document:
            self.version = _convert(0, document["version"], "version")
        if "name" in document:
            self.name = _convert("", document["name"], "name")

    def validate_run_config(self, run_file_path: str) -> None:
        """Check required fields and make every path absolute and existing.

        Paths in the common section are relative to the run file; paths of an
        app are relative to its ``appDirPath``. Raises ConfigError.
        """
        base_dir = os.path.abspath(os.path.dirname(run_file_path))
        if self.version == 0:
            raise ConfigError("required field 'version' not found in the provided run template file")

        _resolve_shared_paths(self.common, base_dir)

        for app in self.apps:
            if not app.app_dir_path:
                raise ConfigError(
                    "required field 'appDirPath' not found in the provided app config file"
                )
            app.app_dir_path = _resolve_path(base_dir, app.app_dir_path)
            _resolve_shared_paths(app, app.app_dir_path)

    def _resolve_resources_file_path(self, app: App) -> None:
        if app.resources_paths:
            return
        local_dir = os.path.join(
            app.app_dir_path, DEFAULT_DAPR_DIR_NAME, DEFAULT_RESOURCES_DIR_NAME
        )
        if os.path.exists(local_dir):
            app.resources_paths = [local_dir]
        elif self.common.resources_paths:
            app.resources_paths = list(self.common.resources_paths)
        else:
            app.resources_paths = [
                get_dapr_components_path(self._runtime_path(app.daprd_install_path))
            ]

    def _resolve_config_file_path(self, app: App) -> None:
        if app.config_file:
            return
        local_config = os.path.join(app.app_dir_path, DEFAULT_DAPR_DIR_NAME, DEFAULT_CONFIG_FILE_NAME)
        if os.path.exists(local_config):
            app.config_file = local_config
        elif self.common.config_file.strip():
            app.config_file = self.common.config_file
        else:
            app.config_file = get_dapr_config_path(self._runtime_path(app.daprd_install_path))

    @staticmethod
    def _runtime_path(install_path: str) -> str:
        try:
            return get_dapr_runtime_path(install_path)
        except (RuntimeError, KeyError, OSError) as err:
            raise ConfigError(f"error getting dapr install path: {err}") from err

    def resolve_resources_and_config_file_paths(self) -> None:
        """Pick each app's resources paths and config file by precedence.

        App settings first, then the app's ``.dapr`` directory, then the common
        section, then the Dapr installation defaults. Raises ConfigError.
        """
        for app in self.apps:
            if not app.daprd_install_path:
                app.daprd_install_path = self.common.daprd_install_path
            try:
                self._resolve_resources_file_path(app)
            except ConfigError as err:
                raise ConfigError(
                    f'error in resolving resources path for app "{app.app_id}": {err}'
                ) from err
            try:
                self._resolve_config_file_path(app)
            except ConfigError as err:
                raise ConfigError(
                    f'error in resolving config file path for app "{app.app_id}": {err}'
                ) from err

    def _merge_common_and_apps_shared_run_config(self) -> None:
        for f in fields(SharedRunConfig):
            common_value = getattr(self.common, f.name)
            for app in self.apps:
                if not getattr(app, f.name):
                    setattr(app, f.name, copy.copy(common_value))

    def _merge_common_and_apps_env(self) -> None:
        for app in self.apps:
            for key, value in self.common.env.items():
                app.env.setdefault(key, value)

    def _set_default_fields(self) -> None:
        for app in self.apps:
            if not app.app_id:
                try:
                    app.app_id = get_base_path_from_abs_path(app.app_dir_path)
                except ConfigError as err:
                    raise ConfigError(f"error in setting the app id: {err}") from err
            if not app.daprd_log_destination:
                app.daprd_log_destination = DEFAULT_DAPRD_LOG_DEST
            else:
                app.daprd_log_destination = LogDestType(app.daprd_log_destination).validate()
            if not app.app_log_destination:
                app.app_log_destination = DEFAULT_APP_LOG_DEST
            else:
                app.app_log_destination = LogDestType(app.app_log_destination).validate()

    def get_apps(self, run_file_path: str) -> list[App]:
        """Parse, validate and resolve the run file and return its apps.

        Each app gets the common section's values for the options it leaves
        unset, and the common environment under its own.
        """
        self.parse_apps_config(run_file_path)
        self.validate_run_config(run_file_path)
        self.resolve_resources_and_config_file_paths()
        self._merge_common_and_apps_shared_run_config()
        self._merge_common_and_apps_env()
        self._set_default_fields()
        return self.apps