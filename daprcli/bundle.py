"""Reading the details file of an offline installation bundle."""

from __future__ import annotations

import json
from dataclasses import dataclass

BUNDLE_DETAILS_FILE_NAME = "details.json"

_JSON_KEYS = {
    "daprd": "runtime_version",
    "dashboard": "dashboard_version",
    "cli": "cli_version",
    "daprBinarySubDir": "binary_sub_dir",
    "dockerImageSubDir": "image_sub_dir",
    "daprImageName": "dapr_image_name",
    "daprImageFileName": "dapr_image_file_name",
}

_REQUIRED = (
    "runtime_version",
    "dashboard_version",
    "dapr_image_name",
    "dapr_image_file_name",
    "binary_sub_dir",
    "image_sub_dir",
)


@dataclass(frozen=True)
class BundleDetails:
    """Versions and locations described by a bundle's details file."""

    runtime_version: str | None = None
    dashboard_version: str | None = None
    cli_version: str | None = None
    binary_sub_dir: str | None = None
    image_sub_dir: str | None = None
    dapr_image_name: str | None = None
    dapr_image_file_name: str | None = None

    @property
    def placement_image_name(self) -> str:
        return self.dapr_image_name or ""

    @property
    def placement_image_file_name(self) -> str:
        return self.dapr_image_file_name or ""


def read_bundle_details(details_file_path: str) -> BundleDetails:
    """Read and validate a bundle details file.

    Raises OSError if the file cannot be read and ValueError if it is not valid
    JSON or lacks a required field.
    """
    with open(details_file_path, encoding="utf-8") as fh:
        data = json.load(fh)

    if not isinstance(data, dict):
        raise ValueError(f"invalid details in {details_file_path}")

    values: dict[str, str | None] = {}
    for key, attr in _JSON_KEYS.items():
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"invalid value for {key!r} in {details_file_path}")
        values[attr] = value

    details = BundleDetails(**values)
    if any(not (getattr(details, attr) or "").strip() for attr in _REQUIRED):
        raise ValueError(f"required fields are missing in {details_file_path}")
    return details