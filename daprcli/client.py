"""Client for sidecars running on this machine: service invocation and publishing."""

from __future__ import annotations

import http.client
import json
import socket as socketlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlsplit

from daprcli.listing import ListOutput, MetadataFetcher, list_instances

RUNTIME_API_VERSION = "1.0"

_CLOUD_EVENT_KEYS = ("id", "source", "specversion", "type", "data")


class DaprClientError(RuntimeError):
    """A request to a Dapr sidecar failed."""


class DaprProcess(Protocol):
    """Something that lists the running Dapr instances."""

    def list(self) -> list[ListOutput]:
        ...


@dataclass
class LocalDaprProcess:
    """Lists the daprd processes running on this machine."""

    fetch_metadata: MetadataFetcher | None = None

    def list(self) -> list[ListOutput]:
        return list_instances(self.fetch_metadata)


class _UnixHTTPConnection(http.client.HTTPConnection):
    def __init__(self, socket_path: str, host: str = "localhost") -> None:
        super().__init__(host)
        self._socket_path = socket_path

    def connect(self) -> None:
        sock = socketlib.socket(socketlib.AF_UNIX, socketlib.SOCK_STREAM)
        try:
            sock.connect(self._socket_path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


def _send(
    verb: str,
    url: str,
    body: bytes,
    headers: Mapping[str, str],
    socket_path: str | None = None,
) -> tuple[int, str, bytes]:
    parts = urlsplit(url)
    target = parts.path or "/"
    if parts.query:
        target += "?" + parts.query
    if socket_path:
        conn: http.client.HTTPConnection = _UnixHTTPConnection(
            socket_path, parts.hostname or "localhost"
        )
    else:
        conn = http.client.HTTPConnection(parts.hostname, parts.port)
    try:
        conn.request(verb, target, body=body, headers=dict(headers))
        response = conn.getresponse()
        return response.status, response.reason, response.read()
    finally:
        conn.close()


def _as_bytes(data: bytes | str | None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


def _is_cloud_event(payload: bytes) -> bool:
    try:
        document = json.loads(payload)
    except ValueError:
        return False
    return isinstance(document, dict) and all(key in document for key in _CLOUD_EVENT_KEYS)


def get_socket(path: str, app_id: str, protocol: str) -> str:
    """Return the Unix domain socket file of an app's sidecar for a protocol."""
    return f"{path}/dapr-{app_id}-{protocol}.socket"


def make_endpoint(instance: ListOutput, method: str) -> str:
    """Return the service invocation URL of a method on an instance."""
    return (
        f"http://127.0.0.1:{instance.http_port}/v{RUNTIME_API_VERSION}"
        f"/invoke/{instance.app_id}/method/{method}"
    )


def get_dapr_instance(instances: Iterable[ListOutput], publish_app_id: str) -> ListOutput:
    """Return the first instance with the app ID; raise DaprClientError if none."""
    for instance in instances:
        if instance.app_id == publish_app_id:
            return instance
    raise DaprClientError("couldn't find a running Dapr instance")


def get_query_params(metadata: Mapping[str, Any] | None) -> str:
    """Return ``?metadata.k=v&...`` for the metadata, or an empty string."""
    if not metadata:
        return ""
    return "?" + "&".join(
        f"metadata.{key}={_format_value(value)}" for key, value in metadata.items()
    )


class StandaloneClient:
    """Invokes methods and publishes events through locally running sidecars."""

    def __init__(self, process: DaprProcess | None = None) -> None:
        self._process = process if process is not None else LocalDaprProcess()

    def invoke(
        self,
        app_id: str,
        method: str,
        data: bytes | str | None = b"",
        verb: str = "POST",
        socket: str = "",
    ) -> str:
        """Invoke a method of an app and return the response body.

        Raises DaprClientError if the app is not running or the call fails.
        """
        for instance in self._process.list():
            if instance.app_id != app_id:
                continue
            socket_path = get_socket(socket, app_id, "http") if socket else None
            status, reason, body = _send(
                verb,
                make_endpoint(instance, method),
                _as_bytes(data),
                {"Content-Type": "application/json"},
                socket_path,
            )
            if status < 200 or status >= 400:
                raise DaprClientError(f"{status} {reason}")
            return body.decode("utf-8")
        raise DaprClientError(f"app ID {app_id} not found")

    def publish(
        self,
        publish_app_id: str,
        pubsub_name: str,
        topic: str,
        payload: bytes | str | None = b"",
        socket: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Publish a payload to a topic through the sidecar of an app.

        Raises ValueError for a missing name and DaprClientError if no instance
        is found or the sidecar rejects the event.
        """
        if not publish_app_id:
            raise ValueError("publishAppID is missing")
        if not pubsub_name:
            raise ValueError("pubsubName is missing")
        if not topic:
            raise ValueError("topic is missing")

        query_params = get_query_params(metadata)
        instance = get_dapr_instance(self._process.list(), publish_app_id)

        path = f"/v{RUNTIME_API_VERSION}/publish/{pubsub_name}/{topic}{query_params}"
        if socket:
            url = f"http://unix{path}"
            socket_path: str | None = get_socket(socket, publish_app_id, "http")
        else:
            url = f"http://localhost:{instance.http_port}{path}"
            socket_path = None

        body = _as_bytes(payload)
        content_type = (
            "application/cloudevents+json" if _is_cloud_event(body) else "application/json"
        )

        status, _, _ = _send("POST", url, body, {"Content-Type": content_type}, socket_path)
        if status >= 300 or status < 200:
            print(url)
            raise DaprClientError(
                f"unexpected status code {status} on publishing to {topic} in {pubsub_name}"
            )