"""Self-hosted Dapr helpers: runtime paths, run configuration and commands, sidecar listing, invocation, publishing and run templates."""

__version__ = "0.1.0"