# daprcli

Python helpers for working with Dapr in self-hosted mode. The package:

- finds the runtime installation directory and the paths inside it,
- builds the `daprd` command and the app command from a run configuration,
- lists the `daprd` processes running on this machine,
- invokes methods and publishes events through a local sidecar,
- reads multi-app run template files,
- builds the dashboard command, and has small container runtime and bundle helpers.

## Installation

```
pip install daprcli
```

For development, install the test extra and run the tests:

```
pip install -e ".[test]"
pytest
```

## Runtime locations (`daprcli.common`)

```python
from daprcli.common import get_dapr_runtime_path, get_dapr_components_path, get_dapr_config_path

dapr_dir = get_dapr_runtime_path("")      # given path, then $DAPR_RUNTIME_PATH, then home; ".dapr" appended
components = get_dapr_components_path(dapr_dir)
config = get_dapr_config_path(dapr_dir)
```

`lookup_binary_file_path(install_path, "daprd")` gives the path of a binary in
the installation's `bin` directory (with `.exe` on Windows).

Commands are returned as `Command` records: executable `path`, `args`
(argv, first element included), `cwd`, `env` and the three streams.
`Command.start()` starts the program with `subprocess.Popen` and returns the
process.

## Building run commands (`daprcli.run`, `daprcli.runexec`)

```python
from daprcli.run import RunConfig
from daprcli.runexec import new_output

config = RunConfig(
    app_id="orders",
    app_port=3000,
    command=["python", "app.py"],
    resources_paths=["./components"],   # must exist
)
output = new_output(config)    # applies defaults, validates, picks free ports
print(output.dapr_cmd.args)    # the daprd command line
print(output.app_cmd.env)      # app environment with APP_ID, DAPR_HTTP_PORT, ...
```

`new_output` changes the configuration in place: unset fields get their
defaults (`RunConfig.set_default_from_schema`), then `RunConfig.validate`
generates an app ID if none is given, checks the resources paths (each must
exist, and YAML files in them must parse), picks free ports for ports not set,
rejects ports already in use, and completes the placement address. It raises
`daprcli.run.ConfigError` on a bad configuration.

`RunConfig.get_args()` turns the configuration into `daprd` flags (adding
`--enable-mtls --sentry-address localhost:50001` when the config file enables
mTLS), and `RunConfig.get_env()` gives the `KEY=value` entries passed to the app.
`get_dapr_cmd_process` / `get_app_cmd_process` wrap the commands in a
`CmdProcess`, whose `attach_stdout` / `attach_stderr` set where output goes.

## Listing, invoking and publishing (`daprcli.listing`, `daprcli.client`)

```python
from daprcli.client import StandaloneClient, LocalDaprProcess

client = StandaloneClient(LocalDaprProcess())
print(client.invoke("orders", "status", b"", "GET", ""))
client.publish("orders", "pubsub", "created", b'{"id": 1}', "", {"rawPayload": "true"})
```

`list_instances()` inspects the running `daprd` processes and reports their
app IDs, ports, PIDs and creation times as `ListOutput` records. Fields that
come from a sidecar's extended metadata (app command, app and CLI PIDs, log
paths, run template) are filled only when a `fetch_metadata(http_port, app_id,
socket)` callable is passed, e.g. `LocalDaprProcess(fetch_metadata=...)`.

Passing a directory as the socket argument makes the client talk to the
sidecar over its Unix domain socket. Payloads that look like CloudEvents are
sent as `application/cloudevents+json`. Failures raise
`daprcli.client.DaprClientError`; missing names in `publish` raise `ValueError`.

## Run template files (`daprcli.runfile_parser`, `daprcli.runfile`)

```python
from daprcli.runfile_parser import RunFileConfig

apps = RunFileConfig().get_apps("dapr.yaml")
for app in apps:
    print(app.app_id, app.resources_paths, app.config_file)
```

`get_apps` checks that `version` and each `appDirPath` are present, resolves
relative paths (common section against the template's directory, app paths
against `appDirPath`), picks resources and config paths by precedence (app,
then `<appDirPath>/.dapr`, then common, then the installation defaults),
fills unset app options from the `common` section, merges environments, and
defaults the app ID to the directory name. Each `App` can open per-app log
files under `<appDirPath>/.dapr/logs` with `create_app_log_file` and
`create_daprd_log_file`, or write to standard output when the destination is
`console`.

## Other helpers

- `daprcli.dashboard.new_dashboard_cmd(install_path, port)` – the dashboard command; port `0` picks a free port.
- `daprcli.container` – check, pull and load images with `docker` or `podman`.
- `daprcli.bundle.read_bundle_details(path)` – read and validate a bundle `details.json`.
- `daprcli.rundata.delete_run_data_file()` – remove the old run data file from the temporary directory.

## What this package does not do

There is no command-line program: everything is used from Python. It does not
install, initialise or uninstall the runtime, does not fetch sidecar metadata
on its own (supply `fetch_metadata`), and does not start or supervise the
processes of a run beyond `Command.start()`.