[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "daprcli"
version = "0.1.0"
description = "Self-hosted helpers for running, listing, invoking and publishing to local Dapr sidecars"
requires-python = ">=3.10"
keywords = ["dapr", "sidecar", "microservices", "pubsub", "run-template"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "pyyaml",
    "psutil",
    "filelock",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["daprcli"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
