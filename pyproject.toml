[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nodekeeper"
version = "1.4.0"
description = "Maintenance toolkit for blockchain nodes: pruning, snapshots, restore, state sync and health tracking"
requires-python = ">=3.11"
keywords = ["cosmos", "validator", "node", "maintenance", "snapshot", "pruning", "state-sync", "systemd"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "httpx",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[tool.hatch.build.targets.wheel]
packages = ["nodekeeper"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
