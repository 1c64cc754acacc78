[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "magi"
version = "0.1.0"
description = "Building blocks for an OP stack rollup node: engine API types, L1 blob decoding, beacon blob fetching, system config updates, p2p block gossip validation and output roots."
requires-python = ">=3.10"
keywords = ["optimism", "op-stack", "rollup", "ethereum", "engine-api", "blobs", "eip-4844", "snappy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Framework :: AsyncIO",
    "Topic :: Internet",
]
dependencies = [
    "httpx",
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[tool.hatch.build.targets.wheel]
packages = ["magi"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
