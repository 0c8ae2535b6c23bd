[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ytdatanode"
version = "1.0.8"
description = "Storage data node toolkit: message framing, token task pools, node configuration, log streaming and self-update"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["storage", "data node", "shards", "token pool", "rate limiting", "distributed storage"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ytdatanode = "ytdatanode.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ytdatanode"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
