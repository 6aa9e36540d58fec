[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xlinekv"
version = "0.1.0"
description = "Node state, key-range conflict detection, request validation and watch handling for a distributed key-value server"
requires-python = ">=3.10"
dependencies = []
keywords = ["key-value", "consensus", "watch", "transactions", "key-range"]
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
    "Framework :: AsyncIO",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["xlinekv"]

[tool.pytest.ini_options]
addopts = "-ra"
