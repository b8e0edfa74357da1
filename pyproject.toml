[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sdistrib"
version = "0.0.1"
description = "Send image-generation jobs from clients to workers through a least-recently-used ZeroMQ broker"
requires-python = ">=3.10"
keywords = ["zeromq", "msgpack", "distributed", "job queue", "broker", "load balancing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
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
dependencies = [
    "pyzmq",
    "msgpack",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
sdistrib-client = "sdistrib.client:main"
sdistrib-manager = "sdistrib.manager:main"

[tool.hatch.build.targets.wheel]
packages = ["sdistrib"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
