[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "procvisor"
version = "0.1.0"
description = "Building blocks for process supervision: supervisord-style configuration, events and event listeners, syslog writers, readiness checkers and a pid proxy"
requires-python = ">=3.10"
dependencies = []
keywords = ["supervisor", "process", "daemon", "events", "syslog", "configuration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
procvisor-pidproxy = "procvisor.pidproxy:main"

[tool.hatch.build.targets.wheel]
packages = ["procvisor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
