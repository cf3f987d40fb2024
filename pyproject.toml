[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vmhandler"
version = "0.1.0"
description = "Framework for writing virtual machine extension handlers: operation dispatch, sequence numbers, settings and status reporting."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "virtual machine",
    "extension",
    "handler",
    "guest agent",
    "status",
    "sequence number",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Operating System :: Microsoft :: Windows",
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

[tool.hatch.build.targets.wheel]
packages = ["vmhandler"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
