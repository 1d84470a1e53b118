[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wbkit"
version = "0.1.0"
description = "Service toolkit: coded errors with stack traces, structured logging, graceful shutdown, database helpers and a configurable application runner."
requires-python = ">=3.10"
keywords = [
    "errors",
    "error-codes",
    "logging",
    "graceful-shutdown",
    "configuration",
    "cli",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Topic :: System :: Logging",
]
dependencies = [
    "pyyaml",
    "sqlalchemy",
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["wbkit"]

[tool.hatch.build.targets.sdist]
include = [
    "wbkit",
    "tests",
    "pyproject.toml",
    "README.md",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
