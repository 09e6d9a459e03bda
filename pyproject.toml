[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "schoolhistory"
version = "0.1.0"
description = "Change-history tracking for records: history events, a SQLite history store, event publishing and consuming, gateway configuration and Redis JSON caching."
requires-python = ">=3.10"
keywords = ["history", "audit", "change-tracking", "kafka", "redis", "cache", "sqlite"]
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
]
dependencies = [
    "redis",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["schoolhistory"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]
