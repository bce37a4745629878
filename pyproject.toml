[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "juicekit"
version = "0.1.0"
description = "Setting values, ambient sessions, statement handlers with batching, and transaction scopes for SQL mappers"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "database", "mapper", "transaction", "batch", "prepared-statement"]
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
    "Topic :: Database :: Front-Ends",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["juicekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
