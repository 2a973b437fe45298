[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgstat_exporter"
version = "0.1.0"
description = "PostgreSQL statistics collectors that turn catalog views into Prometheus-style metrics"
requires-python = ">=3.10"
keywords = ["postgresql", "prometheus", "metrics", "exporter", "monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "semver",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["pgstat_exporter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
