[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "frdocker"
version = "0.1.0"
description = "Docker monitoring and fault localization for microservice systems"
requires-python = ">=3.10"
keywords = [
    "docker",
    "monitoring",
    "microservices",
    "fault-localization",
    "teda",
    "anomaly-detection",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "httpx",
    "pymongo",
    "termcolor",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
frdocker = "frdocker.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["frdocker"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
