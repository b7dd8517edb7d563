[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uthreads"
version = "0.1.0"
description = "A quantum-based, round-robin user-level thread scheduler built on cooperative generators"
requires-python = ">=3.10"
dependencies = []
keywords = ["threads", "scheduler", "round-robin", "quantum", "coroutines", "generators"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
uthreads-demo = "uthreads.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["uthreads"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
