[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fredsys"
version = "0.1.0"
description = "Server core for scheduling hardware tasks on partially reconfigurable FPGA slots"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "fpga",
    "partial-reconfiguration",
    "scheduler",
    "hardware-acceleration",
    "event-handler",
    "embedded",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fredsys"]

[tool.hatch.build.targets.sdist]
include = ["fredsys", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 99
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
