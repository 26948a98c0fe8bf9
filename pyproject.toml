[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wpool"
version = "0.1.0"
description = "A thread-based batched worker pool with segmented FIFO and revolving priority-bucket schedulers"
requires-python = ">=3.10"
dependencies = []
keywords = ["worker pool", "threads", "scheduler", "batching", "queue", "priority"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wpool"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
