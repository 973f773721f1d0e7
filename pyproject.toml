[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nixpic"
version = "0.1.0"
description = "Binary file I/O, JSON-style metadata records and particle containers for particle-in-cell simulations"
requires-python = ">=3.10"
keywords = ["particle-in-cell", "plasma", "simulation", "binary-io", "counting-sort", "numpy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Physics",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["nixpic"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
