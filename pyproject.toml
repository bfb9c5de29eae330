[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ucoresim"
version = "0.1.0"
description = "A simulated teaching-kernel boot path with first-fit, best-fit and buddy physical page allocators"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kernel",
    "memory-management",
    "buddy-allocator",
    "first-fit",
    "best-fit",
    "device-tree",
    "printf",
    "simulation",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ucoresim = "ucoresim.kernel:main"

[tool.hatch.build.targets.wheel]
packages = ["ucoresim"]

[tool.pytest.ini_options]
addopts = "-ra"
