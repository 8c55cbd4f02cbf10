[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "x86tables"
version = "0.1.0"
description = "Build and inspect x86_64 descriptor tables: GDT, IDT, segment descriptors and error codes."
requires-python = ">=3.10"
dependencies = []
keywords = ["x86_64", "amd64", "gdt", "idt", "descriptor", "kernel", "osdev"]
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
    "Topic :: System :: Operating System Kernels",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["x86tables"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
