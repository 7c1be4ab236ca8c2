[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sim8086"
version = "0.1.0"
description = "Decoder and simulator for a subset of the Intel 8086 instruction set"
requires-python = ">=3.10"
dependencies = []
keywords = ["8086", "x86", "emulator", "disassembler", "simulator"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sim8086 = "sim8086.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sim8086"]

[tool.pytest.ini_options]
addopts = "-ra"
