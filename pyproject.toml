[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rgbkit"
version = "0.6.1"
description = "Game Boy ROM header fixer with cartridge (MBC) type parsing"
requires-python = ">=3.10"
dependencies = []
keywords = ["gameboy", "rom", "header", "checksum", "mbc", "cartridge"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Assemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rgbfix = "rgbkit.fixcli:main"

[tool.hatch.build.targets.wheel]
packages = ["rgbkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
