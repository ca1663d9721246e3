[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "owonmeter"
version = "1.0.0"
description = "Live display and remote control for the OWON XDM-1041 bench multimeter over its serial SCPI interface"
requires-python = ">=3.10"
keywords = ["owon", "xdm-1041", "multimeter", "scpi", "serial", "instrument"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: X11 Applications",
    "Intended Audience :: Science/Research",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Instrument Drivers",
]
dependencies = [
    "pyserial>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
]

[project.scripts]
owonmeter = "owonmeter.app:main"

[tool.hatch.build.targets.wheel]
packages = ["owonmeter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
