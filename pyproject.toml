[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "splashsurf"
version = "0.1.0"
description = "Command line front end and helpers for surface reconstruction of SPH particle data"
requires-python = ">=3.10"
keywords = ["sph", "surface reconstruction", "particles", "bounding box", "command line"]
classifiers = [
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Intended Audience :: Science/Research",
    "Environment :: Console",
    "Topic :: Scientific/Engineering :: Visualization",
]
dependencies = [
    "tqdm",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
splashsurf = "splashsurf.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["splashsurf"]

[tool.pytest.ini_options]
addopts = "-ra"
