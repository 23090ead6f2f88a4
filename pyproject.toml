[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clifbuild"
version = "0.1.0"
description = "Build driver for a Cranelift-based rustc codegen backend: prepares sources, builds the backend and sysroot, and runs the test suites."
requires-python = ">=3.10"
dependencies = []
keywords = ["rust", "cranelift", "codegen", "sysroot", "build", "cargo", "profile"]
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
    "Programming Language :: Rust",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
clifbuild = "clifbuild.cli:main"
clif-filter-profile = "clifbuild.filter_profile:main"

[tool.hatch.build.targets.wheel]
packages = ["clifbuild"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
