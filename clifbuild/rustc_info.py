"""Queries about the installed Rust toolchain."""

from __future__ import annotations

import subprocess
from pathlib import Path


def _capture(args: list[str]) -> str:
    result = subprocess.run(
        args, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, check=False
    )
    return result.stdout.decode("utf-8")


def get_rustc_version() -> str:
    return _capture(["rustc", "-V"])


def parse_host_triple(version_info: str) -> str:
    """Extract the host triple from the output of ``rustc -vV``."""
    for line in version_info.splitlines():
        if line.startswith("host"):
            fields = line.split(":")
            if len(fields) < 2:
                break
            return fields[1].strip()
    raise ValueError("no host triple in rustc version output")


def get_host_triple() -> str:
    return parse_host_triple(_capture(["rustc", "-vV"]))


def _rustup_which(tool: str) -> Path:
    return Path(_capture(["rustup", "which", tool]).strip())


def get_cargo_path() -> Path:
    return _rustup_which("cargo")


def get_rustc_path() -> Path:
    return _rustup_which("rustc")


def get_rustdoc_path() -> Path:
    return _rustup_which("rustdoc")


def get_default_sysroot() -> Path:
    return Path(_capture(["rustc", "--print", "sysroot"]).strip())


def get_file_name(crate_name: str, crate_type: str) -> str:
    """Return the file name rustc gives a crate of the given name and type."""
    file_name = _capture(
        [
            "rustc",
            "--crate-name",
            crate_name,
            "--crate-type",
            crate_type,
            "--print",
            "file-names",
            "-",
        ]
    ).strip()
    if "\n" in file_name:
        raise ValueError(f"rustc printed several file names: {file_name!r}")
    if crate_name not in file_name:
        raise ValueError(f"file name {file_name!r} does not contain {crate_name!r}")
    return file_name


def get_wrapper_file_name(crate_name: str, crate_type: str) -> str:
    """Like :func:`get_file_name`, for names with dashes, which crates may not have."""
    file_name = get_file_name(crate_name.replace("-", "_"), crate_type)
    return file_name.replace("_", "-")