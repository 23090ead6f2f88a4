"""Assembling the distribution directory and building the standard library."""

from __future__ import annotations

import os
import shutil
import sys
from enum import Enum
from pathlib import Path

from . import config
from .paths import Dirs, RelPath
from .rustc_info import (
    get_default_sysroot,
    get_file_name,
    get_rustc_version,
    get_wrapper_file_name,
)
from .utils import CargoProject, Command, Compiler, spawn_and_wait, try_hard_link

DIST_DIR = RelPath.DIST
BIN_DIR = RelPath.DIST.join("bin")
LIB_DIR = RelPath.DIST.join("lib")
RUSTLIB_DIR = LIB_DIR.join("rustlib")

SYSROOT_RUSTC_VERSION = RelPath.BUILD_SYSROOT.join("rustc_version")
SYSROOT_SRC = RelPath.BUILD_SYSROOT.join("sysroot_src")
STANDARD_LIBRARY = CargoProject(RelPath.BUILD_SYSROOT, "build_sysroot")

WRAPPERS = ("rustc-clif", "rustdoc-clif", "cargo-clif")

_WINDOWS_GNU = "x86_64-pc-windows-gnu"
_SKIPPED_DEP_EXTENSIONS = {"rmeta", "d", "dSYM", "clif"}


class SysrootKind(Enum):
    """Which standard library the sysroot holds."""

    NONE = "none"
    CLIF = "clif"
    LLVM = "llvm"

    @classmethod
    def parse(cls, value: str) -> SysrootKind:
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown sysroot kind {value}") from None


def cross_linker(target_triple: str) -> str | None:
    """Return the linker to use when cross-compiling for ``target_triple``."""
    return {
        "aarch64-unknown-linux-gnu": "aarch64-linux-gnu-gcc",
        "s390x-unknown-linux-gnu": "s390x-linux-gnu-gcc",
    }.get(target_triple)


def is_rustc_dev_file(file_name: str) -> bool:
    """Whether a library file belongs to the large rustc-dev component."""
    return (
        (
            "rustc_" in file_name
            and "rustc_std_workspace_" not in file_name
            and "rustc_demangle" not in file_name
        )
        or "chalk" in file_name
        or "tracing" in file_name
        or "regex" in file_name
    )


def _rustlib_lib(root: Path, triple: str) -> Path:
    return root / "lib" / "rustlib" / triple / "lib"


def build_sysroot(
    dirs: Dirs,
    channel: str,
    sysroot_kind: SysrootKind,
    cg_clif_dylib_src: str | os.PathLike[str],
    host_triple: str,
    target_triple: str,
) -> None:
    """Build a fresh distribution directory with the backend, wrappers and sysroot."""
    print(f"[BUILD] sysroot {sysroot_kind.name.title()}", file=sys.stderr)

    DIST_DIR.ensure_fresh(dirs)
    BIN_DIR.ensure_exists(dirs)
    LIB_DIR.ensure_exists(dirs)

    # Windows has no rpath, so the backend must sit next to the binaries there.
    backend_dir = BIN_DIR if os.name == "nt" else LIB_DIR
    cg_clif_dylib_path = backend_dir.to_path(dirs) / get_file_name(
        "rustc_codegen_cranelift", "dylib"
    )
    try_hard_link(cg_clif_dylib_src, cg_clif_dylib_path)

    for wrapper in WRAPPERS:
        wrapper_name = get_wrapper_file_name(wrapper, "bin")
        spawn_and_wait(
            Command("rustc").args(
                [
                    RelPath.SCRIPTS.to_path(dirs) / f"{wrapper}.rs",
                    "-o",
                    DIST_DIR.to_path(dirs) / wrapper_name,
                    "-g",
                ]
            )
        )

    default_sysroot = get_default_sysroot()

    rustlib = RUSTLIB_DIR.to_path(dirs)
    host_rustlib_lib = rustlib / host_triple / "lib"
    target_rustlib_lib = rustlib / target_triple / "lib"
    host_rustlib_lib.mkdir(parents=True, exist_ok=True)
    target_rustlib_lib.mkdir(parents=True, exist_ok=True)

    if target_triple == _WINDOWS_GNU:
        source = _rustlib_lib(default_sysroot, target_triple)
        if not source.exists():
            raise FileNotFoundError(
                "The x86_64-pc-windows-gnu target needs to be installed first before it "
                "is possible to compile a sysroot for it."
            )
        for file in source.iterdir():
            if file.suffix == ".o":
                try_hard_link(file, target_rustlib_lib / file.name)

    if sysroot_kind is SysrootKind.LLVM:
        for file in _rustlib_lib(default_sysroot, host_triple).iterdir():
            if is_rustc_dev_file(file.name):
                continue
            try_hard_link(file, host_rustlib_lib / file.name)

        if target_triple != host_triple:
            for file in _rustlib_lib(default_sysroot, target_triple).iterdir():
                try_hard_link(file, target_rustlib_lib / file.name)

    elif sysroot_kind is SysrootKind.CLIF:
        build_clif_sysroot_for_triple(dirs, channel, host_triple, cg_clif_dylib_path, None)

        if host_triple != target_triple:
            build_clif_sysroot_for_triple(
                dirs,
                channel,
                target_triple,
                cg_clif_dylib_path,
                cross_linker(target_triple),
            )

        # The JIT mode looks for libstd in the lib dir.
        lib_dir = LIB_DIR.to_path(dirs)
        for file in host_rustlib_lib.iterdir():
            if "std-" in file.name and ".rlib" not in file.name:
                try_hard_link(file, lib_dir / file.name)


def build_clif_sysroot_for_triple(
    dirs: Dirs,
    channel: str,
    triple: str,
    cg_clif_dylib_path: str | os.PathLike[str],
    linker: str | None,
) -> None:
    """Compile the standard library for ``triple`` with the backend and install it."""
    try:
        source_version = SYSROOT_RUSTC_VERSION.to_path(dirs).read_text()
    except OSError as err:
        raise RuntimeError(
            f"Failed to get rustc version for patched sysroot source: {err}\n"
            "Hint: run the prepare command to patch the sysroot source"
        ) from err

    rustc_version = get_rustc_version()
    if source_version != rustc_version:
        raise RuntimeError(
            "The patched sysroot source is outdated\n"
            f"Source version: {source_version.strip()}\n"
            f"Rustc version:  {rustc_version.strip()}\n"
            "Hint: run the prepare command to update the patched sysroot source"
        )

    build_dir = STANDARD_LIBRARY.target_dir(dirs) / triple / channel
    deps_dir = build_dir / "deps"

    if not config.get_bool("keep_sysroot"):
        # Build scripts and the incremental cache stay: changes to the backend do not
        # affect them.
        if deps_dir.exists():
            shutil.rmtree(deps_dir)

    rustflags = "-Zforce-unstable-if-unmarked -Cpanic=abort"
    rustflags += f" -Zcodegen-backend={os.fspath(cg_clif_dylib_path)}"
    rustflags += f" --sysroot={DIST_DIR.to_path(dirs)}"
    if channel == "release":
        rustflags += " -Zmir-opt-level=3"
    if linker is not None:
        rustflags += f" -Clinker={linker}"

    compiler = Compiler.with_triple(triple)
    compiler.rustflags = rustflags
    build_cmd = STANDARD_LIBRARY.build(compiler, dirs)
    if channel == "release":
        build_cmd.arg("--release")
    build_cmd.set_env("__CARGO_DEFAULT_LIB_METADATA", "cg_clif")
    spawn_and_wait(build_cmd)

    destination = RUSTLIB_DIR.to_path(dirs) / triple / "lib"
    for entry in deps_dir.iterdir():
        extension = entry.suffix[1:]
        if not extension or extension in _SKIPPED_DEP_EXTENSIONS:
            continue
        try_hard_link(entry, destination / entry.name)