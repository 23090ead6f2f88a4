"""Running the abi-cafe ABI compatibility checker against the backend."""

from __future__ import annotations

import os
import sys

from . import build_sysroot, config
from .build_sysroot import SysrootKind
from .paths import Dirs
from .repos import ABI_CAFE_REPO
from .utils import CargoProject, Command, Compiler, spawn_and_wait

ABI_CAFE = CargoProject(ABI_CAFE_REPO.source_dir(), "abi_cafe")

PAIRS = ("rustc_calls_cgclif", "cgclif_calls_rustc", "cgclif_calls_cc", "cc_calls_cgclif")


def abi_cafe_command(dirs: Dirs, cg_clif_dylib: str | os.PathLike[str]) -> Command:
    """Return the command that runs abi-cafe with the backend registered."""
    cmd = ABI_CAFE.run(Compiler.host(), dirs)
    cmd.arg("--")
    cmd.arg("--pairs")
    cmd.args(PAIRS)
    cmd.arg("--add-rustc-codegen-backend")
    cmd.arg(f"cgclif:{os.fspath(cg_clif_dylib)}")
    cmd.cwd = ABI_CAFE.source_dir(dirs)
    return cmd


def run(
    channel: str,
    sysroot_kind: SysrootKind,
    dirs: Dirs,
    cg_clif_dylib: str | os.PathLike[str],
    host_triple: str,
    target_triple: str,
) -> bool:
    """Run abi-cafe if it is enabled; return whether it ran."""
    if not config.get_bool("testsuite.abi-cafe"):
        print("[SKIP] abi-cafe", file=sys.stderr)
        return False

    if host_triple != target_triple:
        print("[SKIP] abi-cafe (cross-compilation not supported)", file=sys.stderr)
        return False

    print("Building sysroot for abi-cafe", file=sys.stderr)
    build_sysroot.build_sysroot(
        dirs, channel, sysroot_kind, cg_clif_dylib, host_triple, target_triple
    )

    print("Running abi-cafe", file=sys.stderr)
    spawn_and_wait(abi_cafe_command(dirs, cg_clif_dylib))
    return True