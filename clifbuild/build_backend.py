"""Building the codegen backend itself."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from .paths import Dirs, RelPath
from .rustc_info import get_file_name
from .utils import CargoProject, Command, Compiler, is_ci, spawn_and_wait

CG_CLIF = CargoProject(RelPath.SOURCE, "cg_clif")

CHANNELS = ("debug", "release")


def backend_command(dirs: Dirs, channel: str, use_unstable_features: bool) -> Command:
    """Return the cargo command that builds the backend for ``channel``."""
    if channel not in CHANNELS:
        raise ValueError(f"unknown channel {channel!r}")

    cmd = CG_CLIF.build(Compiler.host(), dirs)
    # Incremental compilation even in release mode.
    cmd.set_env("CARGO_BUILD_INCREMENTAL", "true")

    rustflags = os.environ.get("RUSTFLAGS", "")
    if is_ci():
        rustflags += " -Dwarnings"
        # Incremental compilation saves little on CI and bloats the cache.
        cmd.set_env("CARGO_BUILD_INCREMENTAL", "false")
        cmd.set_env("CARGO_PROFILE_RELEASE_DEBUG_ASSERTIONS", "true")

    if use_unstable_features:
        cmd.arg("--features").arg("unstable-features")

    if channel == "release":
        cmd.arg("--release")

    cmd.set_env("RUSTFLAGS", rustflags)
    return cmd


def build_backend(
    dirs: Dirs, channel: str, host_triple: str, use_unstable_features: bool
) -> Path:
    """Build the backend and return the path of the resulting dynamic library."""
    cmd = backend_command(dirs, channel, use_unstable_features)
    print("[BUILD] rustc_codegen_cranelift", file=sys.stderr)
    spawn_and_wait(cmd)
    return (
        CG_CLIF.target_dir(dirs)
        / host_triple
        / channel
        / get_file_name("rustc_codegen_cranelift", "dylib")
    )