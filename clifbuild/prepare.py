"""Preparing a checkout: sysroot sources, benchmark tools and test repositories."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys

from .build_sysroot import SYSROOT_RUSTC_VERSION, SYSROOT_SRC
from .paths import Dirs, RelPath
from .repos import FETCHED_REPOS, SIMPLE_RAYTRACER, apply_patches, init_git_repo
from .rustc_info import get_file_name, get_rustc_path, get_rustc_version
from .utils import Compiler, copy_dir_recursively, spawn_and_wait


def prepare(dirs: Dirs) -> None:
    """Download and patch everything the build and the test suites need."""
    download_dir = RelPath.DOWNLOAD.to_path(dirs)
    if download_dir.exists():
        shutil.rmtree(download_dir)
    download_dir.mkdir(parents=True)

    prepare_sysroot(dirs)

    print("[INSTALL] hyperfine", file=sys.stderr)
    install_env = {
        key: value for key, value in os.environ.items() if key != "CARGO_TARGET_DIR"
    }
    subprocess.run(["cargo", "install", "hyperfine"], env=install_env, check=False)

    for repo in FETCHED_REPOS:
        repo.fetch(dirs)

    print("[LLVM BUILD] simple-raytracer", file=sys.stderr)
    host_compiler = Compiler.host()
    spawn_and_wait(SIMPLE_RAYTRACER.build(host_compiler, dirs))
    shutil.copy(
        SIMPLE_RAYTRACER.target_dir(dirs)
        / host_compiler.triple
        / "debug"
        / get_file_name("main", "bin"),
        RelPath.BUILD.to_path(dirs) / get_file_name("raytracer_cg_llvm", "bin"),
    )


def prepare_sysroot(dirs: Dirs) -> None:
    """Copy the toolchain's library sources into a git repository and patch them."""
    rustc_path = get_rustc_path()
    sysroot_src_orig = rustc_path.parent / "../lib/rustlib/src/rust"
    if not sysroot_src_orig.exists():
        raise FileNotFoundError(f"no rust sources at {sysroot_src_orig}")

    SYSROOT_SRC.ensure_fresh(dirs)
    sysroot_src = SYSROOT_SRC.to_path(dirs)
    (sysroot_src / "library").mkdir(parents=True, exist_ok=True)
    print("[COPY] sysroot src", file=sys.stderr)
    copy_dir_recursively(sysroot_src_orig / "library", sysroot_src / "library")

    SYSROOT_RUSTC_VERSION.to_path(dirs).write_text(get_rustc_version())

    print("[GIT] init", file=sys.stderr)
    init_git_repo(sysroot_src)

    apply_patches(dirs, "sysroot", sysroot_src)