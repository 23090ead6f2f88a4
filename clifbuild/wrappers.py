"""Wrappers that run rustc, rustdoc and cargo with the Cranelift backend selected.

Each wrapper is installed in the root of a distribution directory. That directory
serves as the sysroot, and the backend library is looked up inside it.
"""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path

BACKEND_NAME = "rustc_codegen_cranelift"

_PANIC_FLAGS = ("-Cpanic=abort", "-Zpanic-abort-tests")

_JIT_MODES = {
    "jit": "jit",
    "lazy-jit": "jit-lazy",
}


def _is_windows() -> bool:
    return sys.platform.startswith("win")


def _dll_affixes() -> tuple[str, str]:
    if _is_windows():
        return "", ".dll"
    if sys.platform == "darwin":
        return "lib", ".dylib"
    return "lib", ".so"


def codegen_backend_path(sysroot: str | os.PathLike[str]) -> Path:
    """Return where the backend library sits inside the distribution ``sysroot``."""
    prefix, suffix = _dll_affixes()
    # Windows has no rpath, so the library lives next to the binaries there.
    subdir = "bin" if _is_windows() else "lib"
    return Path(sysroot) / subdir / f"{prefix}{BACKEND_NAME}{suffix}"


def compiler_args(
    args: Iterable[str], sysroot: str | os.PathLike[str]
) -> list[str]:
    """Return ``args`` extended with the flags that select the backend and sysroot."""
    result = list(args)
    result.extend(_PANIC_FLAGS)
    result.append(f"-Zcodegen-backend={os.fspath(codegen_backend_path(sysroot))}")
    if "--sysroot" not in result:
        result.extend(["--sysroot", os.fspath(sysroot)])
    return result


def cargo_invocation(
    args: Iterable[str],
    sysroot: str | os.PathLike[str],
    environ: Mapping[str, str] | None = None,
) -> tuple[list[str], dict[str, str]]:
    """Return the cargo argv and environment for the cargo wrapper.

    A first argument of ``jit`` or ``lazy-jit`` runs the crate in the
    corresponding JIT mode through ``cargo rustc``.
    """
    env = dict(os.environ if environ is None else environ)
    args = list(args)

    extra = (
        f" {' '.join(_PANIC_FLAGS)}"
        f" -Zcodegen-backend={os.fspath(codegen_backend_path(sysroot))}"
        f" --sysroot {os.fspath(sysroot)}"
    )
    env["RUSTFLAGS"] = env.get("RUSTFLAGS", "") + extra
    env["RUSTDOCFLAGS"] = env.get("RUSTDOCFLAGS", "") + extra

    mode = _JIT_MODES.get(args[0]) if args else None
    if mode is not None:
        env["RUSTFLAGS"] += " -Cprefer-dynamic"
        cargo_args = [
            "rustc",
            *args[1:],
            "--",
            "-Zunstable-options",
            f"-Cllvm-args=mode={mode}",
        ]
    else:
        cargo_args = args

    return ["cargo", *cargo_args], env


def _own_sysroot() -> Path:
    return Path(sys.argv[0]).resolve().parent


def _exec(argv: list[str], env: Mapping[str, str] | None = None) -> int:
    """Replace this process with ``argv`` where possible, otherwise run it and wait."""
    environment = dict(os.environ if env is None else env)
    if os.name == "posix":
        os.execvpe(argv[0], argv, environment)
    result = subprocess.run(argv, env=environment, check=False)
    return result.returncode if result.returncode >= 0 else 1


def _compiler_main(program: str, argv: list[str] | None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    return _exec([program, *compiler_args(args, _own_sysroot())])


def rustc_clif_main(argv: list[str] | None = None) -> int:
    return _compiler_main("rustc", argv)


def rustdoc_clif_main(argv: list[str] | None = None) -> int:
    return _compiler_main("rustdoc", argv)


def cargo_clif_main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    cargo_argv, env = cargo_invocation(args, _own_sysroot())
    return _exec(cargo_argv, env)