"""The command line of the build system."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from . import abi_cafe, config
from .build_backend import build_backend
from .build_sysroot import SysrootKind, build_sysroot
from .config import ConfigError
from .paths import Dirs, RelPath
from .prepare import prepare
from .rustc_info import get_host_triple
from .suites import run_tests
from .utils import BuildFailed, is_ci

USAGE = """The build system of cg_clif.

USAGE:
    clifbuild prepare [--out-dir DIR]
    clifbuild build [--debug] [--sysroot none|clif|llvm] [--out-dir DIR] [--no-unstable-features]
    clifbuild test [--debug] [--sysroot none|clif|llvm] [--out-dir DIR] [--no-unstable-features]

OPTIONS:
    --sysroot none|clif|llvm
            Which sysroot libraries to use:
            `none` will not include any standard library in the sysroot.
            `clif` will build the standard library using Cranelift.
            `llvm` will use the pre-compiled standard library of rustc which is compiled with LLVM.

    --out-dir DIR
            Specify the directory in which the download, build and dist directories are stored.
            By default this is the working directory.

    --no-unstable-features
            Some features are not yet ready for production usage. This option will disable these
            features. This includes the JIT mode and inline assembly support.
"""


class UsageError(Exception):
    """Raised for a malformed command line."""


class Subcommand(Enum):
    PREPARE = "prepare"
    BUILD = "build"
    TEST = "test"


@dataclass(frozen=True)
class Options:
    """What the command line asks for."""

    command: Subcommand
    out_dir: Path = Path(".")
    channel: str = "release"
    sysroot_kind: SysrootKind = SysrootKind.CLIF
    use_unstable_features: bool = True


def parse_args(argv: list[str]) -> Options | None:
    """Parse the arguments after the program name; ``None`` when none are given."""
    args = iter(argv)
    first = next(args, None)
    if first is None:
        return None
    if first.startswith("-"):
        raise UsageError(f"Expected command found flag {first}")
    try:
        command = Subcommand(first)
    except ValueError:
        raise UsageError(f"Unknown command {first}") from None

    out_dir = Path(".")
    channel = "release"
    sysroot_kind = SysrootKind.CLIF
    use_unstable_features = True

    for arg in args:
        if arg == "--out-dir":
            value = next(args, None)
            if value is None:
                raise UsageError("--out-dir requires argument")
            out_dir = Path(value)
        elif arg == "--debug":
            channel = "debug"
        elif arg == "--sysroot":
            value = next(args, None)
            if value is None:
                raise UsageError("--sysroot requires argument")
            try:
                sysroot_kind = SysrootKind.parse(value)
            except ValueError as err:
                raise UsageError(str(err)) from None
        elif arg == "--no-unstable-features":
            use_unstable_features = False
        elif arg.startswith("-"):
            raise UsageError(f"Unknown flag {arg}")
        else:
            raise UsageError(f"Unexpected argument {arg}")

    return Options(command, out_dir, channel, sysroot_kind, use_unstable_features)


def resolve_triples(
    environ: Mapping[str, str] | None = None,
    config_path: str | os.PathLike[str] = config.DEFAULT_CONFIG_PATH,
) -> tuple[str, str]:
    """Return the host and target triples from the environment, config or rustc."""
    if environ is None:
        environ = os.environ

    host = environ.get("HOST_TRIPLE")
    if host is None:
        host = config.get_value("host", config_path) or get_host_triple()

    target = environ.get("TARGET_TRIPLE")
    if target is not None:
        # An empty target triple can come from CI environments.
        target = target or host
    else:
        target = config.get_value("target", config_path) or host

    return host, target


def _usage() -> None:
    print(USAGE, file=sys.stderr)


def _prepare_environment() -> None:
    os.environ.setdefault("RUST_BACKTRACE", "1")
    os.environ["CG_CLIF_DISPLAY_CG_TIME"] = "1"
    os.environ["CG_CLIF_DISABLE_INCR_CACHE"] = "1"
    if is_ci():
        # Incremental compilation saves little on CI and bloats the cache.
        os.environ["CARGO_BUILD_INCREMENTAL"] = "false"
        os.environ["CG_CLIF_ENABLE_VERIFIER"] = "1"


def _run(options: Options) -> int:
    host_triple, target_triple = resolve_triples()

    current_dir = Path.cwd()
    out_dir = current_dir / options.out_dir
    dirs = Dirs(
        source_dir=current_dir,
        download_dir=out_dir / "download",
        build_dir=out_dir / "build",
        dist_dir=out_dir / "dist",
    )

    RelPath.BUILD.ensure_exists(dirs)

    # Every cargo invocation must pass its target dir explicitly.
    marker = RelPath.BUILD.join("target_dir_should_be_set_explicitly").to_path(dirs)
    os.environ["CARGO_TARGET_DIR"] = os.fspath(marker)
    marker.unlink(missing_ok=True)
    marker.touch()

    if options.command is Subcommand.PREPARE:
        prepare(dirs)
        return 0

    cg_clif_dylib = build_backend(
        dirs, options.channel, host_triple, options.use_unstable_features
    )

    if options.command is Subcommand.TEST:
        run_tests(
            dirs,
            options.channel,
            options.sysroot_kind,
            cg_clif_dylib,
            host_triple,
            target_triple,
        )
        abi_cafe.run(
            options.channel,
            options.sysroot_kind,
            dirs,
            cg_clif_dylib,
            host_triple,
            target_triple,
        )
    else:
        build_sysroot(
            dirs,
            options.channel,
            options.sysroot_kind,
            cg_clif_dylib,
            host_triple,
            target_triple,
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    _prepare_environment()

    try:
        options = parse_args(args)
    except UsageError as err:
        print(err, file=sys.stderr)
        _usage()
        return 1

    if options is None:
        _usage()
        return 0

    try:
        return _run(options)
    except (BuildFailed, ConfigError, RuntimeError) as err:
        print(err, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())