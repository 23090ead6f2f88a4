"""Running the example programs of the test suites with the built backend."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from . import config
from .paths import Dirs, RelPath
from .utils import Command, Compiler, spawn_and_wait

BUILD_EXAMPLE_OUT_DIR = RelPath.BUILD.join("example")

_DARWIN_FLAGS = " -Clink-arg=-undefined -Clink-arg=dynamic_lookup"


@dataclass(frozen=True)
class SuiteCase:
    """One test of a suite: a ``tag.name`` config key and the function that runs it."""

    config: str
    func: Callable[[SuiteRunner], None]


def _cross_settings(target_triple: str, rustflags: str) -> tuple[str, list[str]]:
    """Return the rustflags and runner to use when cross-compiling for a target."""
    if target_triple == "aarch64-unknown-linux-gnu":
        # Use the matching linker and run the tests in qemu.
        return (
            f"-Clinker=aarch64-linux-gnu-gcc{rustflags}",
            ["qemu-aarch64", "-L", "/usr/aarch64-linux-gnu"],
        )
    if target_triple == "s390x-unknown-linux-gnu":
        return (
            f"-Clinker=s390x-linux-gnu-gcc{rustflags}",
            ["qemu-s390x", "-L", "/usr/s390x-linux-gnu"],
        )
    if target_triple == "x86_64-pc-windows-gnu":
        # Run the tests in wine.
        return rustflags, ["wine"]
    print("Unknown non-native platform")
    return rustflags, []


class SuiteRunner:
    """Runs suites of tests against the compilers for a host and a target triple."""

    def __init__(
        self,
        dirs: Dirs,
        host_triple: str,
        target_triple: str,
        *,
        rustflags: str | None = None,
        make_compiler: Callable[[Dirs, str], Compiler] | None = None,
        config_path: str | os.PathLike[str] = config.DEFAULT_CONFIG_PATH,
    ) -> None:
        if rustflags is None:
            rustflags = os.environ.get("RUSTFLAGS", "")
        if make_compiler is None:
            make_compiler = Compiler.clif_with_triple

        self.dirs = dirs
        self.config_path = config_path
        self.is_native = host_triple == target_triple
        self.jit_supported = (
            "x86_64" in target_triple
            and self.is_native
            and "windows" not in host_triple
        )

        runner: list[str] = []
        if not self.is_native:
            rustflags, runner = _cross_settings(target_triple, rustflags)

        # Needed for `#[linkage = "extern_weak"]` on darwin.
        if "darwin" in target_triple:
            rustflags += _DARWIN_FLAGS

        self.host_compiler = make_compiler(dirs, host_triple)
        self.target_compiler = make_compiler(dirs, target_triple)
        self.target_compiler.rustflags = rustflags
        self.target_compiler.rustdocflags = rustflags
        self.target_compiler.runner = runner

    @property
    def out_dir(self) -> Path:
        return BUILD_EXAMPLE_OUT_DIR.to_path(self.dirs)

    def run_testsuite(self, tests: Iterable[SuiteCase]) -> None:
        """Run every enabled test of ``tests`` in order, reporting skipped ones."""
        for case in tests:
            tag, sep, testname = case.config.partition(".")
            if not sep:
                raise ValueError(f"test config without a tag: {case.config!r}")
            tag = tag.upper()
            is_jit_test = tag == "JIT"

            enabled = config.get_bool(case.config, self.config_path)
            if not enabled or (is_jit_test and not self.jit_supported):
                print(f"[{tag}] {testname} (skipped)", file=sys.stderr)
                continue
            print(f"[{tag}] {testname}", file=sys.stderr)
            case.func(self)

    def rustc_command(self, args: Iterable[str | os.PathLike[str]]) -> Command:
        """Return a target rustc invocation writing into the example output dir."""
        out_dir = os.fspath(self.out_dir)
        cmd = Command(self.target_compiler.rustc)
        cmd.args(self.target_compiler.rustflags.split())
        cmd.arg("-L").arg(f"crate={out_dir}")
        cmd.arg("--out-dir").arg(out_dir)
        cmd.arg("-Cdebuginfo=2")
        cmd.args(args)
        return cmd

    def run_rustc(self, args: Iterable[str | os.PathLike[str]]) -> None:
        spawn_and_wait(self.rustc_command(args))

    def run_out_command(self, name: str, args: Iterable[str]) -> None:
        """Run the built example ``name``, through the target runner if there is one."""
        program, *rest = [
            *self.target_compiler.runner,
            os.fspath(self.out_dir / name),
            *args,
        ]
        spawn_and_wait(Command(program).args(rest))