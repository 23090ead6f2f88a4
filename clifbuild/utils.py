"""Commands, compilers, cargo projects and file helpers used by the build."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from . import rustc_info
from .paths import Dirs, RelPath


class BuildFailed(Exception):
    """Raised when a spawned command exits unsuccessfully."""

    def __init__(self, argv: list[str], returncode: int) -> None:
        super().__init__(f"command {argv!r} failed with exit code {returncode}")
        self.argv = argv
        self.returncode = returncode


@dataclass
class Command:
    """A program invocation that is built up before it is run."""

    program: str | os.PathLike[str]
    arguments: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    unset_env: set[str] = field(default_factory=set)
    cwd: Path | None = None

    def arg(self, value: str | os.PathLike[str]) -> Command:
        self.arguments.append(os.fspath(value))
        return self

    def args(self, values) -> Command:
        for value in values:
            self.arg(value)
        return self

    def set_env(self, key: str, value: str | os.PathLike[str]) -> Command:
        self.unset_env.discard(key)
        self.env[key] = os.fspath(value)
        return self

    def argv(self) -> list[str]:
        return [os.fspath(self.program), *self.arguments]

    def _environment(self) -> dict[str, str]:
        environment = {
            key: value for key, value in os.environ.items() if key not in self.unset_env
        }
        environment.update(self.env)
        return environment


@dataclass
class Compiler:
    """The tools and flags used to compile for one target triple."""

    cargo: Path
    rustc: Path
    rustdoc: Path
    triple: str
    rustflags: str = ""
    rustdocflags: str = ""
    runner: list[str] = field(default_factory=list)

    @classmethod
    def host(cls) -> Compiler:
        return cls.with_triple(rustc_info.get_host_triple())

    @classmethod
    def with_triple(cls, triple: str) -> Compiler:
        return cls(
            cargo=rustc_info.get_cargo_path(),
            rustc=rustc_info.get_rustc_path(),
            rustdoc=rustc_info.get_rustdoc_path(),
            triple=triple,
        )

    @classmethod
    def clif_with_triple(cls, dirs: Dirs, triple: str) -> Compiler:
        dist = RelPath.DIST.to_path(dirs)
        return cls(
            cargo=rustc_info.get_cargo_path(),
            rustc=dist / rustc_info.get_wrapper_file_name("rustc-clif", "bin"),
            rustdoc=dist / rustc_info.get_wrapper_file_name("rustdoc-clif", "bin"),
            triple=triple,
        )


@dataclass(frozen=True)
class CargoProject:
    """A cargo project located at ``source`` and built into ``build/<target>``."""

    source: RelPath
    target: str

    def source_dir(self, dirs: Dirs) -> Path:
        return self.source.to_path(dirs)

    def manifest_path(self, dirs: Dirs) -> Path:
        return self.source_dir(dirs) / "Cargo.toml"

    def target_dir(self, dirs: Dirs) -> Path:
        return RelPath.BUILD.join(self.target).to_path(dirs)

    def _base_cmd(self, command: str, cargo: str | os.PathLike[str], dirs: Dirs) -> Command:
        return Command(cargo).args(
            [
                command,
                "--manifest-path",
                self.manifest_path(dirs),
                "--target-dir",
                self.target_dir(dirs),
            ]
        )

    def _build_cmd(self, command: str, compiler: Compiler, dirs: Dirs) -> Command:
        cmd = self._base_cmd(command, compiler.cargo, dirs)
        cmd.arg("--target").arg(compiler.triple)
        cmd.set_env("RUSTC", compiler.rustc)
        cmd.set_env("RUSTDOC", compiler.rustdoc)
        cmd.set_env("RUSTFLAGS", compiler.rustflags)
        cmd.set_env("RUSTDOCFLAGS", compiler.rustdocflags)
        if compiler.runner:
            triple_key = compiler.triple.upper().replace("-", "_")
            cmd.set_env(f"CARGO_TARGET_{triple_key}_RUNNER", " ".join(compiler.runner))
        return cmd

    def fetch(self, cargo: str | os.PathLike[str], dirs: Dirs) -> Command:
        return Command(cargo).args(["fetch", "--manifest-path", self.manifest_path(dirs)])

    def clean(self, cargo: str | os.PathLike[str], dirs: Dirs) -> Command:
        return self._base_cmd("clean", cargo, dirs)

    def build(self, compiler: Compiler, dirs: Dirs) -> Command:
        return self._build_cmd("build", compiler, dirs)

    def test(self, compiler: Compiler, dirs: Dirs) -> Command:
        return self._build_cmd("test", compiler, dirs)

    def run(self, compiler: Compiler, dirs: Dirs) -> Command:
        return self._build_cmd("run", compiler, dirs)


def hyperfine_command(
    warmup: int, runs: int, prepare: str | None, a: str, b: str
) -> Command:
    """Build a hyperfine invocation comparing commands ``a`` and ``b``."""
    bench = Command("hyperfine")
    if warmup != 0:
        bench.arg("--warmup").arg(str(warmup))
    if runs != 0:
        bench.arg("--runs").arg(str(runs))
    if prepare is not None:
        bench.arg("--prepare").arg(prepare)
    return bench.arg(a).arg(b)


def try_hard_link(src: str | os.PathLike[str], dst: str | os.PathLike[str]) -> None:
    """Hard-link ``src`` to ``dst``, copying the file if linking fails."""
    try:
        os.link(src, dst)
    except OSError:
        shutil.copy(src, dst)


def spawn_and_wait(cmd: Command) -> None:
    """Run ``cmd`` to completion, raising :class:`BuildFailed` on failure."""
    argv = cmd.argv()
    result = subprocess.run(argv, env=cmd._environment(), cwd=cmd.cwd, check=False)
    if result.returncode != 0:
        raise BuildFailed(argv, result.returncode)


def spawn_and_wait_with_input(cmd: Command, input: str) -> str:
    """Run ``cmd`` with ``input`` on stdin and return what it wrote to stdout."""
    argv = cmd.argv()
    result = subprocess.run(
        argv,
        input=input.encode("utf-8"),
        stdout=subprocess.PIPE,
        env=cmd._environment(),
        cwd=cmd.cwd,
        check=False,
    )
    if result.returncode != 0:
        raise BuildFailed(argv, result.returncode)
    return result.stdout.decode("utf-8")


def copy_dir_recursively(src: str | os.PathLike[str], dst: str | os.PathLike[str]) -> None:
    """Copy the contents of ``src`` into the existing directory ``dst``."""
    destination = Path(dst)
    with os.scandir(src) as entries:
        for entry in entries:
            target = destination / entry.name
            if entry.is_dir(follow_symlinks=False):
                target.mkdir()
                copy_dir_recursively(entry.path, target)
            else:
                shutil.copy(entry.path, target)


def is_ci() -> bool:
    return os.environ.get("CI") == "true"