import os
import subprocess
from pathlib import Path

import pytest

from clifbuild.build_backend import backend_command, build_backend
from clifbuild.paths import Dirs
from clifbuild.utils import BuildFailed

HOST = "x86_64-unknown-linux-gnu"


class FakeToolchain:
    def __init__(self, root, returncode=0):
        self.root = Path(root)
        self.returncode = returncode
        self.calls = []

    def __call__(self, args, **kwargs):
        argv = [os.fspath(a) for a in args]
        self.calls.append((argv, kwargs))
        code = self.returncode if Path(argv[0]).name == "cargo" else 0
        return subprocess.CompletedProcess(argv, code, stdout=self._output(argv))

    def _output(self, argv):
        if argv[:2] == ["rustup", "which"]:
            return f"{self.root / 'bin' / argv[2]}\n".encode()
        if argv[:2] == ["rustc", "-vV"]:
            return f"rustc 1.0.0\nhost: {HOST}\n".encode()
        if argv[0] == "rustc" and "file-names" in argv:
            name = argv[argv.index("--crate-name") + 1]
            return f"lib{name}.so".encode()
        return b""


def make_dirs(tmp_path):
    out = tmp_path / "out"
    return Dirs(
        source_dir=tmp_path / "src",
        download_dir=out / "download",
        build_dir=out / "build",
        dist_dir=out / "dist",
    )


@pytest.fixture
def toolchain(tmp_path, monkeypatch):
    fake = FakeToolchain(tmp_path / "toolchain")
    monkeypatch.setattr(subprocess, "run", fake)
    monkeypatch.delenv("CI", raising=False)
    monkeypatch.delenv("RUSTFLAGS", raising=False)
    return fake


def test_release_command_with_unstable_features(tmp_path, toolchain):
    dirs = make_dirs(tmp_path)
    cmd = backend_command(dirs, "release", True)
    argv = cmd.argv()
    assert argv[1] == "build"
    assert argv[argv.index("--manifest-path") + 1] == str(dirs.source_dir / "Cargo.toml")
    assert argv[argv.index("--target-dir") + 1] == str(dirs.build_dir / "cg_clif")
    assert argv[argv.index("--target") + 1] == HOST
    assert argv[argv.index("--features") + 1] == "unstable-features"
    assert argv[-1] == "--release"
    assert cmd.env["CARGO_BUILD_INCREMENTAL"] == "true"
    assert cmd.env["RUSTFLAGS"] == ""


def test_debug_command_without_unstable_features(tmp_path, toolchain):
    cmd = backend_command(make_dirs(tmp_path), "debug", False)
    assert "--release" not in cmd.argv()
    assert "--features" not in cmd.argv()


def test_ci_denies_warnings(tmp_path, toolchain, monkeypatch):
    monkeypatch.setenv("CI", "true")
    monkeypatch.setenv("RUSTFLAGS", "-Cfoo")
    cmd = backend_command(make_dirs(tmp_path), "debug", True)
    assert cmd.env["RUSTFLAGS"] == "-Cfoo -Dwarnings"
    assert cmd.env["CARGO_BUILD_INCREMENTAL"] == "false"
    assert cmd.env["CARGO_PROFILE_RELEASE_DEBUG_ASSERTIONS"] == "true"


def test_unknown_channel(tmp_path, toolchain):
    with pytest.raises(ValueError):
        backend_command(make_dirs(tmp_path), "profile", True)


def test_build_backend_returns_dylib_path(tmp_path, toolchain):
    dirs = make_dirs(tmp_path)
    result = build_backend(dirs, "release", HOST, True)
    assert result == (
        dirs.build_dir / "cg_clif" / HOST / "release" / "librustc_codegen_cranelift.so"
    )
    cargo_calls = [argv for argv, _ in toolchain.calls if Path(argv[0]).name == "cargo"]
    assert len(cargo_calls) == 1


def test_build_backend_failure(tmp_path, toolchain):
    toolchain.returncode = 3
    with pytest.raises(BuildFailed) as info:
        build_backend(make_dirs(tmp_path), "debug", HOST, False)
    assert info.value.returncode == 3