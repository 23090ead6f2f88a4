import os
import subprocess
from pathlib import Path

import pytest

from clifbuild.paths import Dirs
from clifbuild.prepare import prepare_sysroot


class FakeToolchain:
    def __init__(self, root, version="rustc 1.0.0\n"):
        self.root = Path(root)
        self.version = version
        self.calls = []

    def __call__(self, args, **kwargs):
        argv = [os.fspath(a) for a in args]
        self.calls.append((argv, kwargs))
        out = b""
        if argv[:2] == ["rustup", "which"]:
            out = f"{self.root / 'bin' / argv[2]}\n".encode()
        elif argv[:2] == ["rustc", "-V"]:
            out = self.version.encode()
        return subprocess.CompletedProcess(argv, 0, stdout=out)

    def git_calls(self):
        return [(argv, kw) for argv, kw in self.calls if argv[0] == "git"]


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
    return fake


def make_rust_sources(root):
    (root / "bin").mkdir(parents=True)
    library = root / "lib" / "rustlib" / "src" / "rust" / "library"
    (library / "core" / "src").mkdir(parents=True)
    (library / "core" / "src" / "lib.rs").write_text("// core\n")
    (library / "Cargo.toml").write_text("[workspace]\n")


def test_prepare_sysroot_copies_and_patches(tmp_path, toolchain):
    dirs = make_dirs(tmp_path)
    make_rust_sources(toolchain.root)
    patches = dirs.source_dir / "patches"
    patches.mkdir(parents=True)
    (patches / "0001-sysroot-fix.patch").write_text("patch\n")
    (patches / "0002-rand-fix.patch").write_text("patch\n")

    prepare_sysroot(dirs)

    sysroot_src = dirs.source_dir / "build_sysroot" / "sysroot_src"
    library = sysroot_src / "library"
    assert (library / "core" / "src" / "lib.rs").read_text() == "// core\n"
    assert (library / "Cargo.toml").read_text() == "[workspace]\n"
    version_file = dirs.source_dir / "build_sysroot" / "rustc_version"
    assert version_file.read_text() == toolchain.version

    git = toolchain.git_calls()
    assert [argv[1] for argv, _ in git[:2]] == ["init", "add"]
    am_calls = [argv for argv, _ in git if "am" in argv]
    assert [argv[argv.index("am") + 1] for argv in am_calls] == [
        str(patches / "0001-sysroot-fix.patch")
    ]
    assert all(kw["cwd"] == sysroot_src for _, kw in git)


def test_prepare_sysroot_replaces_old_sources(tmp_path, toolchain):
    dirs = make_dirs(tmp_path)
    make_rust_sources(toolchain.root)
    (dirs.source_dir / "patches").mkdir(parents=True)
    stale = dirs.source_dir / "build_sysroot" / "sysroot_src" / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")

    prepare_sysroot(dirs)

    assert not stale.exists()
    assert (stale.parent / "library" / "core" / "src" / "lib.rs").exists()


def test_prepare_sysroot_without_rust_sources(tmp_path, toolchain):
    dirs = make_dirs(tmp_path)
    (toolchain.root / "bin").mkdir(parents=True)
    with pytest.raises(FileNotFoundError):
        prepare_sysroot(dirs)
    assert toolchain.git_calls() == []