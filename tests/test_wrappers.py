import os
import sys
from pathlib import Path

import pytest

from clifbuild.wrappers import (
    cargo_invocation,
    codegen_backend_path,
    compiler_args,
)

SYSROOT = Path("/opt/dist")


def test_backend_path_on_linux(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    path = codegen_backend_path(SYSROOT)
    assert path == SYSROOT / "lib" / "librustc_codegen_cranelift.so"


def test_backend_path_on_windows(monkeypatch):
    monkeypatch.setattr(sys, "platform", "win32")
    path = codegen_backend_path(SYSROOT)
    assert path.parent == SYSROOT / "bin"
    assert path.name == "rustc_codegen_cranelift.dll"


def test_backend_path_on_darwin(monkeypatch):
    monkeypatch.setattr(sys, "platform", "darwin")
    path = codegen_backend_path(SYSROOT)
    assert path.parent == SYSROOT / "lib"
    assert path.name.startswith("lib") and path.name.endswith(".dylib")


def test_compiler_args_append_flags_and_sysroot():
    result = compiler_args(["main.rs", "-O"], SYSROOT)
    assert result[:2] == ["main.rs", "-O"]
    assert result[2:4] == ["-Cpanic=abort", "-Zpanic-abort-tests"]
    assert result[4] == "-Zcodegen-backend=" + os.fspath(codegen_backend_path(SYSROOT))
    assert result[5:] == ["--sysroot", os.fspath(SYSROOT)]


def test_compiler_args_keep_given_sysroot():
    result = compiler_args(["--sysroot", "/elsewhere", "main.rs"], SYSROOT)
    assert result.count("--sysroot") == 1
    assert result[:3] == ["--sysroot", "/elsewhere", "main.rs"]
    assert os.fspath(SYSROOT) not in result


def test_compiler_args_do_not_modify_input():
    given = ["main.rs"]
    compiler_args(given, SYSROOT)
    assert given == ["main.rs"]


def test_cargo_plain_args_pass_through():
    argv, env = cargo_invocation(["build", "--release"], SYSROOT, {})
    assert argv == ["cargo", "build", "--release"]
    backend = os.fspath(codegen_backend_path(SYSROOT))
    expected = (
        " -Cpanic=abort -Zpanic-abort-tests -Zcodegen-backend="
        + backend
        + " --sysroot "
        + os.fspath(SYSROOT)
    )
    assert env["RUSTFLAGS"] == expected
    assert env["RUSTDOCFLAGS"] == expected


def test_cargo_appends_to_existing_flags():
    environ = {"RUSTFLAGS": "-Copt-level=1", "RUSTDOCFLAGS": "-Zflag", "OTHER": "x"}
    _, env = cargo_invocation(["build"], SYSROOT, environ)
    assert env["RUSTFLAGS"].startswith("-Copt-level=1 -Cpanic=abort")
    assert env["RUSTDOCFLAGS"].startswith("-Zflag -Cpanic=abort")
    assert env["OTHER"] == "x"
    assert environ["RUSTFLAGS"] == "-Copt-level=1"


@pytest.mark.parametrize(
    ("command", "mode_flag"),
    [("jit", "-Cllvm-args=mode=jit"), ("lazy-jit", "-Cllvm-args=mode=jit-lazy")],
)
def test_cargo_jit_modes(command, mode_flag):
    argv, env = cargo_invocation([command, "--bin", "demo"], SYSROOT, {})
    assert argv == [
        "cargo",
        "rustc",
        "--bin",
        "demo",
        "--",
        "-Zunstable-options",
        mode_flag,
    ]
    assert env["RUSTFLAGS"].endswith(" -Cprefer-dynamic")
    assert "-Cprefer-dynamic" not in env["RUSTDOCFLAGS"]


def test_cargo_without_arguments():
    argv, env = cargo_invocation([], SYSROOT, {})
    assert argv == ["cargo"]
    assert "-Cprefer-dynamic" not in env["RUSTFLAGS"]