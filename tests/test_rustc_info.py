import subprocess
from pathlib import Path
from unittest import mock

import pytest

from clifbuild import rustc_info


def _completed(stdout):
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout.encode())


VERSION_INFO = (
    "rustc 1.66.0-nightly\n"
    "binary: rustc\n"
    "host: x86_64-unknown-linux-gnu\n"
    "release: 1.66.0-nightly\n"
)


def test_parse_host_triple():
    assert rustc_info.parse_host_triple(VERSION_INFO) == "x86_64-unknown-linux-gnu"


def test_parse_host_triple_missing():
    with pytest.raises(ValueError):
        rustc_info.parse_host_triple("rustc 1.0\nbinary: rustc\n")


def test_get_host_triple_runs_rustc():
    with mock.patch("subprocess.run", return_value=_completed(VERSION_INFO)) as run:
        assert rustc_info.get_host_triple() == "x86_64-unknown-linux-gnu"
    assert run.call_args.args[0] == ["rustc", "-vV"]


def test_get_rustc_path_strips_output():
    with mock.patch("subprocess.run", return_value=_completed("/opt/bin/rustc\n")) as run:
        assert rustc_info.get_rustc_path() == Path("/opt/bin/rustc")
    assert run.call_args.args[0] == ["rustup", "which", "rustc"]


def test_get_default_sysroot():
    with mock.patch("subprocess.run", return_value=_completed("/opt/sysroot\n")) as run:
        assert rustc_info.get_default_sysroot() == Path("/opt/sysroot")
    assert run.call_args.args[0] == ["rustc", "--print", "sysroot"]


def test_get_file_name():
    output = "librustc_codegen_cranelift.so\n"
    with mock.patch("subprocess.run", return_value=_completed(output)) as run:
        name = rustc_info.get_file_name("rustc_codegen_cranelift", "dylib")
    assert name == "librustc_codegen_cranelift.so"
    assert run.call_args.args[0] == [
        "rustc",
        "--crate-name",
        "rustc_codegen_cranelift",
        "--crate-type",
        "dylib",
        "--print",
        "file-names",
        "-",
    ]


def test_get_file_name_rejects_several_lines():
    with mock.patch("subprocess.run", return_value=_completed("main\nmain.pdb\n")):
        with pytest.raises(ValueError):
            rustc_info.get_file_name("main", "bin")


def test_get_file_name_rejects_foreign_name():
    with mock.patch("subprocess.run", return_value=_completed("other\n")):
        with pytest.raises(ValueError):
            rustc_info.get_file_name("main", "bin")


def test_get_wrapper_file_name_converts_dashes():
    with mock.patch("subprocess.run", return_value=_completed("rustc_clif\n")) as run:
        assert rustc_info.get_wrapper_file_name("rustc-clif", "bin") == "rustc-clif"
    assert "rustc_clif" in run.call_args.args[0]