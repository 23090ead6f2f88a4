"""The test suites run against the built backend, and the driver that runs them."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path

from . import build_sysroot, config
from .build_sysroot import SysrootKind
from .paths import Dirs, RelPath
from .repos import (
    PORTABLE_SIMD_REPO,
    RAND_REPO,
    REGEX_REPO,
    SIMPLE_RAYTRACER,
)
from .runner import BUILD_EXAMPLE_OUT_DIR, SuiteCase, SuiteRunner
from .rustc_info import get_file_name, get_wrapper_file_name
from .utils import (
    CargoProject,
    hyperfine_command,
    is_ci,
    spawn_and_wait,
    spawn_and_wait_with_input,
)

RAND = CargoProject(RAND_REPO.source_dir(), "rand")
REGEX = CargoProject(REGEX_REPO.source_dir(), "regex")
PORTABLE_SIMD = CargoProject(PORTABLE_SIMD_REPO.source_dir(), "portable_simd")
LIBCORE_TESTS = CargoProject(
    RelPath.BUILD_SYSROOT.join("sysroot_src/library/core/tests"), "core_tests"
)

_JIT_ARGS = "abc bcd"


def _rust_lines(text: str) -> list[str]:
    """Split ``text`` into lines on ``\\n``, dropping a trailing ``\\r`` from each."""
    if not text:
        return []
    pieces = text.split("\n")
    if text.endswith("\n"):
        pieces.pop()
    return [piece[:-1] if piece.endswith("\r") else piece for piece in pieces]


def normalize_regex_output(output: str) -> str:
    """Drop codegen progress lines and join the rest with CRLF, ending in CRLF."""
    kept = [line for line in _rust_lines(output) if "codegen mono items" not in line]
    return "\r\n".join([*kept, ""])


def _triple(runner: SuiteRunner) -> str:
    return runner.target_compiler.triple


def _compile_and_run(
    source: str,
    binary: str,
    *,
    crate_name: str | None = None,
    flags: tuple[str, ...] = (),
    run_args: tuple[str, ...] = (),
):
    def case(runner: SuiteRunner) -> None:
        args = [source]
        if crate_name is not None:
            args += ["--crate-name", crate_name]
        args += ["--crate-type", "bin", *flags, "--target", _triple(runner)]
        runner.run_rustc(args)
        runner.run_out_command(binary, run_args)

    return case


def _build_mini_core(runner: SuiteRunner) -> None:
    runner.run_rustc(
        [
            "example/mini_core.rs",
            "--crate-name",
            "mini_core",
            "--crate-type",
            "lib,dylib",
            "--target",
            _triple(runner),
        ]
    )


def _build_example(runner: SuiteRunner) -> None:
    runner.run_rustc(
        ["example/example.rs", "--crate-type", "lib", "--target", _triple(runner)]
    )


def _jit_mini_core_hello_world(runner: SuiteRunner) -> None:
    for mode in ("jit", "jit-lazy"):
        if mode == "jit-lazy":
            print("[JIT-lazy] mini_core_hello_world", file=sys.stderr)
        cmd = runner.rustc_command(
            [
                "-Zunstable-options",
                f"-Cllvm-args=mode={mode}",
                "-Cprefer-dynamic",
                "example/mini_core_hello_world.rs",
                "--cfg",
                "jit",
                "--target",
                _triple(runner),
            ]
        )
        cmd.set_env("CG_CLIF_JIT_ARGS", _JIT_ARGS)
        spawn_and_wait(cmd)


def _build_alloc_system(runner: SuiteRunner) -> None:
    runner.run_rustc(
        ["example/alloc_system.rs", "--crate-type", "lib", "--target", _triple(runner)]
    )


def _jit_std_example(runner: SuiteRunner) -> None:
    for mode in ("jit", "jit-lazy"):
        if mode == "jit-lazy":
            print("[JIT-lazy] std_example", file=sys.stderr)
        runner.run_rustc(
            [
                "-Zunstable-options",
                f"-Cllvm-args=mode={mode}",
                "-Cprefer-dynamic",
                "example/std_example.rs",
                "--target",
                _triple(runner),
            ]
        )


NO_SYSROOT_SUITE = (
    SuiteCase("build.mini_core", _build_mini_core),
    SuiteCase("build.example", _build_example),
    SuiteCase("jit.mini_core_hello_world", _jit_mini_core_hello_world),
    SuiteCase(
        "aot.mini_core_hello_world",
        _compile_and_run(
            "example/mini_core_hello_world.rs",
            "mini_core_hello_world",
            crate_name="mini_core_hello_world",
            flags=("-g",),
            run_args=("abc", "bcd"),
        ),
    ),
)

BASE_SYSROOT_SUITE = (
    SuiteCase(
        "aot.arbitrary_self_types_pointers_and_wrappers",
        _compile_and_run(
            "example/arbitrary_self_types_pointers_and_wrappers.rs",
            "arbitrary_self_types_pointers_and_wrappers",
            crate_name="arbitrary_self_types_pointers_and_wrappers",
        ),
    ),
    SuiteCase(
        "aot.issue_91827_extern_types",
        _compile_and_run(
            "example/issue-91827-extern-types.rs",
            "issue_91827_extern_types",
            crate_name="issue_91827_extern_types",
        ),
    ),
    SuiteCase("build.alloc_system", _build_alloc_system),
    SuiteCase(
        "aot.alloc_example",
        _compile_and_run("example/alloc_example.rs", "alloc_example"),
    ),
    SuiteCase("jit.std_example", _jit_std_example),
    SuiteCase(
        "aot.std_example",
        _compile_and_run("example/std_example.rs", "std_example", run_args=("arg",)),
    ),
    SuiteCase(
        "aot.dst_field_align",
        _compile_and_run(
            "example/dst-field-align.rs", "dst_field_align", crate_name="dst_field_align"
        ),
    ),
    SuiteCase(
        "aot.subslice-patterns-const-eval",
        _compile_and_run(
            "example/subslice-patterns-const-eval.rs",
            "subslice-patterns-const-eval",
            flags=("-Cpanic=abort",),
        ),
    ),
    SuiteCase(
        "aot.track-caller-attribute",
        _compile_and_run(
            "example/track-caller-attribute.rs",
            "track-caller-attribute",
            flags=("-Cpanic=abort",),
        ),
    ),
    SuiteCase(
        "aot.float-minmax-pass",
        _compile_and_run(
            "example/float-minmax-pass.rs",
            "float-minmax-pass",
            flags=("-Cpanic=abort",),
        ),
    ),
    SuiteCase("aot.mod_bench", _compile_and_run("example/mod_bench.rs", "mod_bench")),
    SuiteCase(
        "aot.issue-72793", _compile_and_run("example/issue-72793.rs", "issue-72793")
    ),
)


def _test_rand(runner: SuiteRunner) -> None:
    spawn_and_wait(RAND.clean(runner.target_compiler.cargo, runner.dirs))
    if runner.is_native:
        print("[TEST] rust-random/rand", file=sys.stderr)
        spawn_and_wait(
            RAND.test(runner.target_compiler, runner.dirs).arg("--workspace")
        )
    else:
        print("[AOT] rust-random/rand", file=sys.stderr)
        spawn_and_wait(
            RAND.build(runner.target_compiler, runner.dirs).args(["--workspace", "--tests"])
        )


def _bench_simple_raytracer(runner: SuiteRunner) -> None:
    run_runs = int(os.environ.get("RUN_RUNS", "2" if is_ci() else "10"))
    dirs = runner.dirs

    if not runner.is_native:
        spawn_and_wait(SIMPLE_RAYTRACER.clean(runner.target_compiler.cargo, dirs))
        print("[BENCH COMPILE] ebobby/simple-raytracer (skipped)", file=sys.stderr)
        print("[COMPILE] ebobby/simple-raytracer", file=sys.stderr)
        spawn_and_wait(SIMPLE_RAYTRACER.build(runner.target_compiler, dirs))
        print("[BENCH RUN] ebobby/simple-raytracer (skipped)", file=sys.stderr)
        return

    print("[BENCH COMPILE] ebobby/simple-raytracer", file=sys.stderr)
    cargo_clif = RelPath.DIST.to_path(dirs) / get_wrapper_file_name("cargo-clif", "bin")
    manifest_path = SIMPLE_RAYTRACER.manifest_path(dirs)
    target_dir = SIMPLE_RAYTRACER.target_dir(dirs)
    project_args = f"--manifest-path {manifest_path} --target-dir {target_dir}"

    bench_compile = hyperfine_command(
        1,
        run_runs,
        f"cargo clean {project_args}",
        f"cargo build {project_args}",
        f"{cargo_clif} build {project_args}",
    )
    spawn_and_wait(bench_compile)

    print("[BENCH RUN] ebobby/simple-raytracer", file=sys.stderr)
    build_dir = RelPath.BUILD.to_path(dirs)
    shutil.copy(
        target_dir / "debug" / get_file_name("main", "bin"),
        build_dir / get_file_name("raytracer_cg_clif", "bin"),
    )

    bench_run = hyperfine_command(
        0,
        run_runs,
        None,
        os.fspath(Path(".") / get_file_name("raytracer_cg_llvm", "bin")),
        os.fspath(Path(".") / get_file_name("raytracer_cg_clif", "bin")),
    )
    bench_run.cwd = build_dir
    spawn_and_wait(bench_run)


def _test_libcore(runner: SuiteRunner) -> None:
    spawn_and_wait(LIBCORE_TESTS.clean(runner.host_compiler.cargo, runner.dirs))
    if runner.is_native:
        spawn_and_wait(LIBCORE_TESTS.test(runner.target_compiler, runner.dirs))
    else:
        print("Cross-Compiling: Not running tests", file=sys.stderr)
        spawn_and_wait(
            LIBCORE_TESTS.build(runner.target_compiler, runner.dirs).arg("--tests")
        )


def _lint_rustflags(runner: SuiteRunner) -> str:
    # Newer aho_corasick versions raise deprecation warnings.
    return f"{runner.target_compiler.rustflags} --cap-lints warn"


def _test_regex_dna(runner: SuiteRunner) -> None:
    dirs = runner.dirs
    spawn_and_wait(REGEX.clean(runner.target_compiler.cargo, dirs))
    lint_rustflags = _lint_rustflags(runner)

    build_cmd = REGEX.build(runner.target_compiler, dirs)
    build_cmd.args(["--example", "shootout-regex-dna"])
    build_cmd.set_env("RUSTFLAGS", lint_rustflags)
    spawn_and_wait(build_cmd)

    if not runner.is_native:
        return

    run_cmd = REGEX.run(runner.target_compiler, dirs)
    run_cmd.args(["--example", "shootout-regex-dna"])
    run_cmd.set_env("RUSTFLAGS", lint_rustflags)

    examples = REGEX.source_dir(dirs) / "examples"
    input_text = (examples / "regexdna-input.txt").read_text()
    expected_path = examples / "regexdna-output.txt"
    expected = expected_path.read_text()

    output = normalize_regex_output(spawn_and_wait_with_input(run_cmd, input_text))

    if _rust_lines(expected) != _rust_lines(output):
        res_path = REGEX.source_dir(dirs) / "res.txt"
        res_path.write_text(output)
        if os.name == "nt":
            print("Output files don't match!")
            print(f"Expected Output:\n{expected}")
            print(f"Actual Output:\n{output}")
        else:
            subprocess.run(["diff", "-u", os.fspath(res_path), os.fspath(expected_path)])
        raise RuntimeError("regex-dna output does not match the expected output")


def _test_regex(runner: SuiteRunner) -> None:
    spawn_and_wait(REGEX.clean(runner.host_compiler.cargo, runner.dirs))
    lint_rustflags = _lint_rustflags(runner)

    if runner.is_native:
        run_cmd = REGEX.test(runner.target_compiler, runner.dirs)
        run_cmd.args(
            [
                "--tests",
                "--",
                "--exclude-should-panic",
                "--test-threads",
                "1",
                "-Zunstable-options",
                "-q",
            ]
        )
        run_cmd.set_env("RUSTFLAGS", lint_rustflags)
        spawn_and_wait(run_cmd)
    else:
        print("Cross-Compiling: Not running tests", file=sys.stderr)
        build_cmd = REGEX.build(runner.target_compiler, runner.dirs).arg("--tests")
        build_cmd.set_env("RUSTFLAGS", lint_rustflags)
        spawn_and_wait(build_cmd)


def _test_portable_simd(runner: SuiteRunner) -> None:
    spawn_and_wait(PORTABLE_SIMD.clean(runner.host_compiler.cargo, runner.dirs))
    spawn_and_wait(
        PORTABLE_SIMD.build(runner.target_compiler, runner.dirs).arg("--all-targets")
    )
    if runner.is_native:
        spawn_and_wait(PORTABLE_SIMD.test(runner.target_compiler, runner.dirs).arg("-q"))


EXTENDED_SYSROOT_SUITE = (
    SuiteCase("test.rust-random/rand", _test_rand),
    SuiteCase("bench.simple-raytracer", _bench_simple_raytracer),
    SuiteCase("test.libcore", _test_libcore),
    SuiteCase("test.regex-shootout-regex-dna", _test_regex_dna),
    SuiteCase("test.regex", _test_regex),
    SuiteCase("test.portable-simd", _test_portable_simd),
)


def run_tests(
    dirs: Dirs,
    channel: str,
    sysroot_kind: SysrootKind,
    cg_clif_dylib: str | os.PathLike[str],
    host_triple: str,
    target_triple: str,
) -> None:
    """Run the test suites enabled in the configuration file."""
    runner = SuiteRunner(dirs, host_triple, target_triple)

    if config.get_bool("testsuite.no_sysroot"):
        build_sysroot.build_sysroot(
            dirs, channel, SysrootKind.NONE, cg_clif_dylib, host_triple, target_triple
        )
        BUILD_EXAMPLE_OUT_DIR.ensure_fresh(dirs)
        runner.run_testsuite(NO_SYSROOT_SUITE)
    else:
        print("[SKIP] no_sysroot tests", file=sys.stderr)

    run_base_sysroot = config.get_bool("testsuite.base_sysroot")
    run_extended_sysroot = config.get_bool("testsuite.extended_sysroot")

    if run_base_sysroot or run_extended_sysroot:
        build_sysroot.build_sysroot(
            dirs, channel, sysroot_kind, cg_clif_dylib, host_triple, target_triple
        )

    if run_base_sysroot:
        runner.run_testsuite(BASE_SYSROOT_SUITE)
    else:
        print("[SKIP] base_sysroot tests", file=sys.stderr)

    if run_extended_sysroot:
        runner.run_testsuite(EXTENDED_SYSROOT_SUITE)
    else:
        print("[SKIP] extended_sysroot tests", file=sys.stderr)