# clifbuild

A build driver for a Cranelift-based code generation backend for `rustc`.
It copies and patches the standard library sources, fetches the external
projects the test suites use, builds the backend, assembles a sysroot around
it and runs the test suites against it. It drives `rustc`, `cargo`, `rustup`,
`git`, `curl`, `tar`, `hyperfine` and, for cross targets, `qemu-*` or `wine`,
which must be on your `PATH`.

## Installation

```
pip install .
```

For running the package's own tests:

```
pip install ".[test]"
pytest
```

## Usage

Run the commands from the root of the backend's source tree; that directory
must contain a `config.txt`.

```
clifbuild prepare [--out-dir DIR]
clifbuild build [--debug] [--sysroot none|clif|llvm] [--out-dir DIR] [--no-unstable-features]
clifbuild test  [--debug] [--sysroot none|clif|llvm] [--out-dir DIR] [--no-unstable-features]
```

- `prepare` empties the `download` directory, copies the toolchain's library
  sources (the `rust-src` component) into `build_sysroot/sysroot_src`, makes
  it a git repository and applies the `sysroot` patches, installs `hyperfine`
  with `cargo install`, fetches abi-cafe, rand, regex, portable-simd and
  simple-raytracer at pinned revisions and applies their patches, and builds
  simple-raytracer with the stock compiler as `build/raytracer_cg_llvm`.
- `build` builds the backend, then creates a fresh `dist/` directory holding
  the backend library, the compiled `rustc-clif`, `rustdoc-clif` and
  `cargo-clif` wrappers, and the chosen sysroot.
- `test` builds the backend and runs every test suite enabled in
  `config.txt`, followed by abi-cafe when `testsuite.abi-cafe` is set and the
  build is not a cross build.

Options:

- `--sysroot none|clif|llvm`: which standard library goes into the sysroot.
  `none` includes none, `clif` builds it with the backend (the default),
  `llvm` links in the precompiled one shipped with `rustc`, leaving out the
  rustc-dev libraries.
- `--out-dir DIR`: where the `download`, `build` and `dist` directories are
  placed. Defaults to the working directory.
- `--debug`: build in debug mode instead of release.
- `--no-unstable-features`: build the backend without its `unstable-features`
  cargo feature.

Running `clifbuild` with no arguments prints the usage text and exits with
status 0. An unknown command, flag or argument prints an error and the usage
text and exits with status 1. A failing subprocess, an invalid `config.txt`
or an outdated patched sysroot source also ends the run with status 1.

### Target selection

The host triple is taken from `HOST_TRIPLE`, then from a `host = ...` line in
`config.txt`, then from `rustc -vV`. The target triple is taken from
`TARGET_TRIPLE` (an empty value means the host), then from `target = ...` in
`config.txt`, and otherwise equals the host triple.

For `aarch64-unknown-linux-gnu` and `s390x-unknown-linux-gnu` targets the
matching cross `gcc` is used as linker and test programs run under qemu; for
`x86_64-pc-windows-gnu` they run under wine. JIT tests only run on a native
x86_64 build whose host is not Windows.

When `CI=true` is set, warnings are denied and incremental compilation is
turned off. `RUN_RUNS` sets the number of benchmark runs (default 10, or 2 on
CI).

### config.txt

One entry per line; `#` starts a comment. A bare key switches a boolean on,
`key = value` sets a value:

```
# test suites
testsuite.no_sysroot
testsuite.base_sysroot
testsuite.extended_sysroot
testsuite.abi-cafe

build.mini_core
aot.mini_core_hello_world
jit.std_example
test.regex
bench.simple-raytracer

host = x86_64-unknown-linux-gnu
```

Each test inside a suite runs only when its own key is set. `keep_sysroot`
keeps the previous standard library build's `deps` directory. A boolean given
a value, a value key given without one, or a value key given twice raises
`clifbuild.config.ConfigError`.

## Filtering profiles

`clif-filter-profile` trims a profile in stackcollapse format to the samples
that concern the backend:

```
clif-filter-profile PROFILE OUTPUT
```

Samples without backend frames, and samples in a few unrelated compiler
passes, are dropped. Each remaining stack is trimmed at the start to the
interesting compiler pass and at the end after well-known leaf functions such
as `malloc` and `free`. The same filtering is available as
`clifbuild.filter_profile.filter_line` and `filter_profile`.

## Compiler wrappers

`clifbuild.wrappers` computes what the `rustc-clif`, `rustdoc-clif` and
`cargo-clif` wrappers pass on: `compiler_args` adds the panic, backend and
sysroot flags to a rustc or rustdoc argument list, and `cargo_invocation`
returns the cargo argv and environment, with `jit` and `lazy-jit` as first
argument selecting a JIT mode through `cargo rustc`. `rustc_clif_main`,
`rustdoc_clif_main` and `cargo_clif_main` run the tool with those arguments,
taking the directory of the running program as the sysroot.

## What this package does not provide

The package is only the driver. The backend's own sources, the example
programs under `example/`, the patches under `patches/`, the wrapper sources
under `scripts/` and the `build_sysroot` cargo project all come from the
source tree it is run in; without them `build` and `test` have nothing to
compile.