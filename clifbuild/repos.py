"""Fetching and patching the third-party repositories used by the test suites."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from .paths import Dirs, RelPath
from .utils import CargoProject, Command, spawn_and_wait

GITHUB = "https://github.com"

_GIT_IDENTITY = ("-c", "user.name=Dummy", "-c", "user.email=dummy@example.com")


@dataclass(frozen=True)
class GitRepo:
    """A repository pinned to a revision, with the name of the patches applied to it."""

    user: str
    repo: str
    rev: str
    patch_name: str

    @classmethod
    def github(cls, user: str, repo: str, rev: str, patch_name: str) -> GitRepo:
        return cls(user=user, repo=repo, rev=rev, patch_name=patch_name)

    def source_dir(self) -> RelPath:
        return RelPath.DOWNLOAD.join(self.repo)

    def fetch(self, dirs: Dirs) -> None:
        """Download the pinned revision and apply its patches."""
        target = self.source_dir().to_path(dirs)
        clone_repo_shallow_github(dirs, target, self.user, self.repo, self.rev)
        apply_patches(dirs, self.patch_name, target)


ABI_CAFE_REPO = GitRepo.github(
    "Gankra", "abi-cafe", "4c6dc8c9c687e2b3a760ff2176ce236872b37212", "abi-cafe"
)
RAND_REPO = GitRepo.github(
    "rust-random", "rand", "0f933f9c7176e53b2a3c7952ded484e1783f0bf1", "rand"
)
REGEX_REPO = GitRepo.github(
    "rust-lang", "regex", "341f207c1071f7290e3f228c710817c280c8dca1", "regex"
)
PORTABLE_SIMD_REPO = GitRepo.github(
    "rust-lang",
    "portable-simd",
    "582239ac3b32007613df04d7ffa78dc30f4c5645",
    "portable-simd",
)
SIMPLE_RAYTRACER_REPO = GitRepo.github(
    "ebobby", "simple-raytracer", "804a7a21b9e673a482797aa289a18ed480e4d813", "<none>"
)
SIMPLE_RAYTRACER = CargoProject(SIMPLE_RAYTRACER_REPO.source_dir(), "simple_raytracer")

FETCHED_REPOS = (
    ABI_CAFE_REPO,
    RAND_REPO,
    REGEX_REPO,
    PORTABLE_SIMD_REPO,
    SIMPLE_RAYTRACER_REPO,
)


def clone_repo(download_dir: str | os.PathLike[str], repo: str, rev: str) -> None:
    """Clone ``repo`` into ``download_dir`` and check out ``rev``."""
    print(f"[CLONE] {repo}", file=sys.stderr)
    # The exit code is ignored: the repository may already have been cloned.
    subprocess.run(["git", "clone", repo, os.fspath(download_dir)], check=False)

    clean_cmd = Command("git").args(["checkout", "--", "."])
    clean_cmd.cwd = Path(download_dir)
    spawn_and_wait(clean_cmd)

    checkout_cmd = Command("git").args(["checkout", "-q", rev])
    checkout_cmd.cwd = Path(download_dir)
    spawn_and_wait(checkout_cmd)


def clone_repo_shallow_github(
    dirs: Dirs, download_dir: str | os.PathLike[str], user: str, repo: str, rev: str
) -> None:
    """Fetch a source archive of ``user/repo`` at ``rev`` into ``download_dir``."""
    if os.name == "nt":
        # tar and curl may be missing on Windows, so use git there.
        clone_repo(download_dir, f"{GITHUB}/{user}/{repo}.git", rev)
        return

    download_root = RelPath.DOWNLOAD.to_path(dirs)
    archive_url = f"{GITHUB}/{user}/{repo}/archive/{rev}.tar.gz"
    archive_file = download_root / f"{rev}.tar.gz"
    archive_dir = download_root / f"{repo}-{rev}"
    download_dir = Path(download_dir)

    print(f"[DOWNLOAD] {user}/{repo} from {archive_url}", file=sys.stderr)

    archive_file.unlink(missing_ok=True)
    shutil.rmtree(archive_dir, ignore_errors=True)
    shutil.rmtree(download_dir, ignore_errors=True)

    spawn_and_wait(
        Command("curl").args(["--location", "--output", archive_file, archive_url])
    )

    unpack_cmd = Command("tar").args(["xf", archive_file])
    unpack_cmd.cwd = download_root
    spawn_and_wait(unpack_cmd)

    archive_dir.rename(download_dir)

    init_git_repo(download_dir)

    archive_file.unlink()


def init_git_repo(repo_dir: str | os.PathLike[str]) -> None:
    """Make ``repo_dir`` a git repository with all its files in one commit."""
    repo_dir = Path(repo_dir)
    for arguments in (
        ["init", "-q"],
        ["add", "."],
        [*_GIT_IDENTITY, "commit", "-m", "Initial commit", "-q"],
    ):
        cmd = Command("git").args(arguments)
        cmd.cwd = repo_dir
        spawn_and_wait(cmd)


def get_patches(dirs: Dirs, crate_name: str) -> list[Path]:
    """Return, sorted, the ``NNNN-<crate>...patch`` files that apply to ``crate_name``."""
    patches = []
    for path in RelPath.PATCHES.to_path(dirs).iterdir():
        if path.suffix != ".patch":
            continue
        _, sep, rest = path.name.partition("-")
        if not sep:
            raise ValueError(f"patch file name without a dash: {path.name!r}")
        if rest.startswith(crate_name):
            patches.append(path)
    return sorted(patches)


def apply_patches(
    dirs: Dirs, crate_name: str, target_dir: str | os.PathLike[str]
) -> None:
    """Apply the patches for ``crate_name`` to the git repository ``target_dir``."""
    if crate_name == "<none>":
        return

    target_dir = Path(target_dir)
    for patch in get_patches(dirs, crate_name):
        print(f"[PATCH] {target_dir.name!r} <- {patch.name!r}", file=sys.stderr)
        cmd = Command("git").args([*_GIT_IDENTITY, "am", patch, "-q"])
        cmd.cwd = target_dir
        spawn_and_wait(cmd)