"""Directory layout of a build: the base directories and paths relative to them."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class Dirs:
    """The four base directories of a build."""

    source_dir: Path
    download_dir: Path
    build_dir: Path
    dist_dir: Path


class PathBase(Enum):
    SOURCE = "source"
    DOWNLOAD = "download"
    BUILD = "build"
    DIST = "dist"

    def to_path(self, dirs: Dirs) -> Path:
        return Path(getattr(dirs, f"{self.value}_dir"))


@dataclass(frozen=True)
class RelPath:
    """A path made of a base directory and a sequence of components."""

    base: PathBase
    parts: tuple[str, ...] = ()

    def join(self, suffix: str) -> RelPath:
        return RelPath(self.base, self.parts + (suffix,))

    def to_path(self, dirs: Dirs) -> Path:
        return self.base.to_path(dirs).joinpath(*self.parts)

    def ensure_exists(self, dirs: Dirs) -> None:
        self.to_path(dirs).mkdir(parents=True, exist_ok=True)

    def ensure_fresh(self, dirs: Dirs) -> None:
        path = self.to_path(dirs)
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)


RelPath.SOURCE = RelPath(PathBase.SOURCE)
RelPath.DOWNLOAD = RelPath(PathBase.DOWNLOAD)
RelPath.BUILD = RelPath(PathBase.BUILD)
RelPath.DIST = RelPath(PathBase.DIST)
RelPath.SCRIPTS = RelPath.SOURCE.join("scripts")
RelPath.BUILD_SYSROOT = RelPath.SOURCE.join("build_sysroot")
RelPath.PATCHES = RelPath.SOURCE.join("patches")