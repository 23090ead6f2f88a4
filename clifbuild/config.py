"""Reading the build configuration file (``config.txt``)."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_CONFIG_PATH = "config.txt"


class ConfigError(Exception):
    """Raised when the configuration file holds an invalid entry."""


def load_config_file(
    path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH,
) -> list[tuple[str, str | None]]:
    """Return the ``(key, value)`` entries of the config file, in file order.

    ``#`` starts a comment, blank lines are ignored, and a line without ``=``
    yields an entry whose value is ``None``.
    """
    entries: list[tuple[str, str | None]] = []
    for raw_line in Path(path).read_text().splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        key, sep, value = line.partition("=")
        if sep:
            entries.append((key.strip(), value.strip()))
        else:
            entries.append((line, None))
    return entries


def _values_for(name: str, path: str | os.PathLike[str]) -> list[str | None]:
    return [value for key, value in load_config_file(path) if key == name]


def get_bool(name: str, path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH) -> bool:
    """Return whether the flag ``name`` is set; flags must not carry a value."""
    values = _values_for(name, path)
    if not values:
        return False
    if any(value is not None for value in values):
        raise ConfigError(f"Boolean config `{name}` has a value")
    return True


def get_value(
    name: str, path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH
) -> str | None:
    """Return the single value given for ``name``, or ``None`` if it is absent."""
    values = _values_for(name, path)
    if not values:
        return None
    if len(values) > 1:
        raise ConfigError(f"Config `{name}` given multiple values: {values!r}")
    value = values[0]
    if value is None:
        raise ConfigError(f"Config `{name}` missing value")
    return value