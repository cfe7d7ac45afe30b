"""Small naming and sizing helpers shared by the framework."""

from __future__ import annotations

import re

_CAPS = re.compile(r"(?:[^\w\d]+)?([A-Z]+)")
_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb|tb)?\s*$", re.IGNORECASE)
_UNITS = {
    "b": 1,
    "kb": 1 << 10,
    "mb": 1 << 20,
    "gb": 1 << 30,
    "tb": 1 << 40,
}


def snake_case(value: str) -> str:
    """Return *value* converted from ``CamelCase`` to ``snake_case``."""

    if not value:
        return ""
    converted = _CAPS.sub(lambda m: "_" + m.group(1).lower(), value)
    return converted[1:] if converted.startswith("_") else converted


def parse_name(name: str, postfix: str | None = None) -> str:
    """Strip an optional *postfix* from *name* and snake-case the rest."""

    if postfix and name.endswith(postfix):
        name = name[: -len(postfix)]
    return snake_case(name)


def parse_size(value: int | str | None) -> int | None:
    """Convert ``"100kb"``-style limits to a byte count.

    Integers are returned unchanged and ``None`` means "no limit".
    """

    if value is None or isinstance(value, int):
        return value
    match = _SIZE.match(value)
    if match is None:
        raise ValueError(f"invalid size limit: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _UNITS[(unit or "b").lower()])


__all__ = ["parse_name", "parse_size", "snake_case"]
