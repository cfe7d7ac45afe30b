"""Declarative validation rules.

Each rule kind is a small frozen dataclass tagged by its ``type`` class
attribute. Rules can also be written as plain mappings
(``{"type": "string", "min": 1}``) and converted with :func:`to_rule`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any, Callable, ClassVar, Mapping, Sequence, Union


class _Missing:
    """Marker for an unset ``default``."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

ESCAPE_LEVELS = (1, 2)
ROUNDING_MODES = ("round", "floor", "ceil")


@dataclass(frozen=True, kw_only=True)
class Rule:
    """Modifiers shared by every rule kind."""

    type: ClassVar[str] = ""

    default: Any = MISSING
    optional: bool = False
    parse: Callable[[Any, "Rule"], Any] | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def resolve_default(self, value: Any) -> Any:
        """Return the declared default, calling it with ``(value, rule)``."""

        if callable(self.default):
            return self.default(value, self)
        return self.default


@dataclass(frozen=True, kw_only=True)
class BooleanRule(Rule):
    type: ClassVar[str] = "boolean"

    truthy: Sequence[Any] = ()
    falsy: Sequence[Any] = ()


@dataclass(frozen=True, kw_only=True)
class StringRule(Rule):
    type: ClassVar[str] = "string"

    min: int | None = None
    max: int | None = None
    length: int | None = None
    values: Sequence[str] | None = None
    pattern: str | re.Pattern[str] | None = None
    trim: bool = False
    escape_level: int = 0
    custom: Callable[[str, "StringRule"], str] | None = None

    def __post_init__(self) -> None:
        if self.escape_level and self.escape_level not in ESCAPE_LEVELS:
            raise TypeError(f"escape_level must be one of {ESCAPE_LEVELS}")


@dataclass(frozen=True, kw_only=True)
class NumberRule(Rule):
    type: ClassVar[str] = "number"

    integer: bool = False
    digits: int | None = None
    rounding_mode: str = "round"
    min: float | None = None
    max: float | None = None
    values: Sequence[float] | None = None

    def __post_init__(self) -> None:
        if self.rounding_mode not in ROUNDING_MODES:
            raise TypeError(f"rounding_mode must be one of {ROUNDING_MODES}")


@dataclass(frozen=True, kw_only=True)
class BigintRule(Rule):
    type: ClassVar[str] = "bigint"

    min: int | str | None = None
    max: int | str | None = None


@dataclass(frozen=True, kw_only=True)
class DateRule(Rule):
    type: ClassVar[str] = "date"

    min: Any = None
    max: Any = None
    date_only: bool = False


@dataclass(frozen=True, kw_only=True)
class ArrayRule(Rule):
    """Array rule.

    ``nested`` applies one rule slot to every element; ``items`` lists one
    rule slot per position and requires an exact length match.
    """

    type: ClassVar[str] = "array"

    nested: "RuleSlot | None" = None
    items: "Sequence[RuleSlot] | None" = None
    length: int | None = None
    min: int | None = None
    max: int | None = None


@dataclass(frozen=True, kw_only=True)
class ObjectRule(Rule):
    type: ClassVar[str] = "object"

    nested: "RuleSlot | None" = None
    schema: "ValidationSchema | None" = None


RuleSlot = Union[Rule, Sequence[Rule]]
ValidationSchema = Mapping[str, RuleSlot]

RULE_TYPES: dict[str, type[Rule]] = {
    cls.type: cls
    for cls in (
        BooleanRule,
        StringRule,
        NumberRule,
        BigintRule,
        DateRule,
        ArrayRule,
        ObjectRule,
    )
}

_ALIASES = {
    "escape": "escape_level",
    "escapeLevel": "escape_level",
    "dateonly": "date_only",
    "dateOnly": "date_only",
    "roundingFn": "rounding_mode",
    "roundingMode": "rounding_mode",
}


def to_rule(spec: Rule | Mapping[str, Any]) -> Rule:
    """Return a :class:`Rule` for *spec*, converting the mapping form.

    Nested rules and schemas are converted recursively. In the mapping form
    a list under ``nested`` of an array rule declares per-position rules.
    """

    if isinstance(spec, Rule):
        return spec
    if not isinstance(spec, Mapping):
        raise TypeError(f"cannot build a validation rule from {spec!r}")
    options = {_ALIASES.get(key, key): value for key, value in spec.items()}
    kind = options.pop("type", None)
    cls = RULE_TYPES.get(kind)  # type: ignore[arg-type]
    if cls is None:
        raise TypeError(f"unknown validation rule type: {kind!r}")
    allowed = {f.name for f in fields(cls)}
    unknown = set(options) - allowed
    if unknown:
        raise TypeError(
            f"unknown option(s) for {kind} rule: {', '.join(sorted(unknown))}"
        )
    if cls is ArrayRule and isinstance(options.get("nested"), (list, tuple)):
        options["items"] = [to_slot(r) for r in options.pop("nested")]
    elif cls is ArrayRule and options.get("items") is not None:
        options["items"] = [to_slot(r) for r in options["items"]]
    if options.get("nested") is not None:
        options["nested"] = to_slot(options["nested"])
    if cls is ObjectRule and options.get("schema") is not None:
        options["schema"] = to_schema(options["schema"])
    return cls(**options)


def to_slot(spec: Any) -> RuleSlot:
    """Convert a single rule or an ordered list of alternative rules."""

    if spec is None:
        raise TypeError("validation rule is null")
    if isinstance(spec, (list, tuple)):
        return [to_rule(r) for r in spec]
    return to_rule(spec)


def to_schema(schema: Mapping[str, Any]) -> dict[str, RuleSlot]:
    """Convert every slot of *schema*, keeping the declaration order."""

    return {name: to_slot(slot) for name, slot in schema.items()}


__all__ = [
    "ArrayRule",
    "BigintRule",
    "BooleanRule",
    "DateRule",
    "ESCAPE_LEVELS",
    "MISSING",
    "NumberRule",
    "ObjectRule",
    "ROUNDING_MODES",
    "RULE_TYPES",
    "Rule",
    "RuleSlot",
    "StringRule",
    "ValidationSchema",
    "to_rule",
    "to_schema",
    "to_slot",
]
