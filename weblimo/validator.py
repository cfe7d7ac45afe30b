"""Rule-driven validation and coercion of request payloads."""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Callable, Mapping

from dateutil import parser as dateutil_parser

from .rules import (
    ArrayRule,
    BigintRule,
    BooleanRule,
    DateRule,
    NumberRule,
    ObjectRule,
    Rule,
    RuleSlot,
    StringRule,
    to_rule,
)

# Applied cumulatively: level 1 uses the first entry, level 2 both.
ESCAPE_REPLACEMENTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]+"), ""),
    (
        re.compile(r"[ \t\u00a0\u2000-\u200b\u202f\u205f\u2060\u3000\ufefd-\ufeff]+"),
        " ",
    ),
)

_ROUNDING = {
    "round": ROUND_HALF_UP,
    "floor": ROUND_FLOOR,
    "ceil": ROUND_CEILING,
}


class ValidationError(Exception):
    """Raised when a value does not satisfy a rule.

    ``property_path`` is the dotted/bracketed location of the value
    (``body.items[2].name``), ``value`` the raw input and ``rule`` the rule
    or list of alternative rules that rejected it.
    """

    def __init__(self, property_path: str, value: Any, rule: Any) -> None:
        super().__init__(
            f"{property_path} {value!r} does not apply rule {rule!r}"
        )
        self._property_path = property_path
        self._value = value
        self._rule = rule

    @property
    def property_path(self) -> str:
        return self._property_path

    @property
    def value(self) -> Any:
        return self._value

    @property
    def rule(self) -> Any:
        return self._rule


def is_equal(a: Any, b: Any) -> bool:
    """Structural equality over the values rules deal with.

    ``bool`` never equals a number and ``NaN`` equals ``NaN``.
    """

    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, float) and isinstance(b, float):
        if math.isnan(a) and math.isnan(b):
            return True
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(a.keys()) != set(b.keys()):
            return False
        return all(is_equal(a[key], b[key]) for key in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(is_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (Mapping, list, tuple)) or isinstance(b, (Mapping, list, tuple)):
        return False
    try:
        return bool(a == b)
    except TypeError:
        return False


def validate(
    value: Any,
    rule: RuleSlot | Mapping[str, Any] | None,
    property_path: str = "this",
    is_query: bool = False,
) -> Any:
    """Validate *value* against a rule slot and return the coerced value.

    A list of rules is tried left to right and the first success wins; when
    every alternative fails a single :class:`ValidationError` carrying the
    whole list is raised. ``is_query`` enables lenient mode, where an empty
    string counts as absent for non-string rules. ``None`` is returned for
    an absent optional value.
    """

    if isinstance(rule, (list, tuple)):
        for alternative in rule:
            try:
                return _resolve(value, alternative, property_path, is_query)
            except ValidationError:
                continue
        raise ValidationError(property_path, value, rule)
    return _resolve(value, rule, property_path, is_query)


def _resolve(value: Any, rule: Any, path: str, is_query: bool) -> Any:
    if rule is None:
        raise TypeError("validation rule is null")
    if not isinstance(rule, Rule):
        rule = to_rule(rule)

    if _is_absent(value, rule, is_query):
        if rule.has_default:
            return _apply_parse(rule.resolve_default(value), rule)
        if rule.optional:
            return None
        raise ValidationError(path, value, rule)

    if rule.has_default and is_equal(value, rule.resolve_default(value)):
        return _apply_parse(value, rule)

    coerced = _COERCERS[rule.type](value, rule, path, is_query)
    return _apply_parse(coerced, rule)


def _is_absent(value: Any, rule: Rule, is_query: bool) -> bool:
    if value is None:
        return True
    return is_query and value == "" and rule.type != "string"


def _apply_parse(value: Any, rule: Rule) -> Any:
    if rule.parse is not None:
        return rule.parse(value, rule)
    return value


def _contains(candidates: Any, value: Any) -> bool:
    if not candidates:
        return False
    return any(is_equal(value, candidate) for candidate in candidates)


def _to_number(value: Any) -> int | float | None:
    """Return a finite number for *value* or ``None``."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _is_integral(number: int | float) -> bool:
    return isinstance(number, int) or number.is_integer()


def _coerce_boolean(
    value: Any, rule: BooleanRule, path: str, is_query: bool
) -> bool:
    if value is True or (is_query and value == "1") or _contains(rule.truthy, value):
        return True
    if value is False or (is_query and value == "0") or _contains(rule.falsy, value):
        return False
    raise ValidationError(path, value, rule)


def _coerce_number(
    value: Any, rule: NumberRule, path: str, is_query: bool
) -> int | float:
    number = _to_number(value)
    if number is None:
        raise ValidationError(path, value, rule)
    if rule.digits is not None and rule.digits > 0:
        exact = Decimal(str(number))
        with localcontext() as ctx:
            # room for every integer digit plus the requested fraction
            ctx.prec = max(ctx.prec, exact.adjusted() + rule.digits + 2)
            rounded = exact.quantize(
                Decimal(1).scaleb(-rule.digits),
                rounding=_ROUNDING[rule.rounding_mode],
            )
        number = float(rounded)
        if not math.isfinite(number):
            raise ValidationError(path, value, rule)
    if (
        (rule.integer and not _is_integral(number))
        or (rule.min is not None and number < rule.min)
        or (rule.max is not None and number > rule.max)
        or (rule.values is not None and not _contains(rule.values, number))
    ):
        raise ValidationError(path, value, rule)
    return number


def _coerce_bigint(value: Any, rule: BigintRule, path: str, is_query: bool) -> int:
    number = _to_number(value)
    if number is None or not _is_integral(number):
        raise ValidationError(path, value, rule)
    number = int(number)
    low = None if rule.min is None else int(rule.min)
    high = None if rule.max is None else int(rule.max)
    if (low is not None and number < low) or (high is not None and number > high):
        raise ValidationError(path, value, rule)
    return number


def _number_text(number: int | float) -> str:
    if isinstance(number, float) and number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return str(number)


def _coerce_string(value: Any, rule: StringRule, path: str, is_query: bool) -> str:
    if isinstance(value, bool):
        raise ValidationError(path, value, rule)
    if isinstance(value, (int, float)):
        text = _number_text(value)
    elif isinstance(value, str):
        text = value
    else:
        raise ValidationError(path, value, rule)

    pattern = rule.pattern
    if (
        (rule.length is not None and len(text) != rule.length)
        or (rule.min is not None and len(text) < rule.min)
        or (rule.max is not None and len(text) > rule.max)
        or (rule.values is not None and text not in rule.values)
        or (isinstance(pattern, str) and pattern not in text)
        or (isinstance(pattern, re.Pattern) and pattern.fullmatch(text) is None)
    ):
        raise ValidationError(path, value, rule)

    if rule.trim:
        text = text.strip()
    for regex, replacement in ESCAPE_REPLACEMENTS[: rule.escape_level]:
        text = regex.sub(replacement, text)
    if rule.custom is not None:
        return rule.custom(text, rule)
    return text


def to_datetime(value: Any) -> datetime | None:
    """Parse *value* into an aware ``datetime`` or return ``None``.

    Numbers are epoch milliseconds; naive values are taken as UTC.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = dateutil_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = dateutil_parser.parse(text)
            except (ValueError, OverflowError):
                return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _date_bound(bound: Any) -> datetime | None:
    if callable(bound):
        bound = bound()
    if bound is None:
        return None
    return to_datetime(bound)


def _coerce_date(
    value: Any, rule: DateRule, path: str, is_query: bool
) -> datetime | str:
    parsed = to_datetime(value)
    if parsed is None:
        raise ValidationError(path, value, rule)
    low = _date_bound(rule.min)
    high = _date_bound(rule.max)
    if (low is not None and parsed < low) or (high is not None and parsed > high):
        raise ValidationError(path, value, rule)
    if rule.date_only:
        return parsed.astimezone(timezone.utc).date().isoformat()
    return parsed


def _tolerates_absence(slot: Any) -> bool:
    rules = slot if isinstance(slot, (list, tuple)) else [slot]
    for rule in rules:
        rule = to_rule(rule)
        if rule.optional or rule.has_default:
            return True
    return False


def _validate_element(item: Any, slot: Any, path: str, is_query: bool) -> Any:
    try:
        return validate(item, slot, path, is_query)
    except ValidationError:
        if not _tolerates_absence(slot):
            raise
        return validate(None, slot, path, is_query)


def _coerce_array(value: Any, rule: ArrayRule, path: str, is_query: bool) -> list:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(path, value, rule)

    if rule.items is not None:
        if len(value) != len(rule.items):
            raise ValidationError(path, value, rule)
        out = [
            validate(item, slot, f"{path}[{index}]", is_query)
            for index, (item, slot) in enumerate(zip(value, rule.items))
        ]
    elif rule.nested is not None:
        out = []
        for index, item in enumerate(value):
            element = _validate_element(item, rule.nested, f"{path}[{index}]", is_query)
            if element is not None:
                out.append(element)
    else:
        out = list(value)

    if (
        (rule.length is not None and len(out) != rule.length)
        or (rule.min is not None and len(out) < rule.min)
        or (rule.max is not None and len(out) > rule.max)
    ):
        raise ValidationError(path, value, rule)
    return out


def _coerce_object(value: Any, rule: ObjectRule, path: str, is_query: bool) -> dict:
    if not isinstance(value, Mapping):
        raise ValidationError(path, value, rule)

    out: dict[str, Any] = {}
    if rule.schema is not None:
        for key, slot in rule.schema.items():
            result = validate(value.get(key), slot, f"{path}.{key}", is_query)
            if result is not None:
                out[key] = result
    elif rule.nested is not None:
        for key, item in value.items():
            result = validate(item, rule.nested, f"{path}.{key}", is_query)
            if result is not None:
                out[key] = result
    return out


_COERCERS: dict[str, Callable[[Any, Any, str, bool], Any]] = {
    "boolean": _coerce_boolean,
    "number": _coerce_number,
    "bigint": _coerce_bigint,
    "string": _coerce_string,
    "date": _coerce_date,
    "array": _coerce_array,
    "object": _coerce_object,
}


__all__ = [
    "ESCAPE_REPLACEMENTS",
    "ValidationError",
    "is_equal",
    "to_datetime",
    "validate",
]
