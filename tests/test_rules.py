"""Test rule declarations and the mapping form."""

import pytest

from weblimo.rules import (
    MISSING,
    ArrayRule,
    DateRule,
    NumberRule,
    ObjectRule,
    StringRule,
    to_rule,
    to_schema,
    to_slot,
)


def test_to_rule_builds_tagged_rules() -> None:
    rule = to_rule({"type": "string", "min": 1, "escape": 2})
    assert isinstance(rule, StringRule)
    assert rule.min == 1
    assert rule.escape_level == 2
    assert rule.default is MISSING
    assert not rule.has_default


def test_to_rule_accepts_option_aliases() -> None:
    assert to_rule({"type": "date", "dateOnly": True}) == DateRule(date_only=True)
    assert to_rule({"type": "number", "roundingFn": "floor"}).rounding_mode == "floor"


def test_to_rule_converts_nested_rules() -> None:
    rule = to_rule(
        {
            "type": "object",
            "schema": {
                "tags": {"type": "array", "nested": {"type": "string"}},
                "pair": {"type": "array", "nested": [{"type": "number"}, {"type": "string"}]},
                "id": [{"type": "number"}, {"type": "string"}],
            },
        }
    )
    assert isinstance(rule, ObjectRule)
    assert rule.schema["tags"] == ArrayRule(nested=StringRule())
    assert rule.schema["pair"] == ArrayRule(items=[NumberRule(), StringRule()])
    assert rule.schema["id"] == [NumberRule(), StringRule()]


def test_to_rule_rejects_unknown_types_and_options() -> None:
    with pytest.raises(TypeError):
        to_rule({"type": "uuid"})
    with pytest.raises(TypeError):
        to_rule({"type": "string", "minimum": 1})
    with pytest.raises(TypeError):
        to_rule("string")


def test_rule_options_are_checked() -> None:
    with pytest.raises(TypeError):
        StringRule(escape_level=3)
    with pytest.raises(TypeError):
        NumberRule(rounding_mode="trunc")


def test_null_slot_is_rejected() -> None:
    with pytest.raises(TypeError):
        to_slot(None)
    with pytest.raises(TypeError):
        to_schema({"name": None})


def test_callable_default() -> None:
    rule = NumberRule(default=lambda value, r: 5)
    assert rule.has_default
    assert rule.resolve_default(None) == 5
    assert NumberRule(default=0).resolve_default(None) == 0
