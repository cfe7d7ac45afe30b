import pytest

from weblimo.utils import parse_name, parse_size, snake_case


def test_snake_case() -> None:
    assert snake_case("UserProfile") == "user_profile"
    assert snake_case("getUserById") == "get_user_by_id"
    assert snake_case("already_snake") == "already_snake"
    assert snake_case("") == ""


def test_parse_name_strips_postfix() -> None:
    assert parse_name("UserController", "Controller") == "user"
    assert parse_name("OrderItemsController", "Controller") == "order_items"
    assert parse_name("Health", "Controller") == "health"


def test_parse_size() -> None:
    assert parse_size(None) is None
    assert parse_size(10) == 10
    assert parse_size("100") == 100
    assert parse_size("1kb") == 1024
    assert parse_size("1.5MB") == 1572864
    with pytest.raises(ValueError):
        parse_size("lots")
