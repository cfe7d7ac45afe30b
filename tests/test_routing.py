"""Test endpoint descriptors and route table construction."""

import re

import pytest

from weblimo.controller import controller, endpoint, get, post
from weblimo.routing import RouteConfigurationError, RouteTable, build_endpoints
from weblimo.rules import BooleanRule, StringRule


def audit(request, response):
    return False


@controller(middleware=audit)
class UserProfileController:
    @get(query={"active": {"type": "boolean"}})
    def index(self, data):
        return []

    @get(re.compile(r"^\d+$"))
    def show(self, data):
        return {}

    @post(body={"name": StringRule(min=1)})
    def create(self, data):
        return {}

    @endpoint(["items", re.compile(r"[a-z]+")], method=["PUT", "patch"], body_type="text")
    def update(self, data):
        return {}

    def helper(self):
        return None


@controller("api/v1/", use_method_names=True, method="POST")
class RpcController:
    @endpoint()
    def getUserById(self, data):
        return {}


def test_build_endpoints_uses_declaration_order() -> None:
    endpoints = build_endpoints(UserProfileController)
    assert [e.name.rsplit(".", 1)[1] for e in endpoints] == ["index", "show", "create", "update"]
    assert [e.location_template for e in endpoints] == [
        "/user_profile",
        r"/user_profile/(\d+)",
        "/user_profile",
        "/user_profile/items/([a-z]+)",
    ]


def test_endpoint_options_are_resolved() -> None:
    index, show, create, update = build_endpoints(UserProfileController)
    assert index.methods == ("GET",)
    assert index.query == {"active": BooleanRule()}
    assert index.middleware == (audit,)
    assert create.body == {"name": StringRule(min=1)}
    assert create.body_type == "json"
    assert update.methods == ("PUT", "PATCH")
    assert update.body_type == "text"


def test_use_method_names_and_controller_method() -> None:
    (rpc,) = build_endpoints(RpcController)
    assert rpc.location_template == "/api/v1/get_user_by_id"
    assert rpc.methods == ("POST",)


def test_match_returns_params_and_falls_back_from_head() -> None:
    table = RouteTable.from_controllers([UserProfileController])
    descriptor, params = table.match("GET", "/user_profile/42")
    assert descriptor.name.endswith(".show")
    assert params == ["42"]
    descriptor, params = table.match("HEAD", "/user_profile")
    assert descriptor.name.endswith(".index")
    assert params == []
    descriptor, _ = table.match("POST", "/USER_PROFILE")
    assert descriptor.name.endswith(".create")


def test_match_misses() -> None:
    table = RouteTable.from_controllers([UserProfileController])
    assert table.match("DELETE", "/user_profile") is None
    assert table.match("GET", "/user_profile/abc") is None
    assert table.match("GET", "/user_profile/42/extra") is None


def test_duplicate_locations_fail_at_construction() -> None:
    @controller("users")
    class First:
        @get()
        def index(self, data):
            return []

    @controller("users")
    class Second:
        @get()
        def index(self, data):
            return []

    with pytest.raises(RouteConfigurationError):
        RouteTable.from_controllers([First, Second])


def test_undecorated_controller_is_rejected() -> None:
    class Plain:
        pass

    with pytest.raises(RouteConfigurationError):
        build_endpoints(Plain)


def test_invalid_options_are_rejected() -> None:
    @controller("bad")
    class BadMethod:
        @endpoint(method="FETCH")
        def index(self, data):
            return None

    @controller("bad")
    class BadBodyType:
        @post(body_type="xml")
        def index(self, data):
            return None

    @controller("bad")
    class NullRule:
        @get(query={"q": None})
        def index(self, data):
            return None

    with pytest.raises(RouteConfigurationError):
        build_endpoints(BadMethod)
    with pytest.raises(RouteConfigurationError):
        build_endpoints(BadBodyType)
    with pytest.raises(TypeError):
        build_endpoints(NullRule)
