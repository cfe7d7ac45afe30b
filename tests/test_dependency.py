"""Test constructor dependency resolution."""

import pytest

from weblimo.dependency import (
    REQUEST,
    ClassProvider,
    ConfigurationError,
    Container,
    FactoryProvider,
    Inject,
    ValueProvider,
    dependencies_of,
)


class Database:
    def __init__(self, url=Inject("DB_URL")) -> None:
        self.url = url


class Repository:
    def __init__(self, db: Database) -> None:
        self.db = db


class Service:
    def __init__(self, repo: Repository, retries: int = 3) -> None:
        self.repo = repo
        self.retries = retries


class Cyclic:
    def __init__(self, other: "Other") -> None:
        self.other = other


class Other:
    def __init__(self, cyclic: Cyclic) -> None:
        self.cyclic = cyclic


def test_dependencies_from_signature() -> None:
    deps = dependencies_of(Service)
    assert [d.token for d in deps] == [Repository, int]
    assert deps[1].optional and deps[1].default == 3


def test_resolve_class_graph() -> None:
    container = Container([Database, Repository, ValueProvider("DB_URL", "sqlite://")])
    service = container.resolve(Service)
    assert service.repo.db.url == "sqlite://"
    assert service.retries == 3


def test_value_overrides_default() -> None:
    container = Container(
        [Database, Repository, ValueProvider("DB_URL", "x"), ValueProvider(int, 5)]
    )
    assert container.resolve(Service).retries == 5


def test_factory_provider() -> None:
    container = Container(
        [
            ValueProvider("DB_URL", "postgres://"),
            FactoryProvider("CONNECTION", lambda url: f"conn:{url}", deps=["DB_URL"]),
        ]
    )
    assert container.get("CONNECTION") == "conn:postgres://"


def test_class_provider_with_explicit_deps() -> None:
    container = Container(
        [
            ValueProvider("PRIMARY", "a"),
            ClassProvider(Database, Database, deps=["PRIMARY"]),
        ]
    )
    assert container.get(Database).url == "a"


def test_optional_inject_substitutes_default() -> None:
    class Consumer:
        def __init__(self, flag=Inject("FLAG", optional=True, default="off")) -> None:
            self.flag = flag

    assert Container().resolve(Consumer).flag == "off"
    assert Container([ValueProvider("FLAG", "on")]).resolve(Consumer).flag == "on"


def test_missing_provider_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        Container([Repository]).resolve(Service)
    with pytest.raises(ConfigurationError):
        Container([Repository]).check(Service)


def test_check_accepts_request_time_tokens() -> None:
    class Handler:
        def __init__(self, request=Inject(REQUEST)) -> None:
            self.request = request

    Container().check(Handler, (REQUEST,))
    with pytest.raises(ConfigurationError):
        Container().check(Handler)
    assert Container().with_values({REQUEST: "req"}).resolve(Handler).request == "req"


def test_circular_dependency_is_detected() -> None:
    with pytest.raises(ConfigurationError):
        Container([Cyclic, Other]).resolve(Cyclic)
    with pytest.raises(ConfigurationError):
        Container([Cyclic, Other]).check(Cyclic)
