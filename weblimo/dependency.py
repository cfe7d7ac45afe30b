"""Constructor dependency resolution for controllers and providers."""

from __future__ import annotations

import functools
import inspect
import typing
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence, Union

REQUEST = "REQUEST"
RESPONSE = "RESPONSE"


class ConfigurationError(Exception):
    """The application is wired incorrectly and cannot serve requests."""


class Inject:
    """Default-value marker naming the token a parameter is resolved from.

    ``def __init__(self, request=Inject(REQUEST))`` receives the raw request;
    ``optional=True`` substitutes *default* when no provider exists.
    """

    def __init__(
        self, token: Any = None, *, optional: bool = False, default: Any = None
    ) -> None:
        self.token = token
        self.optional = optional
        self.default = default

    def __repr__(self) -> str:
        return f"Inject({self.token!r})"


@dataclass(frozen=True)
class Dependency:
    token: Any
    optional: bool = False
    default: Any = None


@dataclass(frozen=True)
class ValueProvider:
    provide: Any
    use_value: Any


@dataclass(frozen=True)
class ClassProvider:
    """Build *use_class*; ``deps`` defaults to its ``__init__`` signature."""

    provide: Any
    use_class: type
    deps: Sequence[Any] | None = None


@dataclass(frozen=True)
class FactoryProvider:
    provide: Any
    use_factory: Callable[..., Any]
    deps: Sequence[Any] = ()


Provider = Union[type, ValueProvider, ClassProvider, FactoryProvider]


def _as_dependency(dep: Any) -> Dependency:
    if isinstance(dep, Dependency):
        return dep
    if isinstance(dep, Inject):
        return Dependency(dep.token, dep.optional, dep.default)
    return Dependency(dep)


@functools.lru_cache(maxsize=None)
def dependencies_of(target: Callable[..., Any]) -> tuple[Dependency, ...]:
    """Return the constructor dependencies of *target* in positional order.

    A parameter is resolved from its :class:`Inject` marker, else from its
    annotation, else from its name. A plain default makes it optional.
    """

    try:
        signature = inspect.signature(target)
    except (TypeError, ValueError):
        return ()
    init = getattr(target, "__init__", target)
    try:
        hints = typing.get_type_hints(init)
    except (NameError, TypeError):
        hints = {}

    deps: list[Dependency] = []
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, param.annotation)
        if annotation is param.empty:
            annotation = None
        default = param.default
        if isinstance(default, Inject):
            token = default.token if default.token is not None else annotation
            deps.append(Dependency(token or param.name, default.optional, default.default))
        elif default is not param.empty:
            deps.append(Dependency(annotation or param.name, True, default))
        else:
            deps.append(Dependency(annotation or param.name))
    return tuple(deps)


def _normalize(provider: Provider) -> ValueProvider | ClassProvider | FactoryProvider:
    if isinstance(provider, (ValueProvider, ClassProvider, FactoryProvider)):
        return provider
    if isinstance(provider, type):
        return ClassProvider(provider, provider)
    raise ConfigurationError(f"invalid provider: {provider!r}")


def _name(target: Any) -> str:
    return getattr(target, "__qualname__", None) or repr(target)


class Container:
    """Token to provider registry.

    Providers are looked up by the token they ``provide``; later entries
    override earlier ones. :meth:`with_values` derives a per-request
    container holding extra values, such as the raw request and response.
    """

    def __init__(self, providers: Iterable[Provider] = ()) -> None:
        self._providers: dict[Any, ValueProvider | ClassProvider | FactoryProvider] = {}
        for provider in providers:
            normalized = _normalize(provider)
            self._providers[normalized.provide] = normalized

    def __contains__(self, token: Any) -> bool:
        return token in self._providers

    def with_values(self, values: Mapping[Any, Any]) -> "Container":
        child = Container()
        child._providers = dict(self._providers)
        for token, value in values.items():
            child._providers[token] = ValueProvider(token, value)
        return child

    def get(self, token: Any) -> Any:
        """Return the value provided for *token*."""

        return self._provide(token, ())

    def resolve(self, target: type) -> Any:
        """Construct *target*, resolving its constructor dependencies."""

        args = self._arguments(target, dependencies_of(target), (target,))
        return target(*args)

    def check(self, target: type, available: Iterable[Any] = ()) -> None:
        """Raise :class:`ConfigurationError` if *target* cannot be built.

        Tokens in *available* are assumed to be supplied at request time.
        """

        self._check(target, dependencies_of(target), set(available), (target,))

    def _check(
        self, owner: Any, deps: Sequence[Any], available: set, stack: tuple
    ) -> None:
        for index, dep in enumerate(map(_as_dependency, deps)):
            if dep.token in available:
                continue
            provider = self._providers.get(dep.token)
            if provider is None:
                if dep.optional:
                    continue
                raise ConfigurationError(
                    f"provider of param #{index} ({dep.token!r}) not found for {_name(owner)!r}"
                )
            if isinstance(provider, ValueProvider):
                continue
            if dep.token in stack:
                raise ConfigurationError(
                    f"circular dependency: {' -> '.join(map(_name, stack + (dep.token,)))}"
                )
            self._check(dep.token, self._deps_of(provider), available, stack + (dep.token,))

    @staticmethod
    def _deps_of(provider: ClassProvider | FactoryProvider) -> Sequence[Any]:
        if isinstance(provider, FactoryProvider):
            return provider.deps
        if provider.deps is not None:
            return provider.deps
        return dependencies_of(provider.use_class)

    def _arguments(self, owner: Any, deps: Sequence[Any], stack: tuple) -> list[Any]:
        args = []
        for index, dep in enumerate(map(_as_dependency, deps)):
            if dep.token not in self._providers:
                if dep.optional:
                    args.append(dep.default)
                    continue
                raise ConfigurationError(
                    f"provider of param #{index} ({dep.token!r}) not found for {_name(owner)!r}"
                )
            args.append(self._provide(dep.token, stack))
        return args

    def _provide(self, token: Any, stack: tuple) -> Any:
        provider = self._providers.get(token)
        if provider is None:
            raise ConfigurationError(f"no provider for {token!r}")
        if isinstance(provider, ValueProvider):
            return provider.use_value
        if token in stack:
            raise ConfigurationError(
                f"circular dependency: {' -> '.join(map(_name, stack + (token,)))}"
            )
        args = self._arguments(token, self._deps_of(provider), stack + (token,))
        if isinstance(provider, FactoryProvider):
            return provider.use_factory(*args)
        return provider.use_class(*args)


__all__ = [
    "ClassProvider",
    "ConfigurationError",
    "Container",
    "Dependency",
    "FactoryProvider",
    "Inject",
    "Provider",
    "REQUEST",
    "RESPONSE",
    "ValueProvider",
    "dependencies_of",
]
