"""Endpoint descriptors and the route table consulted per request."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence

from .body import BODY_TYPES
from .controller import (
    CONTROLLER_ATTR,
    ENDPOINT_ATTR,
    AuthHandler,
    ContextResolver,
    ControllerOptions,
    EndpointOptions,
    Middleware,
)
from .dependency import ConfigurationError
from .responses import ResponseHandler
from .rules import MISSING, RuleSlot, to_schema, to_slot
from .utils import parse_name

_LOGGER = logging.getLogger("weblimo.routing")

HTTP_METHODS = frozenset(
    {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"}
)

_ANCHORS = re.compile(r"^\^|\$$|\$(?=\|)|(?<=\|)\^")


class RouteConfigurationError(ConfigurationError):
    """Endpoints cannot be assembled into a route table."""


@dataclass(frozen=True)
class EndpointDescriptor:
    """Fully resolved description of one route."""

    name: str
    location: re.Pattern[str]
    location_template: str
    methods: tuple[str, ...]
    controller: type
    handler: Callable[..., Any]
    query: Mapping[str, RuleSlot] | None = None
    body: Mapping[str, RuleSlot] | None = None
    body_rule: RuleSlot | None = None
    body_type: str = "json"
    body_parser: Callable[[Any, Any], Any] | None = None
    auth_handler: AuthHandler | None = None
    middleware: tuple[Middleware, ...] = ()
    response_handler: ResponseHandler | None = None
    context_resolver: ContextResolver | None = None


def _methods(value: str | Sequence[str]) -> tuple[str, ...]:
    items = [value] if isinstance(value, str) else list(value)
    methods = tuple(dict.fromkeys(m.upper() for m in items if m))
    unknown = [m for m in methods if m not in HTTP_METHODS]
    if unknown or not methods:
        raise RouteConfigurationError(f"invalid HTTP method(s): {value!r}")
    return methods


def _path_part(part: Any) -> str:
    if isinstance(part, re.Pattern):
        return f"({_ANCHORS.sub('', part.pattern)})"
    return str(part).strip("/")


def location_template(controller_path: str, action: str) -> str:
    """Join the controller and action paths into ``/controller/action``."""

    return "/" + "/".join(p for p in (controller_path.strip("/"), action) if p)


def make_endpoint(
    controller_cls: type,
    name: str,
    handler: Callable[..., Any],
    options: EndpointOptions,
    controller_options: ControllerOptions = ControllerOptions(),
) -> EndpointDescriptor:
    """Build the descriptor of *handler* declared on *controller_cls*."""

    if controller_options.path is not None:
        controller_path = controller_options.path
    else:
        controller_path = parse_name(controller_cls.__name__, "Controller")
    if controller_options.use_method_names:
        action = parse_name(name)
    else:
        parts = options.path if isinstance(options.path, (list, tuple)) else [options.path]
        action = "/".join(_path_part(p) for p in parts if p)
    template = location_template(controller_path, action)
    try:
        location = re.compile(template, re.IGNORECASE)
    except re.error as exc:
        raise RouteConfigurationError(f"invalid location {template!r}: {exc}") from exc

    body_type = options.body_type or "json"
    if body_type not in BODY_TYPES:
        raise RouteConfigurationError(f"unknown body type {body_type!r} for {name}")
    if options.body is not None and options.body_rule is not None:
        raise RouteConfigurationError(f"{name} declares both body and body_rule")

    auth_handler = options.auth_handler
    if auth_handler is MISSING:
        auth_handler = controller_options.auth_handler

    return EndpointDescriptor(
        name=f"{controller_cls.__qualname__}.{name}",
        location=location,
        location_template=template,
        methods=_methods(options.method or controller_options.method),
        controller=controller_cls,
        handler=handler,
        query=to_schema(options.query) if options.query is not None else None,
        body=to_schema(options.body) if options.body is not None else None,
        body_rule=to_slot(options.body_rule) if options.body_rule is not None else None,
        body_type=body_type,
        body_parser=options.body_parser,
        auth_handler=auth_handler,
        middleware=tuple(controller_options.middleware) + tuple(options.middleware),
        response_handler=options.response_handler or controller_options.response_handler,
        context_resolver=controller_options.context_resolver,
    )


def build_endpoints(controller_cls: type) -> list[EndpointDescriptor]:
    """Return the descriptors of every endpoint of a controller class."""

    controller_options = vars(controller_cls).get(CONTROLLER_ATTR)
    if controller_options is None:
        raise RouteConfigurationError(
            f"{controller_cls.__qualname__} is not decorated with @controller"
        )
    endpoints = []
    for name, member in vars(controller_cls).items():
        options = getattr(member, ENDPOINT_ATTR, None)
        if options is None or not callable(member):
            continue
        endpoints.append(
            make_endpoint(controller_cls, name, member, options, controller_options)
        )
    return endpoints


class RouteTable:
    """Ordered, read-only collection of endpoint descriptors.

    Two descriptors sharing a method and a location template raise
    :class:`RouteConfigurationError` at construction.
    """

    def __init__(self, descriptors: Iterable[EndpointDescriptor]) -> None:
        self._descriptors = tuple(descriptors)
        seen: dict[tuple[str, str], EndpointDescriptor] = {}
        for descriptor in self._descriptors:
            for method in descriptor.methods:
                key = (method, descriptor.location_template.lower())
                if key in seen:
                    raise RouteConfigurationError(
                        f"some endpoints have the same location: {method} "
                        f"{descriptor.location_template} "
                        f"({seen[key].name}, {descriptor.name})"
                    )
                seen[key] = descriptor
        for descriptor in self._descriptors:
            _LOGGER.info(
                "add location %s %s", ",".join(descriptor.methods), descriptor.location_template
            )

    @classmethod
    def from_controllers(cls, controllers: Iterable[type]) -> "RouteTable":
        descriptors: list[EndpointDescriptor] = []
        for controller_cls in controllers:
            descriptors.extend(build_endpoints(controller_cls))
        return cls(descriptors)

    def __iter__(self) -> Iterator[EndpointDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def descriptors(self) -> tuple[EndpointDescriptor, ...]:
        return self._descriptors

    def match(
        self, method: str, path: str
    ) -> tuple[EndpointDescriptor, list[str | None]] | None:
        """Return the first descriptor matching *method* and *path*.

        A ``GET`` route also answers ``HEAD``. The pattern's groups are
        returned as positional parameters.
        """

        method = method.upper()
        for descriptor in self._descriptors:
            found = descriptor.location.fullmatch(path)
            if found is None:
                continue
            if method in descriptor.methods or (
                method == "HEAD" and "GET" in descriptor.methods
            ):
                return descriptor, list(found.groups())
        return None


__all__ = [
    "EndpointDescriptor",
    "HTTP_METHODS",
    "RouteConfigurationError",
    "RouteTable",
    "build_endpoints",
    "location_template",
    "make_endpoint",
]
