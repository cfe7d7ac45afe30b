"""Controller and endpoint declarations.

The decorators only attach frozen option records to the decorated class or
function; nothing is registered globally. :mod:`weblimo.routing` turns the
records into endpoint descriptors when an application is built.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from .http import Request, Response
from .responses import ResponseHandler
from .rules import MISSING

CONTROLLER_ATTR = "__weblimo_controller__"
ENDPOINT_ATTR = "__weblimo_endpoint__"

Middleware = Callable[[Request, Response], Union[Any, Awaitable[Any]]]
AuthHandler = Callable[[Request, Response], Union[Any, Awaitable[Any]]]
ContextResolver = Callable[[Request, Response], Mapping[str, Any]]
PathPart = Union[str, "re.Pattern[str]"]


def _as_tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(v for v in value if v)
    return (value,)


@dataclass(frozen=True)
class ControllerOptions:
    path: str | None = None
    method: str | Sequence[str] = "GET"
    use_method_names: bool = False
    auth_handler: AuthHandler | None = None
    middleware: Sequence[Middleware] = ()
    response_handler: ResponseHandler | None = None
    context_resolver: ContextResolver | None = None


@dataclass(frozen=True)
class EndpointOptions:
    """Options of one endpoint.

    ``auth_handler=None`` disables a controller-level auth handler; leaving
    it unset inherits it.
    """

    path: PathPart | Sequence[PathPart] | None = None
    method: str | Sequence[str] | None = None
    query: Mapping[str, Any] | None = None
    body: Mapping[str, Any] | None = None
    body_rule: Any = None
    body_type: str | None = None
    body_parser: Callable[[Any, Any], Any] | None = None
    auth_handler: Any = MISSING
    middleware: Sequence[Middleware] = ()
    response_handler: ResponseHandler | None = None


def controller(
    path: str | None = None,
    *,
    method: str | Sequence[str] = "GET",
    use_method_names: bool = False,
    auth_handler: AuthHandler | None = None,
    middleware: Middleware | Sequence[Middleware] | None = None,
    response_handler: ResponseHandler | None = None,
    context_resolver: ContextResolver | None = None,
) -> Callable[[type], type]:
    """Mark a class as a controller.

    *path* defaults to the snake-cased class name without its
    ``Controller`` suffix; *method* is the default for its endpoints.
    """

    options = ControllerOptions(
        path=path,
        method=method,
        use_method_names=use_method_names,
        auth_handler=auth_handler,
        middleware=_as_tuple(middleware),
        response_handler=response_handler,
        context_resolver=context_resolver,
    )

    def decorator(cls: type) -> type:
        setattr(cls, CONTROLLER_ATTR, options)
        return cls

    return decorator


def endpoint(
    path: PathPart | Sequence[PathPart] | None = None,
    *,
    method: str | Sequence[str] | None = None,
    query: Mapping[str, Any] | None = None,
    body: Mapping[str, Any] | None = None,
    body_rule: Any = None,
    body_type: str | None = None,
    body_parser: Callable[[Any, Any], Any] | None = None,
    auth_handler: Any = MISSING,
    middleware: Middleware | Sequence[Middleware] | None = None,
    response_handler: ResponseHandler | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a controller method as an endpoint."""

    options = EndpointOptions(
        path=path,
        method=method,
        query=query,
        body=body,
        body_rule=body_rule,
        body_type=body_type,
        body_parser=body_parser,
        auth_handler=auth_handler,
        middleware=_as_tuple(middleware),
        response_handler=response_handler,
    )

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, ENDPOINT_ATTR, options)
        return func

    return decorator


def get(path: PathPart | Sequence[PathPart] | None = None, **options: Any):
    return endpoint(path, method="GET", **options)


def post(path: PathPart | Sequence[PathPart] | None = None, **options: Any):
    return endpoint(path, method="POST", **options)


def put(path: PathPart | Sequence[PathPart] | None = None, **options: Any):
    return endpoint(path, method="PUT", **options)


def patch(path: PathPart | Sequence[PathPart] | None = None, **options: Any):
    return endpoint(path, method="PATCH", **options)


def delete(path: PathPart | Sequence[PathPart] | None = None, **options: Any):
    return endpoint(path, method="DELETE", **options)


def is_controller(obj: Any) -> bool:
    """Return ``True`` for classes decorated with :func:`controller`."""

    return isinstance(obj, type) and CONTROLLER_ATTR in vars(obj)


__all__ = [
    "AuthHandler",
    "CONTROLLER_ATTR",
    "ContextResolver",
    "ControllerOptions",
    "ENDPOINT_ATTR",
    "EndpointOptions",
    "Middleware",
    "controller",
    "delete",
    "endpoint",
    "get",
    "is_controller",
    "patch",
    "post",
    "put",
]
