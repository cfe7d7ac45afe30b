"""Application object: route table, dispatch pipeline and ASGI entry point."""

from __future__ import annotations

import functools
import importlib
import inspect
import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Sequence

from .body import BodyOptions, Cookies, Parsers, parse_body, parse_cookie
from .config import Settings, load_settings
from .controller import Middleware, is_controller
from .dependency import REQUEST, RESPONSE, ConfigurationError, Container, Provider
from .http import Request, Response
from .responses import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTPException,
    ResponseHandler,
    default_response_handler,
    error_status,
)
from .routing import EndpointDescriptor, RouteTable
from .rules import MISSING, ObjectRule
from .validator import ValidationError, validate

Scope = Dict[str, Any]
Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]
EventHandler = Callable[[], Any]

HOOKS = ("endpoints_load",)
LENIENT_BODY_TYPES = ("multipart", "urlencoded")


@dataclass(frozen=True)
class RequestData:
    """Request context handed to endpoint handlers."""

    method: str
    auth: Any
    body: Any
    query: Dict[str, Any]
    params: List[str | None]
    headers: Mapping[str, str]
    cookies: Cookies


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@functools.lru_cache(maxsize=None)
def _accepts_context(handler: Callable[..., Any]) -> bool:
    """Return ``True`` if the bound *handler* takes a second positional arg."""

    try:
        params = list(inspect.signature(handler).parameters.values())
    except (TypeError, ValueError):
        return False
    positional = [
        p for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    if any(p.kind is p.VAR_POSITIONAL for p in params):
        return True
    # the first parameter is ``self``
    return len(positional) >= 3


def _collect_controllers(items: Iterable[Any]) -> list[type]:
    controllers: list[type] = []
    for item in items:
        if isinstance(item, str):
            item = importlib.import_module(item)
        if isinstance(item, ModuleType):
            controllers.extend(obj for obj in vars(item).values() if is_controller(obj))
        elif isinstance(item, (list, tuple)):
            controllers.extend(_collect_controllers(item))
        else:
            controllers.append(item)
    return controllers


class Application:
    """Dispatch requests to controller endpoints.

    The route table is built and the dependency graph of every controller is
    checked at construction; wiring mistakes raise
    :class:`~weblimo.dependency.ConfigurationError` before any request is
    served.
    """

    def __init__(
        self,
        controllers: Iterable[type],
        *,
        middlewares: Sequence[Middleware] = (),
        providers: Iterable[Provider] = (),
        response_handler: ResponseHandler | None = None,
        body_options: BodyOptions | None = None,
        parsers: Parsers | None = None,
        hooks: Mapping[str, Callable[..., Any]] | None = None,
        settings: Settings | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings if settings is not None else load_settings()
        self.logger = logger or logging.getLogger("weblimo")
        self.middlewares = tuple(middlewares)
        self.response_handler = response_handler or default_response_handler
        self.body_options = body_options or self.settings.body_options()
        self.parsers = parsers or Parsers()
        self.hooks = dict(hooks or {})
        unknown = set(self.hooks) - set(HOOKS)
        if unknown:
            raise ConfigurationError(f"unknown hook(s): {', '.join(sorted(unknown))}")
        self.container = Container(providers)
        self._startup: list[EventHandler] = []
        self._shutdown: list[EventHandler] = []

        self._route_table = RouteTable.from_controllers(controllers)
        for controller_cls in dict.fromkeys(d.controller for d in self._route_table):
            self.container.check(controller_cls, (REQUEST, RESPONSE))
        self.logger.info("loaded %d endpoint(s)", len(self._route_table))

        endpoints_load = self.hooks.get("endpoints_load")
        if endpoints_load is not None:
            endpoints_load(list(self._route_table))

    @classmethod
    def create(cls, controllers: Iterable[Any], **options: Any) -> "Application":
        """Build an application from classes, modules or dotted module paths.

        Every class decorated with ``@controller`` in a given module is
        collected.
        """

        return cls(_collect_controllers(controllers), **options)

    @property
    def route_table(self) -> RouteTable:
        return self._route_table

    @property
    def endpoints(self) -> tuple[EndpointDescriptor, ...]:
        return self._route_table.descriptors

    def on_event(self, event: str) -> Callable[[EventHandler], EventHandler]:
        """Register a startup or shutdown handler."""
        if event not in ("startup", "shutdown"):
            raise ValueError(f"unknown event: {event!r}")
        collection = self._startup if event == "startup" else self._shutdown

        def decorator(func: EventHandler) -> EventHandler:
            collection.append(func)
            return func

        return decorator

    async def startup(self) -> None:
        for hook in self._startup:
            await _resolve(hook())

    async def shutdown(self) -> None:
        for hook in self._shutdown:
            await _resolve(hook())

    async def handle(self, request: Request, response: Response) -> None:
        """Run the dispatch pipeline for one request.

        Every error raised on the way is handed to the response handler
        resolved so far as ``(response, error, None)``.
        """

        response_handler = self.response_handler
        try:
            if await self._run_middlewares(self.middlewares, request, response):
                return
            matched = self._route_table.match(request.method, request.path)
            if matched is None:
                raise HTTPException(HTTP_404_NOT_FOUND, "Not found")
            descriptor, params = matched
            if await self._run_middlewares(descriptor.middleware, request, response):
                return
            if descriptor.response_handler is not None:
                response_handler = descriptor.response_handler
            result = await self._dispatch(descriptor, params, request, response)
            await _resolve(response_handler(response, None, result))
        except Exception as exc:
            await self._handle_error(response_handler, request, response, exc)

    async def _run_middlewares(
        self, middlewares: Sequence[Middleware], request: Request, response: Response
    ) -> bool:
        for middleware in middlewares:
            if await _resolve(middleware(request, response)):
                return True
        return False

    async def _dispatch(
        self,
        descriptor: EndpointDescriptor,
        params: List[str | None],
        request: Request,
        response: Response,
    ) -> Any:
        container = self.container.with_values({REQUEST: request, RESPONSE: response})
        controller = container.resolve(descriptor.controller)
        if descriptor.context_resolver is not None:
            context = await _resolve(descriptor.context_resolver(request, response))
            for key, value in (context or {}).items():
                setattr(controller, key, value)

        auth = None
        if descriptor.auth_handler is not None:
            auth = await _resolve(descriptor.auth_handler(request, response))

        try:
            query = validate(
                self.parsers.qs(request.query_string),
                ObjectRule(schema=descriptor.query or {}),
                "query",
                True,
            )
        except ValidationError as exc:
            raise HTTPException(HTTP_400_BAD_REQUEST, cause=exc) from exc

        body = await parse_body(
            request, descriptor.body_type, self.parsers, self.body_options
        )
        if body is MISSING:
            body = None
        elif descriptor.body_type != "stream":
            body = self._validate_body(descriptor, body)

        data = RequestData(
            method=request.method,
            auth=auth,
            body=body,
            query=query,
            params=params,
            headers=request.headers,
            cookies=parse_cookie(request.headers.get("cookie")),
        )
        self.logger.debug("dispatch %s %s to %s", request.method, request.path, descriptor.name)
        handler = descriptor.handler.__get__(controller, descriptor.controller)
        if _accepts_context(descriptor.handler):
            return await _resolve(handler(data, controller))
        return await _resolve(handler(data))

    def _validate_body(self, descriptor: EndpointDescriptor, body: Any) -> Any:
        lenient = descriptor.body_type in LENIENT_BODY_TYPES
        try:
            if descriptor.body is not None:
                rule = ObjectRule(schema=descriptor.body, parse=descriptor.body_parser)
                return validate(body, rule, "body", lenient)
            if descriptor.body_rule is not None:
                return validate(body, descriptor.body_rule, "body", lenient)
        except ValidationError as exc:
            raise HTTPException(HTTP_400_BAD_REQUEST, cause=exc) from exc
        if descriptor.body_parser is not None:
            return descriptor.body_parser(body, None)
        return body

    async def _handle_error(
        self,
        response_handler: ResponseHandler,
        request: Request,
        response: Response,
        error: Exception,
    ) -> None:
        status = error_status(error)
        if status >= HTTP_500_INTERNAL_SERVER_ERROR:
            self.logger.exception(
                "error while handling %s %s", request.method, request.path
            )
        else:
            self.logger.debug(
                "%s %s failed with %d: %s", request.method, request.path, status, error
            )
        try:
            await _resolve(response_handler(response, error, None))
        except Exception:
            self.logger.exception("response handler failed")
            response.reset()
            response.status_code = HTTP_500_INTERNAL_SERVER_ERROR
            response.end("Internal Server Error")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Dispatch ASGI *scope* to handlers."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
        elif scope["type"] == "http":
            await self._handle_http(scope, receive, send)
        else:
            raise NotImplementedError(f"Unsupported scope type {scope['type']}")

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    self.logger.exception("startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _handle_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request.from_scope(scope, receive)
        response = Response()
        await self.handle(request, response)
        status, body, headers = response.serialize()
        if request.method == "HEAD":
            body = b""
        await send({"type": "http.response.start", "status": status, "headers": headers})
        await send({"type": "http.response.body", "body": body})


__all__ = ["Application", "HOOKS", "RequestData"]
