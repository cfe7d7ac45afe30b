"""weblimo: a minimalist validating HTTP framework."""

__version__ = "0.1.0"

from .application import Application, RequestData
from .body import BodyOptions, Parsers, UploadedFile, parse_body, parse_cookie
from .config import Settings, load_settings
from .controller import controller, delete, endpoint, get, patch, post, put
from .dependency import (
    REQUEST,
    RESPONSE,
    ClassProvider,
    ConfigurationError,
    Container,
    FactoryProvider,
    Inject,
    ValueProvider,
)
from .http import Request, Response
from .middleware import (
    CORSMiddleware,
    RequestLoggerMiddleware,
    SecurityHeadersMiddleware,
    TrustedHostMiddleware,
)
from .responses import HTTPException, default_response_handler, json_response_handler
from .routing import EndpointDescriptor, RouteConfigurationError, RouteTable
from .rules import (
    MISSING,
    ArrayRule,
    BigintRule,
    BooleanRule,
    DateRule,
    NumberRule,
    ObjectRule,
    Rule,
    StringRule,
    to_rule,
)
from .testclient import Response as TestResponse
from .testclient import TestClient
from .validator import ValidationError, is_equal, validate

__all__ = [
    "__version__",
    "Application",
    "RequestData",
    "BodyOptions",
    "Parsers",
    "UploadedFile",
    "parse_body",
    "parse_cookie",
    "Settings",
    "load_settings",
    "controller",
    "endpoint",
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "REQUEST",
    "RESPONSE",
    "ClassProvider",
    "ConfigurationError",
    "Container",
    "FactoryProvider",
    "Inject",
    "ValueProvider",
    "Request",
    "Response",
    "CORSMiddleware",
    "RequestLoggerMiddleware",
    "SecurityHeadersMiddleware",
    "TrustedHostMiddleware",
    "HTTPException",
    "default_response_handler",
    "json_response_handler",
    "EndpointDescriptor",
    "RouteConfigurationError",
    "RouteTable",
    "MISSING",
    "ArrayRule",
    "BigintRule",
    "BooleanRule",
    "DateRule",
    "NumberRule",
    "ObjectRule",
    "Rule",
    "StringRule",
    "to_rule",
    "TestClient",
    "TestResponse",
    "ValidationError",
    "is_equal",
    "validate",
]
