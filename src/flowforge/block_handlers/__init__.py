"""
Block Handlers - Type-specific execution logic for workflow blocks.

This package provides:
- BlockHandler: Abstract base class for handlers
- HandlerRegistry: Ordered dispatch with a Default fallback
- The builtin handlers (Start, End, Calculation, If, Switch, Loop, Wait,
  TextTransform, TextReplace, Parser, HttpRequest)
- HttpClient: Timeout-bounded HTTP for the HttpRequest handler
"""

from .base import BlockHandler, HandlerConfig, HandlerConfigError, load_config
from .flow import DefaultHandler, EndHandler, LoopHandler, StartHandler, WaitHandler
from .http import HttpApiError, HttpClient, HttpResponse, HttpTimeoutError
from .http_request import HttpRequestHandler
from .logic import CalculationHandler, ConditionHandler, SwitchHandler
from .parser import ParserHandler
from .text import TextReplaceHandler, TextTransformHandler
from .registry import HANDLER_ENTRY_POINT, HandlerRegistry, builtin_handlers, create_default_registry

__all__ = [
    # Base
    "BlockHandler",
    "HandlerConfig",
    "HandlerConfigError",
    "load_config",
    # Handlers
    "CalculationHandler",
    "ConditionHandler",
    "DefaultHandler",
    "EndHandler",
    "HttpRequestHandler",
    "LoopHandler",
    "ParserHandler",
    "StartHandler",
    "SwitchHandler",
    "TextReplaceHandler",
    "TextTransformHandler",
    "WaitHandler",
    # HTTP
    "HttpApiError",
    "HttpClient",
    "HttpResponse",
    "HttpTimeoutError",
    # Registry
    "HANDLER_ENTRY_POINT",
    "HandlerRegistry",
    "builtin_handlers",
    "create_default_registry",
]
