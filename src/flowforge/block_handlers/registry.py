"""
Handler Registry - Ordered dispatch from blocks to handlers.

Handlers are consulted in order and the first whose can_handle() claims
the block wins. The Default handler matches everything, so it is kept
last; handlers registered later (including plugins) are placed in front
of it.

Supports two discovery methods besides manual registration:
1. Entry points (plugin handler packs)
2. Module scanning
"""

from __future__ import annotations

import importlib
import inspect
import logging
from importlib.metadata import entry_points
from typing import Any, Iterable, Iterator, List, Optional

from flowforge.workflow_runtime.graph import CompiledBlock

from .base import BlockHandler
from .flow import DefaultHandler, EndHandler, LoopHandler, StartHandler, WaitHandler
from .http import HttpClient
from .http_request import HttpRequestHandler
from .logic import CalculationHandler, ConditionHandler, SwitchHandler
from .parser import ParserHandler
from .text import TextReplaceHandler, TextTransformHandler


logger = logging.getLogger(__name__)

# Entry point group for handler plugins
HANDLER_ENTRY_POINT = "flowforge.block_handlers"


class HandlerRegistry:
    """
    Ordered set of block handlers.

    Read-only while runs are executing, so one registry may be shared
    by concurrent executions.

    Usage:
        registry = create_default_registry()
        registry.register(MyHandler())
        handler = registry.resolve(block)
    """

    def __init__(self, handlers: Iterable[BlockHandler] = (), fallback: Optional[BlockHandler] = None):
        """
        Initialize registry.

        Args:
            handlers: Handlers in dispatch order
            fallback: Handler consulted after all others (usually DefaultHandler)
        """
        self._handlers: List[BlockHandler] = list(handlers)
        self._fallback = fallback
        self._discovered = False

    def register(self, handler: BlockHandler | type[BlockHandler], first: bool = False) -> BlockHandler:
        """
        Register a handler (instance or class).

        Args:
            handler: Handler to add
            first: Put it in front of every other handler, overriding
                builtin handlers for the same block type

        Returns:
            The registered handler instance
        """
        instance = handler() if isinstance(handler, type) else handler
        if first:
            self._handlers.insert(0, instance)
        else:
            self._handlers.append(instance)
        logger.debug(f"Registered handler: {instance!r}")
        return instance

    def resolve(self, block: CompiledBlock) -> Optional[BlockHandler]:
        """First handler claiming the block, or None."""
        for handler in self._handlers:
            if handler.can_handle(block):
                return handler
        if self._fallback is not None and self._fallback.can_handle(block):
            return self._fallback
        return None

    @property
    def handlers(self) -> List[BlockHandler]:
        """Handlers in dispatch order, fallback included."""
        ordered = list(self._handlers)
        if self._fallback is not None:
            ordered.append(self._fallback)
        return ordered

    def block_types(self) -> List[str]:
        """Block types claimed by registered handlers."""
        types: List[str] = []
        for handler in self.handlers:
            for block_type in handler.block_types:
                if block_type not in types:
                    types.append(block_type)
        return types

    def discover_entry_points(self, force: bool = False) -> int:
        """
        Discover handler plugins via entry points.

        Entry points are defined in pyproject.toml:

            [project.entry-points."flowforge.block_handlers"]
            mypack = "mypack.handlers:handlers"

        The entry point may be a handler instance, a handler class, a
        callable returning either, or a list of them.

        Args:
            force: Re-discover even if already done

        Returns:
            Number of handlers registered
        """
        if self._discovered and not force:
            return 0

        count = 0
        for ep in entry_points(group=HANDLER_ENTRY_POINT):
            try:
                loaded = ep.load()
                for handler in self._expand(loaded):
                    self.register(handler)
                    count += 1
                logger.info(f"Discovered handler plugin: {ep.name}")
            except Exception as e:
                logger.error(f"Failed to load handler plugin '{ep.name}': {e}")

        self._discovered = True
        return count

    def discover_module(self, module_path: str) -> int:
        """
        Register every concrete BlockHandler subclass defined in a module.

        Args:
            module_path: Module path to import (e.g., 'mypack.handlers')

        Returns:
            Number of handlers registered
        """
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            logger.error(f"Failed to import module '{module_path}': {e}")
            return 0

        count = 0
        for _, obj in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(obj, BlockHandler)
                and obj is not BlockHandler
                and obj.__module__ == module.__name__
                and not inspect.isabstract(obj)
            ):
                self.register(obj)
                count += 1
        return count

    @staticmethod
    def _expand(loaded: Any) -> List[BlockHandler]:
        if isinstance(loaded, BlockHandler):
            return [loaded]
        if isinstance(loaded, type) and issubclass(loaded, BlockHandler):
            return [loaded()]
        if isinstance(loaded, (list, tuple)):
            expanded: List[BlockHandler] = []
            for item in loaded:
                expanded.extend(HandlerRegistry._expand(item))
            return expanded
        if callable(loaded):
            return HandlerRegistry._expand(loaded())
        raise TypeError(f"Unsupported handler entry point value: {loaded!r}")

    def __iter__(self) -> Iterator[BlockHandler]:
        return iter(self.handlers)

    def __len__(self) -> int:
        return len(self.handlers)


def builtin_handlers(http_client: Optional[HttpClient] = None) -> List[BlockHandler]:
    """Stock handlers in dispatch order (without the Default fallback)."""
    return [
        StartHandler(),
        EndHandler(),
        CalculationHandler(),
        ConditionHandler(),
        SwitchHandler(),
        LoopHandler(),
        WaitHandler(),
        TextTransformHandler(),
        TextReplaceHandler(),
        ParserHandler(),
        HttpRequestHandler(http_client),
    ]


def create_default_registry(
    discover_plugins: bool = False,
    http_client: Optional[HttpClient] = None,
) -> HandlerRegistry:
    """
    Registry with the builtin handlers and the Default fallback.

    Args:
        discover_plugins: Also load handlers from entry points
        http_client: Client used by the HttpRequest handler
    """
    registry = HandlerRegistry(builtin_handlers(http_client), fallback=DefaultHandler())
    if discover_plugins:
        registry.discover_entry_points()
    return registry


__all__ = [
    "HANDLER_ENTRY_POINT",
    "HandlerRegistry",
    "builtin_handlers",
    "create_default_registry",
]
