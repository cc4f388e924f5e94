"""Guided, multi-step config flows for attaching integrations to a home automation hub."""
from .exceptions import (
    DefinitionError,
    FlowError,
    FlowTerminated,
    NotFound,
    UpstreamError,
    ValidationError,
)
from .flow_manager import FlowManager
from .registry import FlowHandlerRegistry, register_builtin_handlers
from .version import __version__

__all__ = [
    "DefinitionError",
    "FlowError",
    "FlowHandlerRegistry",
    "FlowManager",
    "FlowTerminated",
    "NotFound",
    "UpstreamError",
    "ValidationError",
    "__version__",
    "register_builtin_handlers",
]
