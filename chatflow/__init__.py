"""Chatflow: multi-turn collection tools with free-form date resolution."""

from .collaborators import (
    HttpEntityBackend,
    InMemoryEntityBackend,
    StaticIdentityProvider,
)
from .config import ChatflowConfig, load_config
from .dates import DateResolver, ParsedDate, birthday_resolver, event_date_resolver
from .errors import ErrorKind, ToolError
from .flows import FlowRecord, InMemoryFlowStore, get_flow_store
from .tools import ContactStepExecutor, EventStepExecutor, ToolResult

__version__ = "0.1.0"
__all__ = [
    "ContactStepExecutor",
    "EventStepExecutor",
    "ToolResult",
    "DateResolver",
    "ParsedDate",
    "event_date_resolver",
    "birthday_resolver",
    "FlowRecord",
    "InMemoryFlowStore",
    "get_flow_store",
    "HttpEntityBackend",
    "InMemoryEntityBackend",
    "StaticIdentityProvider",
    "ChatflowConfig",
    "load_config",
    "ErrorKind",
    "ToolError",
]
