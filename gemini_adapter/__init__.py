"""
Gemini Adapter - drives Google Gemini through an OpenAI style chat-completion stream.

This package translates chat-completion messages and tools into Gemini content
and re-emits the streamed Gemini output as chat-completion chunks.
"""

__version__ = "0.1.0"

# Export main components for easier imports
from .adapter import AdapterResponse, GoogleGenerativeAIAdapter
from .config import Config
from .errors import (
    AdapterError,
    InvalidToolSchema,
    MalformedFunctionCallArguments,
    MissingCredential,
    UnsupportedMessageRole,
    UpstreamStreamError,
)
from .types import ConversationMessage, ForwardedProps, ToolDeclaration

__all__ = [
    "AdapterError",
    "AdapterResponse",
    "Config",
    "ConversationMessage",
    "ForwardedProps",
    "GoogleGenerativeAIAdapter",
    "InvalidToolSchema",
    "MalformedFunctionCallArguments",
    "MissingCredential",
    "ToolDeclaration",
    "UnsupportedMessageRole",
    "UpstreamStreamError",
]
