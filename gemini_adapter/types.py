"""
Pydantic models and type definitions for the Gemini adapter.
This module contains the ingress data models, constants, and shared helpers.
"""

import logging
import time
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

logger = logging.getLogger(__name__)


class ModelDefaults:
    """Default values and limits for model configurations"""

    DEFAULT_MODEL = "gemini-pro"

    # First generation Gemini Pro has no system instruction field
    BASELINE_MODELS = ("gemini-pro", "models/gemini-pro")

    # Default server settings
    DEFAULT_HOST = "0.0.0.0"
    DEFAULT_PORT = 8082
    DEFAULT_LOG_LEVEL = "ERROR"
    DEFAULT_MAX_RETRIES = 2
    DEFAULT_REQUEST_TIMEOUT = 60.0


class Constants:
    """Constants for better maintainability"""

    ROLE_USER = "user"
    ROLE_ASSISTANT = "assistant"
    ROLE_FUNCTION = "function"
    ROLE_SYSTEM = "system"

    # Gemini native roles
    ROLE_MODEL = "model"

    SUPPORTED_ROLES = (ROLE_USER, ROLE_ASSISTANT, ROLE_FUNCTION, ROLE_SYSTEM)

    SYSTEM_MESSAGE_PREFIX = (
        "THE FOLLOWING MESSAGE IS NOT A USER MESSAGE. IT IS A SYSTEM MESSAGE: "
    )

    TOOL_FUNCTION = "function"

    CHUNK_OBJECT = "chat.completion.chunk"
    STREAM_DONE = "[DONE]"


def generate_unique_id(prefix: str) -> str:
    """
    Generate a unique ID with specified prefix, timestamp and random suffix.
    Format: <prefix>_<timestamp_ms>_<random_hex>
    """
    timestamp_ms = int(time.time() * 1000)
    random_suffix = uuid.uuid4().hex[:8]
    return f"{prefix}_{timestamp_ms}_{random_suffix}"


class FunctionCall(BaseModel):
    name: str
    arguments: str = ""


class ConversationMessage(BaseModel):
    model_config = ConfigDict(
        validate_assignment=False, str_strip_whitespace=False, extra="ignore"
    )

    # Unknown roles pass here and are filtered by the transcoder
    role: str
    content: str | None = ""
    name: str | None = None
    function_call: FunctionCall | None = None

    @field_validator("content", mode="before")
    @classmethod
    def normalize_content(cls, v):
        return "" if v is None else v

    @model_validator(mode="after")
    def check_function_name(self):
        if self.role == Constants.ROLE_FUNCTION and not self.name:
            raise ValueError("function messages must carry a 'name'")
        return self


class FunctionDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: str | None = None
    parameters: dict[str, Any] = {}


class ToolDeclaration(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = Constants.TOOL_FUNCTION
    function: FunctionDefinition


class ForwardedProps(BaseModel):
    model_config = ConfigDict(
        validate_assignment=False,
        str_strip_whitespace=False,
        extra="ignore",
    )

    messages: list[ConversationMessage]
    tools: list[ToolDeclaration] | None = None

    @field_validator("messages")
    @classmethod
    def validate_messages_not_empty(cls, v):
        if not v:
            raise ValueError("messages must contain at least one message")
        return v

    @field_validator("tools", mode="before")
    @classmethod
    def default_tools(cls, v):
        return [] if v is None else v
