"""
Gemini client management.
This module wraps the google-genai SDK behind the small chat session contract
the adapter relies on: start a chat, stream a send, read the aggregated calls.
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from google import genai
from google.genai import types

from .config import Config, config as default_config
from .errors import MissingCredential
from .types import Constants

logger = logging.getLogger(__name__)


@dataclass
class AggregatedResponse:
    """What the model decided once the stream has been fully read."""

    function_calls: list[Any] = field(default_factory=list)


class StreamResult(Protocol):
    stream: AsyncIterator[Any]

    async def response(self) -> AggregatedResponse: ...

    async def aclose(self) -> None: ...


class ChatSession(Protocol):
    async def send_message_stream(self, parts: list[types.Part]) -> StreamResult: ...


class GenerativeModel(Protocol):
    model_name: str

    def start_chat(
        self,
        history: list[types.Content],
        system_instruction: types.Content | None = None,
        tools: list[types.Tool] | None = None,
    ) -> ChatSession: ...


class GeminiStreamResult:
    """Single pass view over a Gemini response stream.

    Function calls are collected while the chunks go by, so the aggregated
    response is available once the stream is exhausted.
    """

    def __init__(self, chunks: AsyncIterator[types.GenerateContentResponse]):
        self._chunks = chunks
        self._function_calls: list[types.FunctionCall] = []
        self._exhausted = False
        self.stream = self._iterate()

    async def _iterate(self):
        async for chunk in self._chunks:
            calls = chunk.function_calls
            if calls:
                self._function_calls.extend(calls)
            yield chunk
        self._exhausted = True

    async def response(self) -> AggregatedResponse:
        if not self._exhausted:
            # Drain whatever the caller did not read
            async for _ in self.stream:
                pass
        return AggregatedResponse(function_calls=list(self._function_calls))

    async def aclose(self) -> None:
        await self.stream.aclose()
        close = getattr(self._chunks, "aclose", None)
        if close is not None:
            await close()


class GeminiChatSession:
    def __init__(self, chat):
        self._chat = chat

    async def send_message_stream(self, parts: list[types.Part]) -> GeminiStreamResult:
        chunks = await self._chat.send_message_stream(parts)
        return GeminiStreamResult(chunks)


def _to_chat_role(content: types.Content) -> types.Content:
    # The chat API only accepts user and model turns
    if content.role == Constants.ROLE_FUNCTION:
        return content.model_copy(update={"role": Constants.ROLE_USER})
    return content


class GeminiModel:
    """A Gemini model handle bound to an SDK client."""

    def __init__(self, client: genai.Client, model_name: str):
        self.client = client
        self.model_name = model_name

    def start_chat(
        self,
        history: list[types.Content],
        system_instruction: types.Content | None = None,
        tools: list[types.Tool] | None = None,
    ) -> GeminiChatSession:
        config_kwargs: dict[str, Any] = {}
        if system_instruction is not None:
            config_kwargs["system_instruction"] = system_instruction
        if tools:
            config_kwargs["tools"] = tools
            # Calls are handed back to the caller, never executed here
            config_kwargs["automatic_function_calling"] = (
                types.AutomaticFunctionCallingConfig(disable=True)
            )

        chat = self.client.aio.chats.create(
            model=self.model_name,
            config=types.GenerateContentConfig(**config_kwargs),
            history=[_to_chat_role(content) for content in history],
        )
        logger.debug(
            f"Started chat: model={self.model_name}, history={len(history)}, "
            f"tools={len(tools or [])}, system_instruction={system_instruction is not None}"
        )
        return GeminiChatSession(chat)


def create_gemini_client(api_key: str, cfg: Config | None = None) -> genai.Client:
    """Create a google-genai client with retry and timeout options."""
    cfg = cfg or default_config
    http_options = types.HttpOptions(
        timeout=int(cfg.request_timeout * 1000),
        retry_options=types.HttpRetryOptions(attempts=cfg.max_retries + 1),
    )
    logger.debug(
        f"Create Gemini Client: retries={cfg.max_retries}, timeout={cfg.request_timeout}s"
    )
    return genai.Client(api_key=api_key, http_options=http_options)


def create_default_model(cfg: Config | None = None) -> GeminiModel:
    """Build the default model handle from the configured API key."""
    cfg = cfg or default_config
    if not cfg.google_api_key:
        raise MissingCredential(
            "GOOGLE_API_KEY is not set and no model was supplied to the adapter"
        )
    client = create_gemini_client(cfg.google_api_key, cfg)
    return GeminiModel(client, cfg.model_name)
