"""
Streaming response processing for Gemini to chat-completion conversion.
This module contains the ChatCompletionStreamer class and the SSE stream it feeds.
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from openai.types.chat import ChatCompletionChunk
from openai.types.chat.chat_completion_chunk import (
    Choice,
    ChoiceDelta,
    ChoiceDeltaToolCall,
    ChoiceDeltaToolCallFunction,
)

from .client import StreamResult
from .converter import replace_newlines_in_object
from .errors import wrap_upstream_error
from .types import Constants, generate_unique_id

logger = logging.getLogger(__name__)

ChunkHook = Callable[[ChatCompletionChunk], ChatCompletionChunk]


def format_chunk_event(chunk: ChatCompletionChunk | dict[str, Any]) -> str:
    """Serialize one chat-completion chunk as an SSE data record."""
    if isinstance(chunk, ChatCompletionChunk):
        chunk = chunk.model_dump(exclude_none=True)
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n"


def format_end_event() -> str:
    """The record that tells the consumer no chunks follow."""
    return f"data: {Constants.STREAM_DONE}\n\n"


def serialize_tool_arguments(args: dict[str, Any] | None) -> str:
    return json.dumps(
        replace_newlines_in_object(dict(args or {})),
        ensure_ascii=False,
        separators=(",", ":"),
    )


class ChatCompletionStreamer:
    """Encapsulates state for re-emitting a Gemini stream as chat-completion chunks."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self.completion_id = generate_unique_id("chatcmpl")
        self.created = int(time.time())

        self.gemini_chunks_received = 0
        self.text_chunks_sent = 0
        self.accumulated_text = ""
        self.tool_calls: list[ChoiceDeltaToolCall] = []

    def _build_chunk(self, delta: ChoiceDelta) -> ChatCompletionChunk:
        return ChatCompletionChunk(
            id=self.completion_id,
            object=Constants.CHUNK_OBJECT,
            created=self.created,
            model=self.model_name,
            choices=[Choice(index=0, delta=delta)],
        )

    def text_chunk(self, fragment: str) -> ChatCompletionChunk:
        self.accumulated_text += fragment
        self.text_chunks_sent += 1
        logger.debug(
            f"STREAMING_CHUNK: text +{len(fragment)} chars, total: {len(self.accumulated_text)} chars"
        )
        return self._build_chunk(
            ChoiceDelta(role=Constants.ROLE_ASSISTANT, content=fragment)
        )

    def tool_calls_chunk(self, calls: list[Any]) -> ChatCompletionChunk:
        self.tool_calls = [
            ChoiceDeltaToolCall(
                index=ix,
                id=str(ix),
                type=Constants.TOOL_FUNCTION,
                function=ChoiceDeltaToolCallFunction(
                    name=call.name,
                    arguments=serialize_tool_arguments(call.args),
                ),
            )
            for ix, call in enumerate(calls)
        ]
        logger.debug(f"STREAMING_CHUNK: {len(self.tool_calls)} tool calls")
        return self._build_chunk(
            ChoiceDelta(
                role=Constants.ROLE_ASSISTANT, content="", tool_calls=self.tool_calls
            )
        )


def _chunk_text(chunk: Any) -> str | None:
    text = getattr(chunk, "text", None)
    return text if isinstance(text, str) else None


async def _close_upstream(result: StreamResult):
    close = getattr(result, "aclose", None)
    if close is None:
        return
    try:
        await close()
    except Exception as e:
        logger.warning(f"Error closing upstream Gemini stream: {e}")


async def stream_chat_completion(
    result: StreamResult,
    model_name: str,
    chunk_hook: ChunkHook | None = None,
):
    """Re-emit a Gemini stream as SSE chat-completion records.

    Text chunks come first in upstream order, then at most one tool-call
    chunk, then the end record. An upstream failure raises
    ``UpstreamStreamError`` and no end record is written.
    """
    streamer = ChatCompletionStreamer(model_name)
    completed = False

    def render(chunk: ChatCompletionChunk) -> str:
        if chunk_hook is not None:
            chunk = chunk_hook(chunk)
        return format_chunk_event(chunk)

    try:
        upstream = aiter(result.stream)
        while True:
            try:
                gemini_chunk = await anext(upstream)
            except StopAsyncIteration:
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"🌊 ERROR_READING_CHUNK #{streamer.gemini_chunks_received + 1}: {e}")
                raise wrap_upstream_error(e, "stream") from e

            streamer.gemini_chunks_received += 1
            fragment = _chunk_text(gemini_chunk)
            if fragment:
                yield render(streamer.text_chunk(fragment))

        try:
            response = await result.response()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"🌊 ERROR_READING_RESPONSE: {e}")
            raise wrap_upstream_error(e, "response") from e

        if response.function_calls:
            yield render(streamer.tool_calls_chunk(response.function_calls))

        yield format_end_event()
        completed = True

    finally:
        if not completed:
            # Consumer went away or upstream failed, stop reading from Gemini
            await _close_upstream(result)
        _log_streaming_completion(streamer, completed)


def _log_streaming_completion(streamer: ChatCompletionStreamer, completed: bool):
    """Log a summary of the streaming completion."""
    try:
        status = "STREAMING COMPLETE" if completed else "STREAMING ABORTED"
        logger.info(
            f"{status} - Model: {streamer.model_name}, "
            f"Gemini chunks: {streamer.gemini_chunks_received}, "
            f"Text chunks: {streamer.text_chunks_sent}, "
            f"Text: {len(streamer.accumulated_text)} chars"
        )
        if streamer.tool_calls:
            logger.info(
                f"🔧 STREAMING_TOOL_CALLS: {len(streamer.tool_calls)} tool calls"
            )
            for tool_call in streamer.tool_calls:
                logger.info(
                    f"🔧   Tool: {tool_call.function.name} (id: {tool_call.id})"
                )
                logger.debug(f"🔧   Arguments: {tool_call.function.arguments}")
        else:
            logger.debug("🔧 STREAMING_TOOL_CALLS: No tool calls")
    except Exception as cleanup_error:
        logger.error(f"Error in streaming cleanup logging: {cleanup_error}")
