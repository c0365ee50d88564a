"""
Adapter for Google Gemini.

Takes the props a chat-completion front end forwards (messages and tools),
runs them against a Gemini chat session and returns the model output as an
OpenAI style SSE stream.

Usage::

    adapter = GoogleGenerativeAIAdapter()
    response = await adapter.get_response({"messages": [...], "tools": [...]})
    async for record in response.stream:
        ...

To use a different model, pass a model handle::

    client = create_gemini_client(api_key)
    adapter = GoogleGenerativeAIAdapter(model=GeminiModel(client, "gemini-1.5-pro-latest"))
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from .client import GenerativeModel, create_default_model
from .config import Config
from .converter import (
    build_chat_history,
    transform_message,
    transform_messages,
    transform_tools,
)
from .errors import wrap_upstream_error
from .streaming import ChunkHook, stream_chat_completion
from .types import ForwardedProps

logger = logging.getLogger(__name__)


@dataclass
class AdapterResponse:
    stream: AsyncIterator[str]


class GoogleGenerativeAIAdapter:
    def __init__(
        self,
        model: GenerativeModel | None = None,
        *,
        config: Config | None = None,
    ):
        if model is not None:
            self.model = model
        else:
            self.model = create_default_model(config)
        logger.debug(f"Gemini adapter ready for model: {self.model.model_name}")

    async def get_response(
        self,
        forwarded_props: ForwardedProps | dict[str, Any],
        chunk_hook: ChunkHook | None = None,
    ) -> AdapterResponse:
        if isinstance(forwarded_props, ForwardedProps):
            props = forwarded_props
        else:
            props = ForwardedProps.model_validate(forwarded_props)

        messages = list(props.messages)
        # The first message is always taken as the system message
        system_message = messages.pop(0).content.strip()
        if messages:
            current_message = messages[-1]
            prior_messages = messages[:-1]
        else:
            current_message = props.messages[0]
            prior_messages = []

        # Transcode everything before touching the network
        history = transform_messages(prior_messages)
        current = transform_message(current_message)
        tools = transform_tools(props.tools or [])

        chat_history, system_instruction = build_chat_history(
            history, system_message, self.model.model_name
        )
        logger.info(
            f"📊 PROCESSING REQUEST: Model={self.model.model_name}, "
            f"History={len(chat_history)}, Tools={len(tools)}, "
            f"SystemInstruction={system_instruction is not None}"
        )

        chat = self.model.start_chat(
            history=chat_history,
            system_instruction=system_instruction,
            tools=tools,
        )

        try:
            result = await chat.send_message_stream(current.parts)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error opening Gemini stream: {e}")
            raise wrap_upstream_error(e, "open") from e

        return AdapterResponse(
            stream=stream_chat_completion(result, self.model.model_name, chunk_hook)
        )
