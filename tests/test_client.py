#!/usr/bin/env python3
"""
Test suite for the google-genai wrapper in gemini_adapter.client.
"""

import os
import sys
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from google.genai import types

from gemini_adapter.client import (
    GeminiChatSession,
    GeminiModel,
    GeminiStreamResult,
    create_default_model,
    create_gemini_client,
)
from gemini_adapter.config import Config
from gemini_adapter.errors import MissingCredential


async def fake_chunks(*chunks):
    for chunk in chunks:
        yield chunk


def chunk(text=None, function_calls=None):
    return SimpleNamespace(text=text, function_calls=function_calls)


class TestGeminiModel(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.model = GeminiModel(self.client, "gemini-1.5-pro-latest")

    def test_start_chat_rewrites_function_role(self):
        history = [
            types.Content(role="user", parts=[types.Part(text="Hi")]),
            types.Content(
                role="function",
                parts=[
                    types.Part(
                        function_response=types.FunctionResponse(
                            name="f", response={"name": "f", "content": 1}
                        )
                    )
                ],
            ),
        ]
        self.model.start_chat(history)

        kwargs = self.client.aio.chats.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-1.5-pro-latest")
        self.assertEqual([c.role for c in kwargs["history"]], ["user", "user"])
        # Caller's content is not mutated
        self.assertEqual(history[1].role, "function")

    def test_start_chat_passes_system_instruction_and_tools(self):
        instruction = types.Content(role="user", parts=[types.Part(text="S")])
        tool = types.Tool(
            function_declarations=[types.FunctionDeclaration(name="ping")]
        )
        self.model.start_chat([], system_instruction=instruction, tools=[tool])

        config = self.client.aio.chats.create.call_args.kwargs["config"]
        self.assertEqual(config.system_instruction, instruction)
        self.assertEqual(config.tools, [tool])
        self.assertTrue(config.automatic_function_calling.disable)

    def test_start_chat_without_extras(self):
        self.model.start_chat([])
        config = self.client.aio.chats.create.call_args.kwargs["config"]
        self.assertIsNone(config.system_instruction)
        self.assertIsNone(config.tools)


class TestGeminiStreamResult(unittest.IsolatedAsyncioTestCase):
    async def test_collects_function_calls_while_streaming(self):
        call = types.FunctionCall(name="lookup", args={"q": "x"})
        result = GeminiStreamResult(
            fake_chunks(chunk(text="Hi"), chunk(function_calls=[call]))
        )

        texts = [c.text async for c in result.stream]
        response = await result.response()

        self.assertEqual(texts, ["Hi", None])
        self.assertEqual(response.function_calls, [call])

    async def test_response_drains_unread_stream(self):
        call = types.FunctionCall(name="lookup", args={})
        result = GeminiStreamResult(fake_chunks(chunk(function_calls=[call])))
        response = await result.response()
        self.assertEqual(response.function_calls, [call])

    async def test_no_function_calls(self):
        result = GeminiStreamResult(fake_chunks(chunk(text="a")))
        response = await result.response()
        self.assertEqual(response.function_calls, [])

    async def test_aclose_closes_upstream_iterator(self):
        upstream = fake_chunks(chunk(text="a"), chunk(text="b"))
        result = GeminiStreamResult(upstream)
        await anext(result.stream)
        await result.aclose()
        with self.assertRaises(StopAsyncIteration):
            await anext(upstream)


class TestGeminiChatSession(unittest.IsolatedAsyncioTestCase):
    async def test_send_message_stream_awaits_sdk(self):
        chat = MagicMock()
        chat.send_message_stream = AsyncMock(
            return_value=fake_chunks(chunk(text="Hel"), chunk(text="lo"))
        )
        session = GeminiChatSession(chat)
        parts = [types.Part(text="Hi")]

        result = await session.send_message_stream(parts)

        chat.send_message_stream.assert_awaited_once_with(parts)
        self.assertEqual([c.text async for c in result.stream], ["Hel", "lo"])


class TestClientFactory(unittest.TestCase):
    def test_missing_api_key(self):
        with self.assertRaises(MissingCredential):
            create_default_model(Config(environ={}))

    @patch("gemini_adapter.client.genai.Client")
    def test_client_gets_retry_and_timeout_options(self, mock_client_class):
        cfg = Config(environ={"MAX_RETRIES": "3", "REQUEST_TIMEOUT": "12.5"})
        create_gemini_client("key", cfg)

        kwargs = mock_client_class.call_args.kwargs
        self.assertEqual(kwargs["api_key"], "key")
        self.assertEqual(kwargs["http_options"].timeout, 12500)
        self.assertEqual(kwargs["http_options"].retry_options.attempts, 4)

    @patch("gemini_adapter.client.genai.Client")
    def test_default_model_uses_configured_name(self, mock_client_class):
        cfg = Config(
            environ={"GOOGLE_API_KEY": "key", "GEMINI_MODEL": "gemini-2.0-flash"}
        )
        model = create_default_model(cfg)
        self.assertEqual(model.model_name, "gemini-2.0-flash")
        self.assertIs(model.client, mock_client_class.return_value)


if __name__ == "__main__":
    unittest.main()
