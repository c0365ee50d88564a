#!/usr/bin/env python3
"""
Test suite for re-emitting Gemini streams as chat-completion SSE records.

Usage:
  python -m unittest tests.test_streaming
"""

import json
import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from google.genai import types

from gemini_adapter.errors import UpstreamStreamError
from gemini_adapter.streaming import (
    ChatCompletionStreamer,
    format_chunk_event,
    format_end_event,
    serialize_tool_arguments,
    stream_chat_completion,
)
from tests.fakes import FakeStreamResult, parse_sse


async def collect(stream):
    return [record async for record in stream]


class TestChunkFormatting(unittest.TestCase):
    def test_end_event(self):
        self.assertEqual(format_end_event(), "data: [DONE]\n\n")

    def test_chunk_event_from_dict(self):
        self.assertEqual(
            format_chunk_event({"choices": []}), 'data: {"choices": []}\n\n'
        )

    def test_text_chunk_shape(self):
        streamer = ChatCompletionStreamer("gemini-pro")
        chunk = streamer.text_chunk("Hel").model_dump(exclude_none=True)
        self.assertEqual(chunk["object"], "chat.completion.chunk")
        self.assertEqual(chunk["model"], "gemini-pro")
        self.assertEqual(
            chunk["choices"][0]["delta"], {"role": "assistant", "content": "Hel"}
        )
        self.assertEqual(streamer.accumulated_text, "Hel")

    def test_serialize_tool_arguments_is_compact_and_normalizes_newlines(self):
        self.assertEqual(serialize_tool_arguments({"q": "x"}), '{"q":"x"}')
        self.assertEqual(
            serialize_tool_arguments({"code": "a\\nb\\nc"}), '{"code":"a\\nb\\nc"}'
        )
        self.assertEqual(
            json.loads(serialize_tool_arguments({"code": "a\\nb\\nc"})),
            {"code": "a\nb\nc"},
        )
        self.assertEqual(serialize_tool_arguments(None), "{}")


class TestStreamChatCompletion(unittest.IsolatedAsyncioTestCase):
    async def test_text_fragments_then_end_marker(self):
        result = FakeStreamResult(["Hel", "lo"])
        events = parse_sse(await collect(stream_chat_completion(result, "gemini-pro")))

        self.assertEqual(len(events), 3)
        self.assertEqual(events[0]["choices"][0]["delta"]["content"], "Hel")
        self.assertEqual(events[1]["choices"][0]["delta"]["content"], "lo")
        for event in events[:2]:
            self.assertEqual(event["choices"][0]["delta"]["role"], "assistant")
            self.assertNotIn("tool_calls", event["choices"][0]["delta"])
        self.assertEqual(events[2], "[DONE]")

    async def test_chunks_share_completion_id(self):
        result = FakeStreamResult(["a", "b"])
        events = parse_sse(await collect(stream_chat_completion(result, "gemini-pro")))
        self.assertEqual(events[0]["id"], events[1]["id"])
        self.assertTrue(events[0]["id"].startswith("chatcmpl_"))

    async def test_empty_fragments_are_skipped(self):
        result = FakeStreamResult(["", None, "x"])
        events = parse_sse(await collect(stream_chat_completion(result, "gemini-pro")))
        self.assertEqual(len(events), 2)
        self.assertEqual(events[0]["choices"][0]["delta"]["content"], "x")

    async def test_tool_calls_chunk_comes_last(self):
        result = FakeStreamResult(
            [],
            function_calls=[types.FunctionCall(name="lookup", args={"q": "x"})],
        )
        events = parse_sse(await collect(stream_chat_completion(result, "gemini-pro")))

        self.assertEqual(len(events), 2)
        delta = events[0]["choices"][0]["delta"]
        self.assertEqual(delta["role"], "assistant")
        self.assertEqual(delta["content"], "")
        self.assertEqual(len(delta["tool_calls"]), 1)
        call = delta["tool_calls"][0]
        self.assertEqual(call["index"], 0)
        self.assertEqual(call["id"], "0")
        self.assertEqual(
            call["function"], {"name": "lookup", "arguments": '{"q":"x"}'}
        )
        self.assertEqual(events[1], "[DONE]")

    async def test_multiple_tool_calls_after_text(self):
        result = FakeStreamResult(
            ["Let me check."],
            function_calls=[
                types.FunctionCall(name="first", args={"a": 1}),
                types.FunctionCall(name="second", args={}),
            ],
        )
        events = parse_sse(await collect(stream_chat_completion(result, "gemini-pro")))

        self.assertEqual(len(events), 3)
        self.assertEqual(events[0]["choices"][0]["delta"]["content"], "Let me check.")
        calls = events[1]["choices"][0]["delta"]["tool_calls"]
        self.assertEqual([c["index"] for c in calls], [0, 1])
        self.assertEqual([c["id"] for c in calls], ["0", "1"])
        self.assertEqual(calls[1]["function"]["arguments"], "{}")
        self.assertEqual(events[2], "[DONE]")

    async def test_chunk_hook_is_applied(self):
        def hook(chunk):
            return chunk.model_copy(update={"system_fingerprint": "hooked"})

        result = FakeStreamResult(["x"])
        events = parse_sse(
            await collect(stream_chat_completion(result, "gemini-pro", chunk_hook=hook))
        )
        self.assertEqual(events[0]["system_fingerprint"], "hooked")
        self.assertEqual(events[0]["choices"][0]["delta"]["content"], "x")
        self.assertEqual(events[1], "[DONE]")

    async def test_upstream_failure_mid_stream(self):
        result = FakeStreamResult(["Hel", "lo"], fail_at=1)
        records = []
        with self.assertRaises(UpstreamStreamError) as ctx:
            async for record in stream_chat_completion(result, "gemini-pro"):
                records.append(record)

        self.assertEqual(len(records), 1)
        self.assertNotIn(format_end_event(), records)
        self.assertEqual(ctx.exception.phase, "stream")
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)
        self.assertTrue(result.closed)

    async def test_aggregated_response_failure(self):
        result = FakeStreamResult(["ok"], response_error=RuntimeError("boom"))
        records = []
        with self.assertRaises(UpstreamStreamError) as ctx:
            async for record in stream_chat_completion(result, "gemini-pro"):
                records.append(record)
        self.assertEqual(ctx.exception.phase, "response")
        self.assertNotIn(format_end_event(), records)

    async def test_consumer_close_closes_upstream(self):
        result = FakeStreamResult(["a", "b", "c"])
        stream = stream_chat_completion(result, "gemini-pro")

        first = await anext(stream)
        self.assertIn('"content": "a"', first)
        await stream.aclose()

        self.assertTrue(result.closed)

    async def test_completed_stream_does_not_close_upstream(self):
        result = FakeStreamResult(["a"])
        await collect(stream_chat_completion(result, "gemini-pro"))
        self.assertFalse(result.closed)


if __name__ == "__main__":
    unittest.main()
