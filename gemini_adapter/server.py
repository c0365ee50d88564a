"""
FastAPI server for the Gemini adapter.
This module contains the FastAPI application and API endpoints.
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from .adapter import GoogleGenerativeAIAdapter
from .config import config
from .hook import hook_manager, load_all_plugins
from .types import ForwardedProps
from .utils import (
    _extract_error_details,
    _format_error_message,
    log_request_beautifully,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan event handler."""
    # Adapter is built on first request, see get_adapter
    load_all_plugins()

    yield


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"Request: {request.method} {request.url.path}")
    return await call_next(request)


def get_adapter(app: FastAPI) -> GoogleGenerativeAIAdapter:
    adapter = getattr(app.state, "adapter", None)
    if adapter is None:
        adapter = GoogleGenerativeAIAdapter(config=config)
        app.state.adapter = adapter
    return adapter


async def log_stream_errors(stream):
    """Log failures that happen after the response headers were sent."""
    try:
        async for event_str in stream:
            yield event_str
    except Exception as e:
        error_details = _extract_error_details(e)
        logger.error(f"Error while streaming: {json.dumps(error_details, indent=2)}")
        raise


@app.post("/v1/chat/completions")
async def create_chat_completion(raw_request: Request):
    body = await raw_request.body()
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON body: {e}") from e

    try:
        props = ForwardedProps.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail=json.loads(e.json(include_url=False))
        ) from e

    try:
        props = hook_manager.apply_request_hooks(props)
        adapter = get_adapter(raw_request.app)
        response = await adapter.get_response(
            props, chunk_hook=hook_manager.chunk_hook
        )
    except Exception as e:
        error_details = _extract_error_details(e)
        logger.error(f"Error processing request: {json.dumps(error_details, indent=2)}")

        error_message = _format_error_message(e, error_details)
        status_code = error_details.get("status_code", 500)
        raise HTTPException(status_code=status_code, detail=error_message) from e

    log_request_beautifully(
        "POST",
        raw_request.url.path,
        adapter.model.model_name,
        len(props.messages),
        len(props.tools or []),
        200,
    )

    return StreamingResponse(
        log_stream_errors(response.stream),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.get("/health")
async def health():
    """Reports the configured model and whether a credential is available."""
    adapter = getattr(app.state, "adapter", None)
    model_name = adapter.model.model_name if adapter else config.model_name
    return {
        "status": "ok",
        "model": model_name,
        "credential_configured": adapter is not None or config.has_api_key(),
    }

