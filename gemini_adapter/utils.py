"""
Utility functions for the gemini_adapter package.
This module contains error reporting and request logging helpers.
"""

import logging
import sys
import traceback
from typing import Any

from .errors import (
    InvalidToolSchema,
    MalformedFunctionCallArguments,
    MissingCredential,
    UnsupportedMessageRole,
    UpstreamStreamError,
)

logger = logging.getLogger(__name__)


class Colors:
    CYAN = "\033[96m"
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    RED = "\033[91m"
    MAGENTA = "\033[95m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def _extract_error_details(e: Exception) -> dict[str, Any]:
    """Extract error details from an exception, ensuring all values are JSON serializable."""
    error_details = {
        "error": str(e),
        "type": type(e).__name__,
        "traceback": traceback.format_exc(),
    }

    if isinstance(
        e, (UnsupportedMessageRole, MalformedFunctionCallArguments, InvalidToolSchema)
    ):
        error_details["status_code"] = 400
    elif isinstance(e, MissingCredential):
        error_details["status_code"] = 500
    elif isinstance(e, UpstreamStreamError):
        error_details["phase"] = e.phase
        error_details["status_code"] = e.status_code or 502
        if e.__cause__ is not None:
            error_details["cause"] = str(e.__cause__)

    # google.genai.errors.APIError carries code/status/message
    for attr in ["code", "status", "message", "details", "response"]:
        if not hasattr(e, attr) or attr in error_details:
            continue
        value = getattr(e, attr)
        if attr == "response":
            # Response objects are not JSON serializable
            error_details[attr] = value.text if hasattr(value, "text") else str(value)
        elif isinstance(value, (str, int, float, bool, list, dict, type(None))):
            error_details[attr] = value
        else:
            error_details[attr] = str(value)

    if "status_code" not in error_details:
        code = error_details.get("code")
        error_details["status_code"] = code if isinstance(code, int) else 500

    return error_details


def _format_error_message(e: Exception, error_details: dict[str, Any]) -> str:
    """Format error message for response."""
    error_message = f"Error: {str(e)}"
    if error_details.get("cause"):
        error_message += f"\nCause: {error_details['cause']}"
    if error_details.get("message") and error_details["message"] != str(e):
        error_message += f"\nMessage: {error_details['message']}"
    return error_message


def log_request_beautifully(method, path, model, num_messages, num_tools, status_code):
    """Log requests in a compact, colored format showing model and payload size."""
    endpoint = path.split("?")[0]

    model_display = f"{Colors.CYAN}{model}{Colors.RESET}"
    tools_str = f"{Colors.MAGENTA}{num_tools} tools{Colors.RESET}"
    messages_str = f"{Colors.BLUE}{num_messages} messages{Colors.RESET}"

    status_str = (
        f"{Colors.GREEN}✓ {status_code} OK{Colors.RESET}"
        if status_code == 200
        else f"{Colors.RED}✗ {status_code}{Colors.RESET}"
    )

    print(f"{Colors.BOLD}{method} {endpoint}{Colors.RESET} {status_str}")
    print(f"{model_display} {tools_str} {messages_str}")
    sys.stdout.flush()
