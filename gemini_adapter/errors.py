"""Exception hierarchy for the Gemini adapter."""


class AdapterError(Exception):
    """Base exception for all adapter errors."""


class UnsupportedMessageRole(AdapterError, ValueError):
    """A message role outside user/assistant/function/system."""

    def __init__(self, role: str):
        super().__init__(f"Invalid message role: {role!r}")
        self.role = role


class MalformedFunctionCallArguments(AdapterError, ValueError):
    """Assistant function call arguments are not a JSON object."""

    def __init__(self, name: str, arguments: str, reason: str = "invalid JSON"):
        super().__init__(
            f"Malformed arguments for function call '{name}': {reason}"
        )
        self.name = name
        self.arguments = arguments


class InvalidToolSchema(AdapterError, ValueError):
    """A tool parameters schema has no Gemini schema equivalent."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid parameters schema for tool '{name}': {reason}")
        self.name = name


class MissingCredential(AdapterError):
    """No model handle was supplied and no API key is configured."""


class UpstreamStreamError(AdapterError):
    """The Gemini streaming call failed.

    The original exception is kept as ``__cause__``. ``phase`` tells whether
    the failure happened while opening the send, while iterating the stream,
    or while collecting the aggregated response.
    """

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.phase = phase
        self.status_code = status_code


def wrap_upstream_error(exc: BaseException, phase: str) -> UpstreamStreamError:
    """Build an ``UpstreamStreamError`` from an SDK or transport exception."""
    status_code = getattr(exc, "code", None)
    if not isinstance(status_code, int):
        status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int):
        status_code = None
    return UpstreamStreamError(
        f"Gemini stream failed during {phase}: {exc}",
        phase=phase,
        status_code=status_code,
    )
