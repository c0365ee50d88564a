"""
Request and response hooks for the chat-completion endpoint.

Plugins are modules in ``gemini_adapter.plugins`` exposing any of:

- ``request_hook(props: ForwardedProps) -> ForwardedProps``, run on the
  validated payload before it is transcoded for Gemini.
- ``response_hook(chunk: ChatCompletionChunk) -> ChatCompletionChunk``, run
  on every chunk before it is written to the SSE stream.
"""

import importlib
import logging
import pkgutil
from collections.abc import Callable

from openai.types.chat import ChatCompletionChunk

from .types import ForwardedProps

logger = logging.getLogger(__name__)

REQUEST_HOOK = "request_hook"
RESPONSE_HOOK = "response_hook"

RequestHook = Callable[[ForwardedProps], ForwardedProps]
ResponseHook = Callable[[ChatCompletionChunk], ChatCompletionChunk]


def _hook_name(hook) -> str:
    return f"{getattr(hook, '__module__', '?')}.{getattr(hook, '__qualname__', hook)}"


class HookManager:
    def __init__(self):
        self.request_hooks: list[RequestHook] = []
        self.response_hooks: list[ResponseHook] = []

    def load_plugins(self, package):
        """Import every module of a plugin package and register its hooks."""
        if not hasattr(package, "__path__"):
            logger.warning(f"Package {package.__name__} does not have a __path__.")
            return

        for _, name, _ in pkgutil.iter_modules(package.__path__):
            try:
                module = importlib.import_module(f"{package.__name__}.{name}")
            except Exception as e:
                logger.error(f"Failed to load plugin {name}: {e}")
                continue
            self.register_hooks(module)
            logger.debug(f"Loaded plugin: {name}")

    def register_hooks(self, module):
        request_hook = getattr(module, REQUEST_HOOK, None)
        if callable(request_hook):
            self.request_hooks.append(request_hook)
        response_hook = getattr(module, RESPONSE_HOOK, None)
        if callable(response_hook):
            self.response_hooks.append(response_hook)

    def apply_request_hooks(self, props: ForwardedProps) -> ForwardedProps:
        for hook in self.request_hooks:
            props = hook(props)
            if not isinstance(props, ForwardedProps):
                raise TypeError(
                    f"Request hook {_hook_name(hook)} returned "
                    f"{type(props).__name__}, expected ForwardedProps"
                )
        return props

    def apply_response_hooks(self, chunk: ChatCompletionChunk) -> ChatCompletionChunk:
        for hook in self.response_hooks:
            chunk = hook(chunk)
            if not isinstance(chunk, ChatCompletionChunk):
                raise TypeError(
                    f"Response hook {_hook_name(hook)} returned "
                    f"{type(chunk).__name__}, expected ChatCompletionChunk"
                )
        return chunk

    @property
    def chunk_hook(self) -> ResponseHook | None:
        """The callable handed to the streaming bridge, None when no hooks are registered."""
        return self.apply_response_hooks if self.response_hooks else None


hook_manager = HookManager()


def load_all_plugins():
    """Discover and load all plugins bundled in 'gemini_adapter.plugins'."""
    from . import plugins

    hook_manager.load_plugins(plugins)
