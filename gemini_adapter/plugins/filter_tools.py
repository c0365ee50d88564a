import logging

from ..config import config
from ..types import ForwardedProps

logger = logging.getLogger(__name__)


def request_hook(props: ForwardedProps) -> ForwardedProps:
    """Drop the tools named in FILTERED_TOOLS before they are declared to Gemini."""
    filtered_tool_names = set(config.filtered_tools)
    if not filtered_tool_names or not props.tools:
        return props

    kept = [tool for tool in props.tools if tool.function.name not in filtered_tool_names]
    removed = [
        tool.function.name
        for tool in props.tools
        if tool.function.name in filtered_tool_names
    ]
    if removed:
        logger.debug(f"🔧 TOOL_FILTER: Removed tools: {removed}")
        logger.debug(
            f"🔧 TOOL_FILTER: Remaining tools: {[tool.function.name for tool in kept]}"
        )

    return props.model_copy(update={"tools": kept})
