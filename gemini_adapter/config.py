"""
Configuration management for the gemini_adapter package.
This module handles all configuration loading and logging setup.
"""

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv

from .types import ModelDefaults

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def parse_float_value(value, default_value=None):
    """Parse a float setting such as a timeout, falling back to the default."""
    if value is None or value == "":
        return default_value
    try:
        return float(value)
    except (ValueError, TypeError):
        logger.warning(
            f"Could not parse numeric value '{value}', using default {default_value}"
        )
        return default_value


class Config:
    """Adapter and server configuration read from the environment"""

    def __init__(self, environ: Mapping[str, str] | None = None):
        env = os.environ if environ is None else environ

        # Gemini credentials and model selection
        self.google_api_key = env.get("GOOGLE_API_KEY") or None
        self.model_name = env.get("GEMINI_MODEL", ModelDefaults.DEFAULT_MODEL)

        # Server configuration
        self.host = env.get("HOST", ModelDefaults.DEFAULT_HOST)
        self.port = int(env.get("PORT", str(ModelDefaults.DEFAULT_PORT)))
        self.log_level = env.get("LOG_LEVEL", ModelDefaults.DEFAULT_LOG_LEVEL)
        self.log_file_path = env.get(
            "LOG_FILE_PATH",
            Path(__file__).resolve().parent / "server.log",
        )

        # Upstream client behaviour, retries are owned by the Gemini client
        self.max_retries = int(
            env.get("MAX_RETRIES", str(ModelDefaults.DEFAULT_MAX_RETRIES))
        )
        self.request_timeout = parse_float_value(
            env.get("REQUEST_TIMEOUT"), ModelDefaults.DEFAULT_REQUEST_TIMEOUT
        )

        # Tools removed by the filter_tools plugin
        self.filtered_tools = [
            name.strip()
            for name in env.get("FILTERED_TOOLS", "").split(",")
            if name.strip()
        ]

        self.project_root = self._get_project_root()

    def _get_project_root(self) -> str:
        """Get the project root directory (parent of the package directory)"""
        package_dir = Path(__file__).resolve().parent
        return str(Path(package_dir).parent)

    def check_env_file_exists(self) -> bool:
        """Check if .env file exists in the project root"""
        return (Path(self.project_root) / ".env").exists()

    def get_env_file_path(self) -> str:
        """Get the full path to the .env file"""
        return str(Path(self.project_root) / ".env")

    def has_api_key(self) -> bool:
        return bool(self.google_api_key)


# Global configuration instance
config = Config()


# Create a filter to block any log messages containing specific strings
class MessageFilter(logging.Filter):
    def filter(self, record):
        blocked_phrases = [
            "HTTP Request:",
            "AFC is enabled",
            "there are non-text parts in the response",
        ]

        if hasattr(record, "msg") and isinstance(record.msg, str):
            for phrase in blocked_phrases:
                if phrase in record.msg:
                    return False
        return True


class ColorizedFormatter(logging.Formatter):
    """Custom formatter to highlight streaming summaries"""

    GREEN = "\033[92m"
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record):
        if isinstance(record.msg, str) and record.msg.startswith("STREAMING COMPLETE"):
            return f"{self.BOLD}{self.GREEN}{super().format(record)}{self.RESET}"
        return super().format(record)


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def create_log_handlers(log_file_path) -> list[logging.Handler]:
    """File and console handlers, each filtering noisy SDK lines.

    The filter sits on the handlers so it also sees records propagated
    from library loggers such as google_genai and httpx.
    """
    log_dir = Path(log_file_path).parent
    if not log_dir.exists():
        log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file_path, mode="a")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ColorizedFormatter(LOG_FORMAT))

    handlers = [file_handler, stream_handler]
    for handler in handlers:
        handler.addFilter(MessageFilter())
    return handlers


def setup_logging():
    """Setup logging configuration to be idempotent."""
    # Handlers are only added once to the root logger, uvicorn workers may
    # call this more than once.
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        return

    try:
        root_logger.setLevel(getattr(logging, config.log_level.upper()))
        for handler in create_log_handlers(config.log_file_path):
            root_logger.addHandler(handler)

        # uvicorn loggers inherit the root handlers
        logging.getLogger("uvicorn").setLevel(logging.INFO)
        logging.getLogger("uvicorn.error").setLevel(logging.INFO)
        uvicorn_access_logger = logging.getLogger("uvicorn.access")
        uvicorn_access_logger.setLevel(logging.INFO)
        uvicorn_access_logger.propagate = True
        if config.log_level.lower() == "debug":
            logging.getLogger("google_genai").setLevel(logging.INFO)
            logging.getLogger("httpx").setLevel(logging.INFO)

        logger.info("Logging configured for server.")

    except Exception as e:
        print(f"🔴 Error setting up logging: {e}")
        sys.exit(1)
