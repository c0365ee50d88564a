#!/usr/bin/env python3
"""
Main entry point for the gemini_adapter package.
This allows the package to be run as: python -m gemini_adapter
"""

import argparse
import sys

import uvicorn

from .config import config, setup_logging


def main():
    """Main entry point for the package."""
    parser = argparse.ArgumentParser(description="Run the Gemini adapter server.")
    parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload on code changes."
    )
    parser.add_argument("--host", default=config.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.port, help="Port to bind to")
    args = parser.parse_args()

    if not config.has_api_key():
        print("🔴 ERROR: GOOGLE_API_KEY is not set!")
        print(f"Set it in the environment or in {config.get_env_file_path()}")
        sys.exit(1)

    setup_logging()

    print(f"✅ Configuration loaded: Model={config.model_name}")

    uvicorn.run(
        "gemini_adapter.server:app",
        host=args.host,
        port=args.port,
        log_config=None,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
