# start_app.py
"""Launch the ordering API server."""

from __future__ import annotations

import argparse
import os
import sys

import uvicorn
from dotenv import load_dotenv

import config


def main(argv: list[str] | None = None) -> None:
    """Load settings from ``.env`` and the environment, then start the API."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="0.0.0.0")  # nosec B104: bind for local development
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args(argv)

    load_dotenv()  # load environment variables from a .env file
    config.get_settings.cache_clear()
    settings = config.get_settings()
    if not settings.super_admin_key:
        print("SUPER_ADMIN_KEY not set; admin endpoints are disabled", file=sys.stderr)

    uvicorn.run(
        "tablepoints.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
