"""Run the lecture-render API with uvicorn."""

from __future__ import annotations

import argparse
from typing import Sequence

import uvicorn

from lecture_render.config import get_settings


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the lecture-render FastAPI application with uvicorn")
    parser.add_argument("--host", default=settings.host, help="Bind address (default: %(default)s)")
    parser.add_argument("--port", type=int, default=settings.port, help="TCP port (default: %(default)s)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for local development.")
    parser.add_argument(
        "--log-level",
        default=settings.log_level.lower(),
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level passed to uvicorn (default: %(default)s)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    uvicorn.run(
        "lecture_render.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
