"""Command-line entry point: run the Corral server with uvicorn."""

import argparse

from .config import DEFAULT_HOST, DEFAULT_PORT
from .logging_config import get_logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Corral - live status for lasso agent sessions")
    parser.add_argument("--host", default=DEFAULT_HOST, help=f"Host to bind to (default: {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port to listen on (default: {DEFAULT_PORT})")
    parser.add_argument("--log-level", default=None, help="Log level (default: CORRAL_LOG_LEVEL or INFO)")
    return parser


def main(argv: list[str] | None = None) -> None:
    import logging

    import uvicorn

    args = build_parser().parse_args(argv)
    level = getattr(logging, args.log_level.upper(), None) if args.log_level else None
    setup_logging(level=level)

    logger = get_logger(__name__, namespace='api')
    logger.info(f"Corral running at http://{args.host}:{args.port}")

    from .server import app
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
