#!/usr/bin/env python3
"""
CLI interface for concierge.

Usage:
    concierge serve
    concierge serve --host 0.0.0.0 --port 8080 --log-level DEBUG

Loads a .env file from the working directory before reading any
configuration (REQUEST_BUDGET_15M, CONCIERGE_DEBUG_ROUTES, ...).
"""

import argparse
import os

import uvicorn
from dotenv import load_dotenv

from logging_config import configure_logging, logger


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP server."""
    from server import create_app

    configure_logging(args.log_level)
    logger.info(f"Starting concierge on {args.host}:{args.port}")
    uvicorn.run(
        create_app(),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Google Workspace backend-for-frontend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    concierge serve
    concierge serve --port 3000 --log-level DEBUG
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_p = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_p.add_argument("--host", default=os.environ.get("HOST", "127.0.0.1"))
    serve_p.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")))
    serve_p.add_argument(
        "--log-level",
        default=os.environ.get("CONCIERGE_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level (default: INFO or $CONCIERGE_LOG_LEVEL)",
    )
    serve_p.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
