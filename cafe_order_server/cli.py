"""Command-line interface for the Cafe Order Server."""

import argparse
import asyncio
import sys

from .errors import ConfigurationError


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Cafe Order Server - browse the menu, build a cart and place guest orders"
    )
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="Server mode: stdio (for MCP clients) or http (REST API)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="HTTP server host (only for http mode, default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="HTTP server port (only for http mode, default: 8000)",
    )

    args = parser.parse_args()

    try:
        if args.mode == "stdio":
            # Run MCP server via stdio
            from .server import main as server_main

            asyncio.run(server_main())
        elif args.mode == "http":
            # Run HTTP server
            from .http_server import run_http_server

            print(f"Starting Cafe Order HTTP Server on {args.host}:{args.port}", file=sys.stderr)
            print(f"API documentation available at http://{args.host}:{args.port}/docs", file=sys.stderr)
            run_http_server(host=args.host, port=args.port)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
