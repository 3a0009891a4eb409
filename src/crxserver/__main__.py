"""
=============================================================================
COMMAND LINE ENTRY POINT
=============================================================================

    python -m crxserver                           # ./files on 127.0.0.1:8080
    python -m crxserver -H 0.0.0.0 -p 80 -d /srv/crx
    python -m crxserver --base-url https://updates.example.com

Settings are layered: command-line flags override CRX_* environment
variables, which override the ServerConfig defaults.
=============================================================================
"""

import argparse
import dataclasses
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crxserver",
        description="Serve browser extension update checks and package downloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m crxserver                                  # Run with defaults
  python -m crxserver --port 3000                      # Custom port
  python -m crxserver --package-dir /srv/crx           # Packages live elsewhere
  python -m crxserver --base-url https://cdn.example   # Fixed download URL base
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument("--host", "-H", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")
    parser.add_argument(
        "--workers", "-w", type=int,
        help="Maximum worker threads (default: 16)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # PACKAGES
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--package-dir", "-d",
        help="Directory containing <extension id>.crx files (default: ./files)",
    )
    parser.add_argument(
        "--base-url",
        help="Base of download URLs in update responses (default: from the Host header)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--log-level", "-l", choices=LOG_LEVELS, type=str.upper,
        help="Logging level (default: INFO)",
    )
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Access log format (default: text)")

    parser.add_argument("--version", "-v", action="version", version=f"crxserver {__version__}")
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ServerConfig] = None) -> ServerConfig:
    """Overlay the flags that were given on `base` (the environment by default)."""
    config = base or ServerConfig.from_env()
    overrides = {
        "host": args.host,
        "port": args.port,
        "package_dir": args.package_dir,
        "public_base_url": args.base_url,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    if args.workers is not None:
        overrides["max_workers"] = args.workers
        overrides["min_workers"] = min(config.min_workers, args.workers)

    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = create_app(config)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
