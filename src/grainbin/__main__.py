"""Command line entry point: ``python -m grainbin``."""

import argparse
import logging
import os
import sys

# CLI option -> environment variable read by load_config
_ENV_FLAGS = {
    "env": "GRAINBIN_ENV",
    "store": "GRAINBIN_STORE_BACKEND",
    "data_dir": "GRAINBIN_DATA_DIR",
    "store_url": "GRAINBIN_STORE_URL",
    "notifier": "GRAINBIN_NOTIFIER",
    "log_level": "GRAINBIN_LOG_LEVEL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grainbin",
        description="Grain bin fill tracker API server",
    )
    server = parser.add_argument_group("server")
    server.add_argument("--host", help="Bind address (config: api.host)")
    server.add_argument("--port", type=int, help="Bind port (config: api.port)")
    server.add_argument("--reload", action="store_true", help="Reload on code changes")
    server.add_argument("--no-access-log", action="store_true", help="Disable request logging")

    tracker = parser.add_argument_group("tracker")
    tracker.add_argument("--env", help="Config environment (default: GRAINBIN_ENV or development)")
    tracker.add_argument("--store", choices=["file", "http", "memory"], help="Persistence backend")
    tracker.add_argument("--data-dir", help="Directory used by the file store")
    tracker.add_argument("--store-url", help="Base URL of the document store API")
    tracker.add_argument("--notifier", choices=["log", "broadcast"], help="Alert delivery")
    tracker.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (config: log_level)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, configure logging and run the API server."""
    args = build_parser().parse_args(argv)

    # The app loads its own config at startup; flags reach it as env vars,
    # which override every config file
    for option, env_var in _ENV_FLAGS.items():
        value = getattr(args, option)
        if value:
            os.environ[env_var] = value

    from .config import load_config

    config = load_config()
    level = config.log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    import uvicorn

    uvicorn.run(
        "grainbin.api.app:app",
        host=args.host or config.api_host,
        port=args.port or config.api_port,
        reload=args.reload,
        log_level=level.lower(),
        access_log=not args.no_access_log,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
