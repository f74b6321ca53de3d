"""CLI interface for Cadence."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn
import yaml
from dotenv import load_dotenv

from cadence.api.app import create_app
from cadence.core.config import Config, load_config
from cadence.core.logging import setup_logging
from cadence.db.database import DatabaseManager
from cadence.runtime.orchestrator import CadenceOrchestrator

logger = logging.getLogger(__name__)


def _load(config_path: Path, verbose: bool) -> Config:
    """Load .env beside the config, then the config itself, then logging."""
    env_file = config_path.parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    config = load_config(config_path)
    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        directory=config.logging.directory,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
    )
    return config


async def run_init_db(config: Config) -> None:
    """Create database tables and exit."""
    db = DatabaseManager(config.database.path)
    try:
        await db.init_db()
        logger.info(f"Database initialized at {config.database.path}")
    finally:
        await db.close()


async def run_server(args: argparse.Namespace, config: Config) -> None:
    """Serve the API. The app lifespan starts and stops the orchestrator."""
    orchestrator = CadenceOrchestrator(config)
    app = create_app(orchestrator, cors_origins=config.api.cors_origins)

    uvicorn_config = uvicorn.Config(
        app,
        host=args.host or config.api.host,
        port=args.port or config.api.port,
        log_level="debug" if args.verbose else "info",
    )
    server = uvicorn.Server(uvicorn_config)

    logger.info(f"Serving Cadence on {uvicorn_config.host}:{uvicorn_config.port}")
    await server.serve()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cadence - personal automation agent")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the API, scheduler and channel pollers")
    serve_parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file",
    )
    serve_parser.add_argument("--host", type=str, default=None, help="API host (default: from config)")
    serve_parser.add_argument("--port", type=int, default=None, help="API port (default: from config)")
    serve_parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file",
    )
    init_parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    return parser


async def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = _load(args.config, args.verbose)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in {args.config}: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "init-db":
        await run_init_db(config)
        return

    await run_server(args, config)


def run() -> None:
    """Entry point for the cadence console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
