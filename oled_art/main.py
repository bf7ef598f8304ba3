#!/usr/bin/env python3
"""
Video to OLED Server - Application Entry Point

Runs the FastAPI application built by ServerApp under uvicorn.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .server_app import ServerApp

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(config_path: Optional[Path] = None) -> FastAPI:
    """Create FastAPI application with proper configuration."""
    return ServerApp(config_path).get_fastapi_app()


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    config_path: Optional[str] = None,
) -> None:
    """Run the server with the given configuration."""
    server_app = ServerApp(Path(config_path) if config_path else None)
    app = server_app.get_fastapi_app()

    server_app.load_configuration()
    server_cfg = server_app.config.server

    host = host or server_cfg.host
    port = port or server_cfg.port
    logger.info(f"Starting server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Video to OLED Art Server")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        run_server(host=args.host, port=args.port, config_path=args.config)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
