"""
Sceneflow Main Entry Point

Run the enrichment orchestrator service.
"""

import argparse
from pathlib import Path

import uvicorn

from sceneflow.core.logging_config import LogLevel, get_logger, setup_logging
from sceneflow.core.settings import get_settings


def main():
    """Main entry point for the Sceneflow service."""
    parser = argparse.ArgumentParser(
        description="Sceneflow - scene enrichment orchestration for script analyses"
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Interface for the API server (default: from settings)"
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port for the API server (default: from settings)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to orchestrator configuration file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--no-resume",
        action="store_true",
        help="Do not resume unfinished jobs at startup"
    )

    args = parser.parse_args()

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.config:
        overrides["config_path"] = args.config
    if args.no_resume:
        overrides["resume_on_startup"] = False
    settings = get_settings().model_copy(update=overrides)

    level = LogLevel.DEBUG if args.verbose else LogLevel.from_name(settings.log_level)
    setup_logging(
        level=level,
        log_file=Path(settings.log_file) if settings.log_file else None,
        verbose=args.verbose,
    )

    logger = get_logger("main")
    logger.info(f"Starting Sceneflow on http://{settings.host}:{settings.port}")

    from sceneflow.api.main import create_app
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level="warning",
    )


if __name__ == "__main__":
    main()
