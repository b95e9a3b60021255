"""API entry point - FastAPI application for clip selection and merging."""

import argparse
import logging
import logging.config
import sys
from contextlib import asynccontextmanager

from pythonjsonlogger import jsonlogger


# A custom formatter to produce JSON logs
class JsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname.lower()
        log_record["name"] = record.name
        log_record["service"] = "reelcut"


def setup_logging():
    """Configure structured JSON logging on the root logger.

    Alembic and Uvicorn loggers get the same handler so migration and access
    logs come out as JSON too.
    """
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
        },
        "handlers": {
            "json_handler": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "handlers": ["json_handler"],
            "level": "INFO",
        },
        "loggers": {
            "alembic": {
                "handlers": ["json_handler"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn": {
                "handlers": ["json_handler"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["json_handler"],
                "level": "INFO",
                "propagate": False,
            },
            # Request logs from the OpenAI client are too chatty at INFO
            "httpx": {
                "handlers": ["json_handler"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(log_config)


# Set up logging immediately when the module is imported, BEFORE any other imports
setup_logging()

from fastapi import FastAPI  # noqa: E402

from reelcut.api.asset_controller import router as asset_router  # noqa: E402
from reelcut.api.clip_controller import router as clip_router  # noqa: E402
from reelcut.api.source_video_controller import (  # noqa: E402
    router as source_video_router,
)
from reelcut.config.settings import configure  # noqa: E402
from reelcut.database.connection import configure_engine  # noqa: E402
from reelcut.database.migrations import run_migrations  # noqa: E402
from reelcut.services.merge_worker_pool import MergeWorkerPool  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application lifespan events."""
    logger.info("API startup")

    settings = configure(getattr(app.state, "config_path", None))
    logger.info(
        f"Configuration loaded: upload_root={settings.upload_root} "
        f"temp_root={settings.temp_root} "
        f"max_concurrent_merges={settings.max_concurrent_merges}"
    )

    logger.info("Running migrations...")
    configure_engine(settings.database_url)
    run_migrations(settings.database_url)

    app.state.merge_pool = MergeWorkerPool(
        max_concurrent_merges=settings.max_concurrent_merges
    )
    logger.info("API startup complete")

    yield

    logger.info("API shutting down...")
    app.state.merge_pool.shutdown(wait=True, cancel_running=True)
    logger.info("API shutdown complete")


def create_app(config_path: str | None = None) -> FastAPI:
    """Create FastAPI application."""
    app = FastAPI(
        title="Reelcut - Transcript Clip API",
        description="Select clips from transcripts and merge them into one video",
        version="1.0.0",
        lifespan=lifespan,
    )

    if config_path:
        app.state.config_path = config_path

    app.include_router(clip_router, prefix="/v1")
    app.include_router(asset_router, prefix="/v1")
    app.include_router(source_video_router, prefix="/v1")
    logger.info("Routers included successfully")

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "service": "reelcut"}

    return app


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Reelcut API Service")
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file (default: ~/.reelcut/config.json, "
        "/etc/reelcut/config.json or REELCUT_CONFIG_PATH env var)",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args()


def main():
    """Run the API with uvicorn."""
    import uvicorn

    args = parse_args()
    uvicorn.run(create_app(args.config), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
else:
    # For uvicorn - check sys.argv for config
    config_path = None
    if "--config" in sys.argv:
        config_idx = sys.argv.index("--config")
        if config_idx + 1 < len(sys.argv):
            config_path = sys.argv[config_idx + 1]

    app = create_app(config_path)
