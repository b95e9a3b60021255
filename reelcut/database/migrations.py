import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def run_migrations(database_url: str | None = None):
    """Run database migrations on startup."""
    logger.info("Starting database migrations...")

    try:
        # Explicit URL, then environment, then default
        database_url = database_url or os.getenv(
            "DATABASE_URL", "sqlite:///./data/reelcut.db"
        )

        # Ensure data directory exists for SQLite only
        if database_url.startswith("sqlite"):
            db_path = database_url.replace("sqlite:///", "")
            db_dir = os.path.dirname(db_path)
            if db_dir and db_dir != ".":
                os.makedirs(db_dir, exist_ok=True)

        # Get alembic config
        alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))

        # Override the database URL in alembic config
        alembic_cfg.set_main_option("sqlalchemy.url", database_url)

        # Run migrations
        db_type = "PostgreSQL" if database_url.startswith("postgresql") else "SQLite"
        logger.info(f"Running alembic migrations ({db_type})...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic upgrade completed")

        logger.info("Database migrations completed successfully")

    except Exception as e:
        logger.error(f"Migration failed: {e}")
        raise
