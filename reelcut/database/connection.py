import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Database URL - defaults to SQLite in data directory
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/reelcut.db")


def _create_engine(database_url: str):
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
    )


# Create engine
engine = _create_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def configure_engine(database_url: str) -> None:
    """Point new sessions at a different database."""
    global engine, DATABASE_URL
    if database_url == DATABASE_URL:
        return
    engine.dispose()
    DATABASE_URL = database_url
    engine = _create_engine(database_url)
    SessionLocal.configure(bind=engine)


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
