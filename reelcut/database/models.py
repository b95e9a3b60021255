from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from .connection import Base


class SourceVideo(Base):
    __tablename__ = "source_videos"

    video_id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    video_url = Column(String, nullable=False)  # Remote URL or stored local path
    thumbnail_url = Column(String)
    duration = Column(Float)  # Duration in seconds
    file_size = Column(Integer)  # File size in bytes
    mime_type = Column(String)
    status = Column(String, nullable=False, default="uploaded", index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class FinalAsset(Base):
    """SQLAlchemy entity for merged output videos. Rows are never updated."""

    __tablename__ = "final_assets"

    asset_id = Column(String, primary_key=True)
    job_id = Column(String, nullable=False, unique=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    owner_email = Column(String, nullable=False, default="")
    owner_name = Column(String, nullable=False, default="")
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    storage_url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=False, default="")
    duration_seconds = Column(Float, nullable=False)  # ffprobe-measured
    source_clips = Column(JSON, nullable=False)  # Ordered list of source ranges
    stats = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
