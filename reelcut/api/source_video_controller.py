import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..api.schemas import SourceVideoCreateSchema, SourceVideoResponseSchema
from ..api.serializers import source_video_to_schema
from ..database.connection import get_db
from ..domain.models import SourceVideo
from ..repositories.interfaces import SourceVideoRepository
from ..repositories.source_video_repository import SqlSourceVideoRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/source-videos", tags=["source-videos"])


def get_source_video_repository(
    session: Session = Depends(get_db),
) -> SourceVideoRepository:
    """Dependency injection for SourceVideoRepository."""
    return SqlSourceVideoRepository(session)


@router.post(
    "/", response_model=SourceVideoResponseSchema, status_code=status.HTTP_201_CREATED
)
async def register_source_video(
    video_data: SourceVideoCreateSchema,
    repository: SourceVideoRepository = Depends(get_source_video_repository),
) -> SourceVideoResponseSchema:
    """Register an uploaded video so its clips can be merged."""
    video_id = video_data.video_id or str(uuid.uuid4())
    if video_data.video_id and repository.find_by_id(video_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Source video already exists: {video_id}",
        )

    video = SourceVideo(
        video_id=video_id,
        owner_id=video_data.user_id,
        title=video_data.title,
        video_url=video_data.video_url,
        thumbnail_url=video_data.thumbnail_url,
        duration=video_data.duration,
        file_size=video_data.file_size,
        mime_type=video_data.mime_type,
        status=video_data.status,
    )
    saved = repository.save(video)
    logger.info(f"Registered source video {saved.video_id} for {saved.owner_id}")
    return source_video_to_schema(saved)


@router.get("/{video_id}", response_model=SourceVideoResponseSchema)
async def get_source_video(
    video_id: str,
    repository: SourceVideoRepository = Depends(get_source_video_repository),
) -> SourceVideoResponseSchema:
    """Get source video by ID."""
    video = repository.find_by_id(video_id)
    if not video:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Source video not found"
        )
    return source_video_to_schema(video)


@router.get("/", response_model=list[SourceVideoResponseSchema])
async def list_source_videos(
    user_id: str = Query(..., alias="userId"),
    repository: SourceVideoRepository = Depends(get_source_video_repository),
) -> list[SourceVideoResponseSchema]:
    """List an owner's source videos."""
    return [source_video_to_schema(v) for v in repository.find_by_owner(user_id)]
