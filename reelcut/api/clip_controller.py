import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..api.errors import to_http_exception
from ..api.schemas import (
    ClipSelectionRequestSchema,
    ClipSelectionResponseSchema,
    FinalAssetResponseSchema,
    MergeRequestSchema,
)
from ..api.serializers import asset_to_schema
from ..config.settings import Settings, get_settings
from ..database.connection import get_db
from ..domain.exceptions import ReelcutError
from ..domain.models import (
    AssetInfo,
    OwnerContext,
    SourceTranscript,
    TranscriptSegment,
)
from ..repositories.final_asset_repository import SqlFinalAssetRepository
from ..repositories.source_video_repository import SqlSourceVideoRepository
from ..services.clip_selection_orchestrator import ClipSelectionOrchestrator
from ..services.generation_client import GenerationClient, OpenAIChatService
from ..services.media_processor import FFmpegMediaProcessor
from ..services.merge_orchestrator import MergeOrchestrator
from ..services.merge_worker_pool import MergeWorkerPool
from ..services.path_resolver import PathResolver
from ..services.retry_policy import RetryPolicy
from ..services.storage_service import S3StorageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clips", tags=["clips"])


def get_selection_orchestrator(
    settings: Settings = Depends(get_settings),
) -> ClipSelectionOrchestrator:
    """Dependency injection for ClipSelectionOrchestrator."""
    try:
        service = OpenAIChatService(
            api_key=settings.openai_api_key, model=settings.generation_model
        )
    except ValueError as e:
        logger.error(f"Text generation is not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )

    return ClipSelectionOrchestrator(
        GenerationClient(service, RetryPolicy()),
        max_tokens_per_chunk=settings.max_tokens_per_chunk,
        reserved_tokens=settings.reserved_tokens,
        rolling_context_limit=settings.rolling_context_limit,
    )


def get_merge_orchestrator(
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MergeOrchestrator:
    """Dependency injection for a request-scoped MergeOrchestrator."""
    try:
        storage = S3StorageService(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            public_base_url=settings.s3_public_base_url,
        )
    except ValueError as e:
        logger.error(f"Storage is not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )

    return MergeOrchestrator(
        source_repo=SqlSourceVideoRepository(session),
        asset_repo=SqlFinalAssetRepository(session),
        path_resolver=PathResolver(settings.upload_root, settings.legacy_prefixes),
        media_processor=FFmpegMediaProcessor(
            settings.ffmpeg_bin, settings.ffprobe_bin
        ),
        storage=storage,
        temp_root=settings.temp_root,
        timeout_seconds=settings.merge_timeout_seconds,
        key_prefix=settings.storage_key_prefix,
    )


def get_merge_pool(request: Request) -> MergeWorkerPool:
    """Return the application-wide merge pool."""
    pool = getattr(request.app.state, "merge_pool", None)
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Merge worker pool is not running",
        )
    return pool


@router.post("/select", response_model=ClipSelectionResponseSchema)
def select_clips(
    body: ClipSelectionRequestSchema,
    orchestrator: ClipSelectionOrchestrator = Depends(get_selection_orchestrator),
) -> ClipSelectionResponseSchema:
    """Select clips from transcripts for a free-text instruction.

    Always answers with a clip list; ``usedFallback`` tells the client that
    the clips were synthesized because no valid selection was produced.
    """
    transcripts = [
        SourceTranscript(
            source_id=transcript.video_id,
            duration=transcript.duration,
            segments=tuple(
                TranscriptSegment(
                    text=segment.text,
                    start_time=segment.start_time,
                    end_time=segment.end_time,
                    speaker=segment.speaker,
                    source_id=transcript.video_id,
                )
                for segment in transcript.segments
            ),
        )
        for transcript in body.transcripts
    ]

    try:
        result = orchestrator.select_clips(transcripts, body.instruction)
    except ReelcutError as e:
        raise to_http_exception(e)

    return ClipSelectionResponseSchema.model_validate(
        {
            "clips": [clip.to_dict() for clip in result.clips],
            "usedFallback": result.used_fallback,
        }
    )


@router.post(
    "/merge",
    response_model=FinalAssetResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def merge_clips(
    body: MergeRequestSchema,
    orchestrator: MergeOrchestrator = Depends(get_merge_orchestrator),
    pool: MergeWorkerPool = Depends(get_merge_pool),
) -> FinalAssetResponseSchema:
    """Trim, concatenate and publish clips as one video."""
    owner = OwnerContext(
        owner_id=body.user_id, email=body.user_email, name=body.user_name
    )
    clips = [clip.model_dump(by_alias=True) for clip in body.clips]
    asset_info = AssetInfo(title=body.title, description=body.description)

    try:
        future = pool.submit(clips, owner, asset_info, orchestrator=orchestrator)
        asset = await asyncio.wrap_future(future)
    except ReelcutError as e:
        raise to_http_exception(e)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return asset_to_schema(asset)
