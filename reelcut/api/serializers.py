from ..api.schemas import FinalAssetResponseSchema, SourceVideoResponseSchema
from ..domain.models import FinalAsset, SourceVideo


def asset_to_schema(asset: FinalAsset) -> FinalAssetResponseSchema:
    """Convert FinalAsset domain model to its response schema."""
    return FinalAssetResponseSchema.model_validate(
        {
            "assetId": asset.asset_id,
            "jobId": asset.job_id,
            "userId": asset.owner_id,
            "userEmail": asset.owner_email,
            "userName": asset.owner_name,
            "title": asset.title,
            "description": asset.description,
            "s3Url": asset.storage_url,
            "thumbnailUrl": asset.thumbnail_url,
            "duration": asset.duration_seconds,
            "sourceClips": [clip.to_dict() for clip in asset.source_clips],
            "stats": asset.stats.to_dict(),
            "createdAt": asset.created_at,
        }
    )


def source_video_to_schema(video: SourceVideo) -> SourceVideoResponseSchema:
    """Convert SourceVideo domain model to its response schema."""
    return SourceVideoResponseSchema.model_validate(
        {
            "videoId": video.video_id,
            "userId": video.owner_id,
            "title": video.title,
            "videoUrl": video.video_url,
            "thumbnailUrl": video.thumbnail_url,
            "duration": video.duration,
            "fileSize": video.file_size,
            "mimeType": video.mime_type,
            "status": video.status,
            "createdAt": video.created_at,
            "updatedAt": video.updated_at,
        }
    )
