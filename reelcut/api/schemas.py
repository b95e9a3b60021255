from datetime import datetime

from pydantic import BaseModel, Field


class ErrorResponseSchema(BaseModel):
    """Schema for error responses.

    ``detail`` is the exception message; ``error_code`` is stable and
    suitable for programmatic handling.
    """

    detail: str = Field(
        ...,
        description="Human-readable error message describing what went wrong",
        examples=["Could not resolve path for: uploads/a.mp4"],
    )
    error_code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["SOURCE_NOT_FOUND"],
    )


class TranscriptSegmentSchema(BaseModel):
    """One timestamped transcript segment."""

    text: str = Field(..., description="Spoken text of the segment")
    start_time: float = Field(
        ..., alias="startTime", ge=0, description="Segment start in seconds"
    )
    end_time: float = Field(
        ..., alias="endTime", ge=0, description="Segment end in seconds"
    )
    speaker: str | None = Field(None, description="Optional speaker label")

    class Config:
        populate_by_name = True


class SourceTranscriptSchema(BaseModel):
    """Transcript of one source video."""

    video_id: str = Field(..., alias="videoId", description="Source video identifier")
    duration: float = Field(..., gt=0, description="Source duration in seconds")
    segments: list[TranscriptSegmentSchema] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ClipSelectionRequestSchema(BaseModel):
    """Request body for clip selection.

    The first transcript is the primary source; fallback clips are taken
    from it.
    """

    transcripts: list[SourceTranscriptSchema] = Field(..., min_length=1)
    instruction: str | None = Field(
        None,
        description="Free-text request for the clips",
        examples=["give me an 8 second clip from the end"],
    )


class ClipSchema(BaseModel):
    """A validated clip."""

    video_id: str = Field(..., alias="videoId")
    transcript_text: str = Field("", alias="transcriptText")
    start_time: float = Field(..., alias="startTime")
    end_time: float = Field(..., alias="endTime")

    class Config:
        populate_by_name = True


class ClipSelectionResponseSchema(BaseModel):
    """Selected clips plus whether they were synthesized as a fallback."""

    clips: list[ClipSchema]
    used_fallback: bool = Field(..., alias="usedFallback")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "clips": [
                    {
                        "videoId": "vid-1",
                        "transcriptText": "and that is how it ends",
                        "startTime": 92.0,
                        "endTime": 100.0,
                    }
                ],
                "usedFallback": False,
            }
        }


class MergeClipSchema(BaseModel):
    """One clip to merge, in playback order."""

    video_id: str = Field(..., alias="videoId")
    start_time: float = Field(..., alias="startTime")
    end_time: float = Field(..., alias="endTime")
    title: str | None = None

    class Config:
        populate_by_name = True


class MergeRequestSchema(BaseModel):
    """Request body for merging clips into one video."""

    clips: list[MergeClipSchema] = Field(..., min_length=1)
    user_id: str = Field(..., alias="userId", description="Owner of the merged video")
    user_email: str = Field("", alias="userEmail")
    user_name: str = Field("", alias="userName")
    title: str | None = Field(None, description="Title of the merged video")
    description: str = Field("", description="Description of the merged video")

    class Config:
        populate_by_name = True


class SourceClipSchema(BaseModel):
    """A source range recorded on a merged video."""

    video_id: str = Field(..., alias="videoId")
    title: str | None = None
    start_time: float = Field(..., alias="startTime")
    end_time: float = Field(..., alias="endTime")
    duration: float
    thumbnail: str | None = None
    original_video_title: str | None = Field(None, alias="originalVideoTitle")

    class Config:
        populate_by_name = True
        from_attributes = True


class MergeStatsSchema(BaseModel):
    total_clips: int = Field(..., alias="totalClips")
    total_duration: float = Field(..., alias="totalDuration")
    processing_time_ms: int = Field(..., alias="processingTimeMs")
    merge_date: datetime = Field(..., alias="mergeDate")

    class Config:
        populate_by_name = True
        from_attributes = True


class FinalAssetResponseSchema(BaseModel):
    """Schema for merged video API responses."""

    asset_id: str = Field(..., alias="assetId")
    job_id: str = Field(..., alias="jobId")
    user_id: str = Field(..., alias="userId")
    user_email: str = Field("", alias="userEmail")
    user_name: str = Field("", alias="userName")
    title: str
    description: str = ""
    s3_url: str = Field(..., alias="s3Url")
    thumbnail_url: str = Field("", alias="thumbnailUrl")
    duration: float = Field(..., description="Probed duration in seconds")
    source_clips: list[SourceClipSchema] = Field(..., alias="sourceClips")
    stats: MergeStatsSchema
    created_at: datetime | None = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True


class SourceVideoCreateSchema(BaseModel):
    """Schema for registering an uploaded source video."""

    video_id: str | None = Field(
        None, alias="videoId", description="Identifier; generated when omitted"
    )
    user_id: str = Field(..., alias="userId")
    title: str = Field(..., min_length=1)
    video_url: str = Field(
        ...,
        alias="videoUrl",
        description="Remote URL or stored local path of the uploaded file",
        examples=["uploads/1716111111-interview.mp4"],
    )
    thumbnail_url: str | None = Field(None, alias="thumbnailUrl")
    duration: float | None = Field(None, ge=0, description="Duration in seconds")
    file_size: int | None = Field(None, alias="fileSize", ge=0)
    mime_type: str | None = Field(None, alias="mimeType")
    status: str = "uploaded"

    class Config:
        populate_by_name = True


class SourceVideoResponseSchema(BaseModel):
    """Schema for source video API responses."""

    video_id: str = Field(..., alias="videoId")
    user_id: str = Field(..., alias="userId")
    title: str
    video_url: str = Field(..., alias="videoUrl")
    thumbnail_url: str | None = Field(None, alias="thumbnailUrl")
    duration: float | None = None
    file_size: int | None = Field(None, alias="fileSize")
    mime_type: str | None = Field(None, alias="mimeType")
    status: str
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    class Config:
        populate_by_name = True
