from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class TranscriptSegment:
    """A timestamped span of transcript text.

    Attributes:
        text: Spoken text of the segment
        start_time: Start in seconds from the beginning of the source
        end_time: End in seconds from the beginning of the source
        speaker: Optional speaker label
        source_id: Source video the segment belongs to
    """

    text: str
    start_time: float
    end_time: float
    speaker: str | None = None
    source_id: str | None = None

    def to_dict(self) -> dict:
        """Serialize with the field names the generation service sees."""
        data = {
            "videoId": self.source_id,
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.speaker is not None:
            data["speaker"] = self.speaker
        return data


@dataclass(frozen=True)
class SourceTranscript:
    """All segments for one source video, plus its duration."""

    source_id: str
    duration: float
    segments: tuple[TranscriptSegment, ...] = ()


@dataclass(frozen=True)
class SelectionConstraint:
    """Numeric constraints derived once from a free-text instruction."""

    explicit_duration_seconds: float | None = None
    require_from_end: bool = False


@dataclass(frozen=True)
class CandidateClip:
    """Unvalidated clip proposal returned by the generation service."""

    source_id: str
    transcript_text: str
    start_time: float
    end_time: float
    notes: str | None = None

    def to_dict(self) -> dict:
        data = {
            "videoId": self.source_id,
            "transcriptText": self.transcript_text,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.notes:
            data["notes"] = self.notes
        return data


@dataclass(frozen=True)
class ValidatedClip:
    """Clip that passed every positional and duration check."""

    source_id: str
    transcript_text: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> dict:
        return {
            "videoId": self.source_id,
            "transcriptText": self.transcript_text,
            "startTime": round(self.start_time, 2),
            "endTime": round(self.end_time, 2),
        }


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of a clip selection request.

    Attributes:
        clips: Validated clips in playback order
        used_fallback: True when the clips were synthesized instead of selected
    """

    clips: list[ValidatedClip]
    used_fallback: bool = False


@dataclass(frozen=True)
class OwnerContext:
    """The user a merge job is run for."""

    owner_id: str
    email: str = ""
    name: str = ""


@dataclass(frozen=True)
class AssetInfo:
    """User-supplied presentation fields for a merged asset."""

    title: str | None = None
    description: str = ""


class SourceVideo:
    """Domain model for an uploaded source video - pure business object."""

    def __init__(
        self,
        video_id: str,
        owner_id: str,
        title: str,
        video_url: str,
        thumbnail_url: str | None = None,
        duration: float | None = None,
        file_size: int | None = None,
        mime_type: str | None = None,
        status: str = "uploaded",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.video_id = video_id
        self.owner_id = owner_id
        self.title = title
        self.video_url = video_url
        self.thumbnail_url = thumbnail_url
        self.duration = duration
        self.file_size = file_size
        self.mime_type = mime_type
        self.status = status
        self.created_at = created_at
        self.updated_at = updated_at


@dataclass(frozen=True)
class SourceClip:
    """One source range that went into a merged asset."""

    video_id: str
    start_time: float
    end_time: float
    duration: float
    title: str | None = None
    thumbnail: str | None = None
    original_video_title: str | None = None

    def to_dict(self) -> dict:
        return {
            "videoId": self.video_id,
            "title": self.title,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "thumbnail": self.thumbnail,
            "originalVideoTitle": self.original_video_title,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SourceClip":
        return cls(
            video_id=data["videoId"],
            start_time=float(data["startTime"]),
            end_time=float(data["endTime"]),
            duration=float(data["duration"]),
            title=data.get("title"),
            thumbnail=data.get("thumbnail"),
            original_video_title=data.get("originalVideoTitle"),
        )


@dataclass(frozen=True)
class MergeStats:
    """Processing statistics recorded with a merged asset."""

    total_clips: int
    total_duration: float
    processing_time_ms: int
    merge_date: datetime

    def to_dict(self) -> dict:
        return {
            "totalClips": self.total_clips,
            "totalDuration": self.total_duration,
            "processingTimeMs": self.processing_time_ms,
            "mergeDate": self.merge_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MergeStats":
        return cls(
            total_clips=int(data["totalClips"]),
            total_duration=float(data["totalDuration"]),
            processing_time_ms=int(data["processingTimeMs"]),
            merge_date=datetime.fromisoformat(data["mergeDate"]),
        )


class FinalAsset:
    """Domain model for a merged output video.

    Created once when a merge job succeeds and never changed afterwards.
    """

    def __init__(
        self,
        asset_id: str,
        job_id: str,
        owner_id: str,
        storage_url: str,
        thumbnail_url: str,
        duration_seconds: float,
        source_clips: list[SourceClip],
        stats: MergeStats,
        title: str = "",
        description: str = "",
        owner_email: str = "",
        owner_name: str = "",
        created_at: datetime | None = None,
    ):
        self.asset_id = asset_id
        self.job_id = job_id
        self.owner_id = owner_id
        self.storage_url = storage_url
        self.thumbnail_url = thumbnail_url
        self.duration_seconds = duration_seconds
        self.source_clips = list(source_clips)
        self.stats = stats
        self.title = title
        self.description = description
        self.owner_email = owner_email
        self.owner_name = owner_name
        self.created_at = created_at


class MergeJob:
    """Domain model for one merge run.

    Status moves forward through the pipeline states and ends in
    ``done``, ``failed`` or ``cancelled``.
    """

    STATUSES = (
        "pending",
        "resolving",
        "trimming",
        "concatenating",
        "verifying",
        "thumbnailing",
        "uploading",
        "persisting",
        "done",
        "failed",
        "cancelled",
    )
    TERMINAL_STATUSES = ("done", "failed", "cancelled")

    def __init__(
        self,
        job_id: str,
        clips: list,
        owner_id: str,
        created_at: datetime | None = None,
        status: str = "pending",
        error: str | None = None,
    ):
        self.job_id = job_id
        self.clips = list(clips)
        self.owner_id = owner_id
        self.created_at = created_at or datetime.utcnow()
        self.status = status
        self.error = error
        self.completed_at: datetime | None = None

    def is_terminal(self) -> bool:
        """Check if the job has finished, successfully or not."""
        return self.status in self.TERMINAL_STATUSES

    def advance(self, status: str) -> None:
        """Move the job to the next pipeline state."""
        if status not in self.STATUSES:
            raise ValueError(f"Unknown merge job status: {status}")
        if self.is_terminal():
            raise ValueError(
                f"Merge job {self.job_id} already finished with status {self.status}"
            )
        self.status = status

    def complete(self) -> None:
        """Mark job as done."""
        self.advance("done")
        self.completed_at = datetime.utcnow()

    def fail(self, error: str) -> None:
        """Mark job as failed with error message."""
        self.status = "failed"
        self.error = error
        self.completed_at = datetime.utcnow()

    def cancel(self) -> None:
        """Mark job as cancelled."""
        self.status = "cancelled"
        self.completed_at = datetime.utcnow()


@dataclass
class RollingContext:
    """Candidate segments carried from earlier chunks to later ones."""

    candidates: list[CandidateClip] = field(default_factory=list)
    limit: int = 30

    def extended(self, new_candidates: list[CandidateClip]) -> "RollingContext":
        """Return a new context with the candidates appended, keeping the newest."""
        combined = self.candidates + list(new_candidates)
        if self.limit > 0:
            combined = combined[-self.limit :]
        return RollingContext(candidates=combined, limit=self.limit)

    def to_payload(self) -> list[dict]:
        return [candidate.to_dict() for candidate in self.candidates]

    def __len__(self) -> int:
        return len(self.candidates)
