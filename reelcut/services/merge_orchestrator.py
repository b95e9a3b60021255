"""Merge pipeline: resolve clip sources, trim and concatenate, verify, publish.

States for one job::

    resolving -> trimming/concatenating -> verifying -> thumbnailing
              -> uploading -> persisting -> done

Any state can end in ``failed`` (or ``cancelled``). The job's temp directory is
removed on every exit path.
"""

import logging
import math
import os
import shutil
import threading
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..domain.exceptions import (
    EmptyOutputError,
    InvalidClipError,
    MediaProcessingError,
    MergeCancelledError,
    SourceNotFoundError,
    UpstreamFailureError,
)
from ..domain.models import (
    AssetInfo,
    FinalAsset,
    MergeJob,
    MergeStats,
    OwnerContext,
    SourceClip,
    SourceVideo,
)
from ..repositories.interfaces import FinalAssetRepository, SourceVideoRepository
from .media_processor import FFmpegMediaProcessor, MergeInput
from .path_resolver import PathResolver
from .storage_service import StorageService

logger = logging.getLogger(__name__)

DEFAULT_MERGE_TIMEOUT_SECONDS = 30 * 60
DEFAULT_KEY_PREFIX = "merged-videos"


@dataclass(frozen=True)
class ClipRequest:
    """One requested source range, normalized from the caller's payload."""

    source_id: str
    start_time: float
    end_time: float
    title: str | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class ResolvedClip:
    """A clip request together with its source record and local file."""

    request: ClipRequest
    source: SourceVideo
    path: str


def _field(clip, *names):
    """Read the first present attribute or key out of a dict or object."""
    for name in names:
        if isinstance(clip, dict):
            if name in clip:
                return clip[name]
        elif hasattr(clip, name):
            return getattr(clip, name)
    return None


def _as_seconds(value, source_id: str, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidClipError(source_id, f"{name} must be a number, got {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidClipError(
            source_id, f"{name} must be a number, got {value!r}"
        ) from e
    if not math.isfinite(seconds):
        raise InvalidClipError(source_id, f"{name} must be finite, got {value!r}")
    return seconds


def normalize_clip(clip) -> ClipRequest:
    """Build a ClipRequest from a wire dict or a ValidatedClip-like object.

    Raises:
        InvalidClipError: If the source id is missing or the times are unusable
    """
    source_id = _field(clip, "videoId", "sourceId", "source_id", "video_id")
    if not source_id:
        raise InvalidClipError("<missing>", "clip has no source id")
    source_id = str(source_id)

    start = _as_seconds(
        _field(clip, "startTime", "start_time"), source_id, "startTime"
    )
    end = _as_seconds(_field(clip, "endTime", "end_time"), source_id, "endTime")
    if start < 0:
        raise InvalidClipError(source_id, f"startTime {start} is negative")
    if start >= end:
        raise InvalidClipError(
            source_id, f"startTime {start} must be before endTime {end}"
        )

    return ClipRequest(
        source_id=source_id,
        start_time=start,
        end_time=end,
        title=_field(clip, "title"),
    )


class MergeOrchestrator:
    """Turns an ordered clip list into one published, recorded video."""

    def __init__(
        self,
        source_repo: SourceVideoRepository,
        asset_repo: FinalAssetRepository,
        path_resolver: PathResolver,
        media_processor: FFmpegMediaProcessor,
        storage: StorageService,
        temp_root: str,
        timeout_seconds: float = DEFAULT_MERGE_TIMEOUT_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        self.source_repo = source_repo
        self.asset_repo = asset_repo
        self.path_resolver = path_resolver
        self.media_processor = media_processor
        self.storage = storage
        self.temp_root = temp_root
        self.timeout_seconds = timeout_seconds
        self.key_prefix = key_prefix.strip("/")

    def merge_clips(
        self,
        clips: Sequence,
        owner: OwnerContext,
        asset_info: AssetInfo | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FinalAsset:
        """Merge clips into one asset. See ``run_job`` for the failure modes."""
        job = self.create_job(clips, owner)
        return self.run_job(job, owner, asset_info, cancel_event)

    def create_job(self, clips: Sequence, owner: OwnerContext) -> MergeJob:
        """Create a pending merge job with a fresh identifier."""
        if not clips:
            raise ValueError("At least one clip is required to merge")
        return MergeJob(job_id=str(uuid.uuid4()), clips=clips, owner_id=owner.owner_id)

    def run_job(
        self,
        job: MergeJob,
        owner: OwnerContext,
        asset_info: AssetInfo | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FinalAsset:
        """Run every pipeline state for a job.

        Raises:
            SourceNotFoundError: If a source record or file is missing
            InvalidClipError: If a clip has unusable timestamps
            MergeTimeoutError: If ffmpeg exceeds the timeout
            MediaProcessingError: If ffmpeg or ffprobe fails
            EmptyOutputError: If the merged file is empty or has no duration
            UpstreamFailureError: If upload or persistence fails
            MergeCancelledError: If the cancel event is set
        """
        asset_info = asset_info or AssetInfo()
        started = time.monotonic()
        work_dir = os.path.join(self.temp_root, job.job_id)
        output_path = os.path.join(work_dir, f"merged_{job.job_id}.mp4")
        thumbnail_path = os.path.join(work_dir, f"thumb_{job.job_id}.jpg")

        logger.info(f"[{job.job_id}] Starting merge of {len(job.clips)} clips")

        try:
            os.makedirs(work_dir, exist_ok=True)

            self._enter(job, "resolving", cancel_event)
            resolved = [self._resolve_clip(job, clip) for clip in job.clips]

            self._enter(job, "trimming", cancel_event)
            inputs = [
                MergeInput(
                    path=item.path,
                    start_time=item.request.start_time,
                    end_time=item.request.end_time,
                )
                for item in resolved
            ]
            expected_duration = sum(item.request.duration for item in resolved)

            self._enter(job, "concatenating", cancel_event)
            self.media_processor.merge(
                inputs,
                output_path,
                self.timeout_seconds,
                job_id=job.job_id,
                cancel_event=cancel_event,
                on_progress=self._progress_logger(job.job_id, expected_duration),
            )

            self._enter(job, "verifying", cancel_event)
            duration = self._verify_output(job, output_path)

            self._enter(job, "thumbnailing", cancel_event)
            local_thumbnail = self._extract_thumbnail(
                job, output_path, duration, thumbnail_path
            )

            self._enter(job, "uploading", cancel_event)
            storage_url, thumbnail_url = self._upload(
                job, owner, output_path, local_thumbnail, resolved
            )

            self._enter(job, "persisting", cancel_event)
            asset = self._build_asset(
                job,
                owner,
                asset_info,
                resolved,
                storage_url,
                thumbnail_url,
                duration,
                processing_time_ms=int((time.monotonic() - started) * 1000),
            )
            asset = self._persist(job, asset)

            job.complete()
            logger.info(
                f"[{job.job_id}] Merge completed: asset={asset.asset_id} "
                f"duration={duration:.2f}s"
            )
            return asset

        except MergeCancelledError:
            job.cancel()
            logger.warning(f"[{job.job_id}] Merge cancelled during {job.status}")
            raise
        except Exception as e:
            failed_state = job.status
            job.fail(str(e))
            logger.error(f"[{job.job_id}] Merge failed during {failed_state}: {e}")
            raise
        finally:
            self._cleanup(job.job_id, work_dir)

    def _enter(
        self, job: MergeJob, status: str, cancel_event: threading.Event | None
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise MergeCancelledError(job.job_id)
        job.advance(status)
        logger.info(f"[{job.job_id}] {status}")

    def _resolve_clip(self, job: MergeJob, clip) -> ResolvedClip:
        request = normalize_clip(clip)

        source = self.source_repo.find_by_id(request.source_id)
        if source is None:
            raise SourceNotFoundError(request.source_id)

        if source.duration and request.end_time > source.duration:
            raise InvalidClipError(
                request.source_id,
                f"endTime {request.end_time} exceeds source duration "
                f"{source.duration}",
            )

        path = self.path_resolver.resolve(source.video_url)
        logger.info(
            f"[{job.job_id}] Clip {request.source_id} "
            f"{request.start_time:.2f}-{request.end_time:.2f}s -> {path}"
        )
        return ResolvedClip(request=request, source=source, path=path)

    def _progress_logger(self, job_id: str, expected_duration: float):
        reported = {"decile": -1}

        def on_progress(seconds: float) -> None:
            if expected_duration <= 0:
                return
            percent = min(100.0, seconds / expected_duration * 100)
            decile = int(percent // 10)
            if decile > reported["decile"]:
                reported["decile"] = decile
                logger.info(f"[{job_id}] Processing: {percent:.0f}% done")

        return on_progress

    def _verify_output(self, job: MergeJob, output_path: str) -> float:
        """Check the merged file exists, is non-empty and has a duration."""
        if not os.path.exists(output_path):
            raise EmptyOutputError(job.job_id, output_path, 0, 0.0)

        size = os.path.getsize(output_path)
        if size == 0:
            raise EmptyOutputError(job.job_id, output_path, 0, 0.0)

        probe = self.media_processor.probe(output_path, job_id=job.job_id)
        if probe.duration_seconds <= 0:
            raise EmptyOutputError(
                job.job_id, output_path, size, probe.duration_seconds
            )

        logger.info(
            f"[{job.job_id}] Output verified: {size} bytes, "
            f"{probe.duration_seconds:.2f}s"
        )
        return probe.duration_seconds

    def _extract_thumbnail(
        self, job: MergeJob, output_path: str, duration: float, thumbnail_path: str
    ) -> str | None:
        """Grab the midpoint frame; returns None when extraction fails."""
        try:
            return self.media_processor.extract_frame(
                output_path, duration / 2, thumbnail_path, job_id=job.job_id
            )
        except MediaProcessingError as e:
            logger.warning(
                f"[{job.job_id}] Thumbnail generation failed, "
                f"using first clip thumbnail: {e}"
            )
            return None

    def _upload(
        self,
        job: MergeJob,
        owner: OwnerContext,
        output_path: str,
        local_thumbnail: str | None,
        resolved: list[ResolvedClip],
    ) -> tuple[str, str]:
        base_key = f"{self.key_prefix}/{owner.owner_id}"

        storage_url = self.storage.put(
            output_path, f"{base_key}/merged_{job.job_id}.mp4", "video/mp4"
        )
        logger.info(f"[{job.job_id}] Uploaded merged video to {storage_url}")

        if local_thumbnail is None:
            return storage_url, resolved[0].source.thumbnail_url or ""

        thumbnail_url = self.storage.put(
            local_thumbnail, f"{base_key}/thumbs/thumb_{job.job_id}.jpg", "image/jpeg"
        )
        logger.info(f"[{job.job_id}] Uploaded thumbnail to {thumbnail_url}")
        return storage_url, thumbnail_url

    def _build_asset(
        self,
        job: MergeJob,
        owner: OwnerContext,
        asset_info: AssetInfo,
        resolved: list[ResolvedClip],
        storage_url: str,
        thumbnail_url: str,
        duration: float,
        processing_time_ms: int,
    ) -> FinalAsset:
        merge_date = datetime.utcnow()
        source_clips = [
            SourceClip(
                video_id=item.request.source_id,
                start_time=item.request.start_time,
                end_time=item.request.end_time,
                duration=item.request.duration,
                title=item.request.title or item.source.title,
                thumbnail=item.source.thumbnail_url,
                original_video_title=item.source.title,
            )
            for item in resolved
        ]
        stats = MergeStats(
            total_clips=len(source_clips),
            total_duration=sum(clip.duration for clip in source_clips),
            processing_time_ms=processing_time_ms,
            merge_date=merge_date,
        )
        return FinalAsset(
            asset_id=str(uuid.uuid4()),
            job_id=job.job_id,
            owner_id=owner.owner_id,
            storage_url=storage_url,
            thumbnail_url=thumbnail_url,
            duration_seconds=duration,
            source_clips=source_clips,
            stats=stats,
            title=asset_info.title or f"Merged Video {merge_date:%Y-%m-%d}",
            description=asset_info.description or "",
            owner_email=owner.email,
            owner_name=owner.name,
        )

    def _persist(self, job: MergeJob, asset: FinalAsset) -> FinalAsset:
        try:
            return self.asset_repo.create(asset)
        except (SQLAlchemyError, ValueError) as e:
            raise UpstreamFailureError(
                "persistence", f"could not record asset for job {job.job_id}: {e}"
            ) from e

    def _cleanup(self, job_id: str, work_dir: str) -> None:
        if not os.path.exists(work_dir):
            return
        try:
            shutil.rmtree(work_dir)
            logger.info(f"[{job_id}] Cleaned up temporary files")
        except OSError as e:
            logger.error(f"[{job_id}] Error cleaning up {work_dir}: {e}")
