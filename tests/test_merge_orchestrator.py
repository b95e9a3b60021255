"""Test the merge pipeline."""

import os
import shutil
import subprocess
import threading
from unittest.mock import Mock

import pytest

from reelcut.domain.exceptions import (
    EmptyOutputError,
    InvalidClipError,
    MediaProcessingError,
    MergeCancelledError,
    MergeTimeoutError,
    SourceNotFoundError,
    UpstreamFailureError,
)
from reelcut.domain.models import AssetInfo, OwnerContext, SourceVideo, ValidatedClip
from reelcut.repositories.interfaces import FinalAssetRepository, SourceVideoRepository
from reelcut.services.media_processor import FFmpegMediaProcessor, MediaProbe
from reelcut.services.merge_orchestrator import MergeOrchestrator, normalize_clip
from reelcut.services.path_resolver import PathResolver
from reelcut.services.storage_service import StorageService

OWNER = OwnerContext(owner_id="user-1", email="ada@example.com", name="Ada")


class InMemorySourceRepo(SourceVideoRepository):
    def __init__(self, videos):
        self.videos = {video.video_id: video for video in videos}

    def save(self, video):
        self.videos[video.video_id] = video
        return video

    def find_by_id(self, video_id):
        return self.videos.get(video_id)

    def find_by_owner(self, owner_id):
        return [v for v in self.videos.values() if v.owner_id == owner_id]


class InMemoryAssetRepo(FinalAssetRepository):
    def __init__(self):
        self.assets = []

    def create(self, asset):
        if any(a.job_id == asset.job_id for a in self.assets):
            raise ValueError(f"Asset already recorded for merge job {asset.job_id}")
        self.assets.append(asset)
        return asset

    def find_by_id(self, asset_id):
        return next((a for a in self.assets if a.asset_id == asset_id), None)

    def find_by_job_id(self, job_id):
        return next((a for a in self.assets if a.job_id == job_id), None)

    def find_by_owner(self, owner_id):
        return [a for a in self.assets if a.owner_id == owner_id]


class FakeMediaProcessor:
    """Writes placeholder files instead of running ffmpeg."""

    def __init__(self, duration=10.0, output=b"mp4-bytes", thumbnail_error=None, merge_error=None):
        self.duration = duration
        self.output = output
        self.thumbnail_error = thumbnail_error
        self.merge_error = merge_error
        self.merged_inputs = None
        self.work_dirs = []

    def merge(self, inputs, output_path, timeout_seconds, job_id="-", cancel_event=None, on_progress=None):
        self.merged_inputs = list(inputs)
        self.timeout_seconds = timeout_seconds
        self.work_dirs.append(os.path.dirname(output_path))
        if self.merge_error:
            raise self.merge_error
        with open(output_path, "wb") as f:
            f.write(self.output)
        if on_progress:
            on_progress(self.duration / 2)

    def probe(self, path, job_id="-"):
        return MediaProbe(duration_seconds=self.duration, size_bytes=os.path.getsize(path))

    def extract_frame(self, video_path, at_seconds, output_path, job_id="-"):
        self.frame_at = at_seconds
        if self.thumbnail_error:
            raise self.thumbnail_error
        with open(output_path, "wb") as f:
            f.write(b"jpeg-bytes")
        return output_path


class RecordingStorage(StorageService):
    def __init__(self, assets=None, fail_on=None):
        self.puts = []
        self.assets = assets
        self.fail_on = fail_on

    def put(self, local_path, remote_key, content_type):
        assert os.path.exists(local_path)
        # Nothing may be recorded before the upload finishes
        if self.assets is not None:
            assert self.assets.assets == []
        if self.fail_on and self.fail_on in remote_key:
            raise UpstreamFailureError("storage", "bucket unavailable")
        self.puts.append((remote_key, content_type))
        return f"https://cdn.example.com/{remote_key}"


@pytest.fixture
def uploads(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    for name in ("first.mp4", "second.mp4"):
        (root / name).write_bytes(b"source")
    return root


@pytest.fixture
def sources():
    return InMemorySourceRepo(
        [
            SourceVideo(
                video_id="v1",
                owner_id="user-1",
                title="Interview",
                video_url="uploads/first.mp4",
                thumbnail_url="https://cdn.example.com/thumbs/v1.jpg",
                duration=60.0,
            ),
            SourceVideo(
                video_id="v2",
                owner_id="user-1",
                title="Keynote",
                video_url="/old/host/backend/uploads/second.mp4",
                thumbnail_url="https://cdn.example.com/thumbs/v2.jpg",
                duration=120.0,
            ),
        ]
    )


@pytest.fixture
def temp_root(tmp_path):
    return str(tmp_path / "work")


def build(sources, uploads, temp_root, media=None, storage=None, assets=None):
    assets = assets if assets is not None else InMemoryAssetRepo()
    media = media or FakeMediaProcessor()
    storage = storage or RecordingStorage(assets)
    orchestrator = MergeOrchestrator(
        source_repo=sources,
        asset_repo=assets,
        path_resolver=PathResolver(str(uploads)),
        media_processor=media,
        storage=storage,
        temp_root=temp_root,
        timeout_seconds=120,
    )
    return orchestrator, assets, media, storage


CLIPS = [
    {"videoId": "v1", "startTime": 5.0, "endTime": 10.0, "title": "Opening"},
    {"videoId": "v2", "startTime": 20.0, "endTime": 25.0},
]


class TestSuccessfulMerge:
    """Test the happy path."""

    def test_asset_is_published_and_recorded(self, sources, uploads, temp_root):
        orchestrator, assets, media, storage = build(sources, uploads, temp_root)

        asset = orchestrator.merge_clips(
            CLIPS, OWNER, AssetInfo(title="Highlights", description="best bits")
        )

        assert assets.assets == [asset]
        assert asset.owner_id == "user-1"
        assert asset.owner_email == "ada@example.com"
        assert asset.title == "Highlights"
        assert asset.description == "best bits"
        assert asset.duration_seconds == 10.0
        assert asset.storage_url.endswith(
            f"merged-videos/user-1/merged_{asset.job_id}.mp4"
        )
        assert asset.thumbnail_url.endswith(
            f"merged-videos/user-1/thumbs/thumb_{asset.job_id}.jpg"
        )
        assert storage.puts == [
            (f"merged-videos/user-1/merged_{asset.job_id}.mp4", "video/mp4"),
            (f"merged-videos/user-1/thumbs/thumb_{asset.job_id}.jpg", "image/jpeg"),
        ]

    def test_inputs_keep_request_order_and_resolved_paths(self, sources, uploads, temp_root):
        orchestrator, _, media, _ = build(sources, uploads, temp_root)

        orchestrator.merge_clips(CLIPS, OWNER)

        assert [(i.path, i.start_time, i.end_time) for i in media.merged_inputs] == [
            (str(uploads / "first.mp4"), 5.0, 10.0),
            (str(uploads / "second.mp4"), 20.0, 25.0),
        ]
        assert media.timeout_seconds == 120

    def test_source_clips_and_stats(self, sources, uploads, temp_root):
        orchestrator, _, _, _ = build(sources, uploads, temp_root)

        asset = orchestrator.merge_clips(CLIPS, OWNER)

        first, second = asset.source_clips
        assert first.video_id == "v1"
        assert first.title == "Opening"
        assert first.original_video_title == "Interview"
        assert first.duration == 5.0
        assert second.title == "Keynote"
        assert second.thumbnail == "https://cdn.example.com/thumbs/v2.jpg"
        assert asset.stats.total_clips == 2
        assert asset.stats.total_duration == 10.0
        assert asset.stats.processing_time_ms >= 0
        assert asset.title.startswith("Merged Video ")

    def test_thumbnail_taken_at_midpoint(self, sources, uploads, temp_root):
        orchestrator, _, media, _ = build(sources, uploads, temp_root)

        orchestrator.merge_clips(CLIPS, OWNER)

        assert media.frame_at == 5.0

    def test_validated_clips_are_accepted(self, sources, uploads, temp_root):
        orchestrator, assets, _, _ = build(sources, uploads, temp_root)
        clips = [ValidatedClip("v1", "hello", 1.0, 4.0)]

        asset = orchestrator.merge_clips(clips, OWNER)

        assert asset.source_clips[0].video_id == "v1"
        assert len(assets.assets) == 1

    def test_job_reaches_done_and_temp_dir_is_removed(self, sources, uploads, temp_root):
        orchestrator, _, media, _ = build(sources, uploads, temp_root)
        job = orchestrator.create_job(CLIPS, OWNER)

        orchestrator.run_job(job, OWNER)

        assert job.status == "done"
        assert media.work_dirs == [os.path.join(temp_root, job.job_id)]
        assert not os.path.exists(media.work_dirs[0])

    def test_thumbnail_failure_falls_back_to_first_clip(self, sources, uploads, temp_root):
        media = FakeMediaProcessor(thumbnail_error=MediaProcessingError("j", 1, "no frame"))
        orchestrator, assets, _, storage = build(sources, uploads, temp_root, media=media)

        asset = orchestrator.merge_clips(CLIPS, OWNER)

        assert asset.thumbnail_url == "https://cdn.example.com/thumbs/v1.jpg"
        assert len(storage.puts) == 1
        assert len(assets.assets) == 1


class TestFailedMerge:
    """Test that failures are loud, leave no record and still clean up."""

    def assert_failed_cleanly(self, orchestrator, job, assets, temp_root):
        assert job.status == "failed"
        assert job.error
        assert assets.assets == []
        assert not os.path.exists(os.path.join(temp_root, job.job_id))

    def test_unknown_source(self, sources, uploads, temp_root):
        orchestrator, assets, media, _ = build(sources, uploads, temp_root)
        job = orchestrator.create_job([{"videoId": "ghost", "startTime": 0, "endTime": 1}], OWNER)

        with pytest.raises(SourceNotFoundError):
            orchestrator.run_job(job, OWNER)

        assert media.merged_inputs is None
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    def test_unresolvable_file_aborts_whole_job(self, sources, uploads, temp_root):
        """Test one missing file fails the job with every tried path."""
        (uploads / "second.mp4").unlink()
        orchestrator, assets, media, _ = build(sources, uploads, temp_root)
        job = orchestrator.create_job(CLIPS, OWNER)

        with pytest.raises(SourceNotFoundError) as exc_info:
            orchestrator.run_job(job, OWNER)

        assert len(exc_info.value.tried_paths) == 4
        assert media.merged_inputs is None
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    @pytest.mark.parametrize(
        "clip",
        [
            {"videoId": "v1", "startTime": 10, "endTime": 10},
            {"videoId": "v1", "startTime": 12, "endTime": 3},
            {"videoId": "v1", "startTime": "abc", "endTime": 3},
            {"videoId": "v1", "startTime": None, "endTime": 3},
            {"videoId": "v1", "startTime": 50, "endTime": 70},
        ],
    )
    def test_invalid_clip(self, sources, uploads, temp_root, clip):
        orchestrator, assets, media, _ = build(sources, uploads, temp_root)
        job = orchestrator.create_job([clip], OWNER)

        with pytest.raises(InvalidClipError):
            orchestrator.run_job(job, OWNER)

        assert media.merged_inputs is None
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    def test_timeout(self, sources, uploads, temp_root):
        media = FakeMediaProcessor(merge_error=MergeTimeoutError("j", 120))
        orchestrator, assets, _, storage = build(sources, uploads, temp_root, media=media)
        job = orchestrator.create_job(CLIPS, OWNER)

        with pytest.raises(MergeTimeoutError):
            orchestrator.run_job(job, OWNER)

        assert storage.puts == []
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    def test_empty_output_file(self, sources, uploads, temp_root):
        media = FakeMediaProcessor(output=b"")
        orchestrator, assets, _, storage = build(sources, uploads, temp_root, media=media)
        job = orchestrator.create_job(CLIPS, OWNER)

        with pytest.raises(EmptyOutputError) as exc_info:
            orchestrator.run_job(job, OWNER)

        assert exc_info.value.size_bytes == 0
        assert storage.puts == []
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    def test_zero_duration_output(self, sources, uploads, temp_root):
        """Test a successful exit code alone is not trusted."""
        media = FakeMediaProcessor(duration=0.0)
        orchestrator, assets, _, storage = build(sources, uploads, temp_root, media=media)
        job = orchestrator.create_job(CLIPS, OWNER)

        with pytest.raises(EmptyOutputError):
            orchestrator.run_job(job, OWNER)

        assert storage.puts == []
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    def test_upload_failure_records_nothing(self, sources, uploads, temp_root):
        assets = InMemoryAssetRepo()
        storage = RecordingStorage(assets, fail_on="merged_")
        orchestrator, _, _, _ = build(
            sources, uploads, temp_root, storage=storage, assets=assets
        )
        job = orchestrator.create_job(CLIPS, OWNER)

        with pytest.raises(UpstreamFailureError) as exc_info:
            orchestrator.run_job(job, OWNER)

        assert exc_info.value.service == "storage"
        self.assert_failed_cleanly(orchestrator, job, assets, temp_root)

    def test_persistence_failure(self, sources, uploads, temp_root):
        assets = InMemoryAssetRepo()
        assets.create = Mock(side_effect=ValueError("duplicate job"))
        orchestrator, _, _, storage = build(sources, uploads, temp_root, assets=assets)
        job = orchestrator.create_job(CLIPS, OWNER)

        with pytest.raises(UpstreamFailureError) as exc_info:
            orchestrator.run_job(job, OWNER)

        assert exc_info.value.service == "persistence"
        assert len(storage.puts) == 2
        assert job.status == "failed"
        assert not os.path.exists(os.path.join(temp_root, job.job_id))

    def test_cancelled_job(self, sources, uploads, temp_root):
        orchestrator, assets, media, _ = build(sources, uploads, temp_root)
        job = orchestrator.create_job(CLIPS, OWNER)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(MergeCancelledError):
            orchestrator.run_job(job, OWNER, cancel_event=cancel)

        assert job.status == "cancelled"
        assert media.merged_inputs is None
        assert assets.assets == []
        assert not os.path.exists(os.path.join(temp_root, job.job_id))

    def test_empty_clip_list(self, sources, uploads, temp_root):
        orchestrator, _, _, _ = build(sources, uploads, temp_root)

        with pytest.raises(ValueError):
            orchestrator.merge_clips([], OWNER)


class TestNormalizeClip:
    """Test clip payload normalization."""

    def test_accepts_source_id_alias_and_numeric_strings(self):
        request = normalize_clip({"sourceId": "v9", "startTime": "1.5", "endTime": 3})

        assert request.source_id == "v9"
        assert request.start_time == 1.5
        assert request.end_time == 3.0
        assert request.duration == 1.5

    def test_missing_source_id(self):
        with pytest.raises(InvalidClipError):
            normalize_clip({"startTime": 0, "endTime": 1})

    def test_negative_start(self):
        with pytest.raises(InvalidClipError):
            normalize_clip({"videoId": "v1", "startTime": -1, "endTime": 1})


@pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg not installed",
)
def test_two_five_second_clips_make_ten_seconds(sources, uploads, temp_root):
    """Test a real merge of two 5 second clips."""
    for name in ("first.mp4", "second.mp4"):
        subprocess.run(
            [
                "ffmpeg", "-hide_banner", "-loglevel", "error",
                "-f", "lavfi", "-i", "testsrc=duration=30:size=320x240:rate=25",
                "-f", "lavfi", "-i", "sine=frequency=440:duration=30",
                "-c:v", "libx264", "-c:a", "aac", "-shortest", "-y",
                str(uploads / name),
            ],
            check=True,
            capture_output=True,
            timeout=120,
        )
    orchestrator, assets, _, _ = build(
        sources, uploads, temp_root, media=FFmpegMediaProcessor()
    )
    job = orchestrator.create_job(CLIPS, OWNER)

    asset = orchestrator.run_job(job, OWNER)

    assert asset.duration_seconds == pytest.approx(10.0, abs=0.5)
    assert assets.assets == [asset]
    assert not os.path.exists(os.path.join(temp_root, job.job_id))
