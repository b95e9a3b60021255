"""FFmpeg/ffprobe wrappers for trimming, concatenating, probing and thumbnails."""

import json
import logging
import os
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..domain.exceptions import (
    MediaProcessingError,
    MergeCancelledError,
    MergeTimeoutError,
)

logger = logging.getLogger(__name__)

# Thumbnail size, matching the source video thumbnails
THUMBNAIL_SIZE = "320x180"

# JPEG quality setting (2-31 for ffmpeg, lower = better quality)
THUMBNAIL_QUALITY = 5

THUMBNAIL_TIMEOUT = 30
PROBE_TIMEOUT = 60

# Seconds to wait for ffmpeg to exit after SIGTERM before SIGKILL
TERMINATE_GRACE_SECONDS = 5

STDERR_TAIL_LINES = 40


@dataclass(frozen=True)
class MergeInput:
    """One trimmed input of a merge."""

    path: str
    start_time: float
    end_time: float


@dataclass(frozen=True)
class MediaProbe:
    """Container-level metadata reported by ffprobe."""

    duration_seconds: float
    size_bytes: int


class FFmpegMediaProcessor:
    """Runs ffmpeg and ffprobe as subprocesses."""

    def __init__(
        self,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
        poll_interval: float = 0.25,
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self.poll_interval = poll_interval

    def build_merge_command(
        self, inputs: Sequence[MergeInput], output_path: str
    ) -> list[str]:
        """Build one ffmpeg invocation that trims every input and concatenates them.

        Each input is trimmed with input-side ``-ss``/``-to``; a single concat
        filter graph emits one video and one audio stream, encoded as H.264/AAC.
        """
        if not inputs:
            raise ValueError("At least one merge input is required")

        cmd = [self.ffmpeg_bin, "-hide_banner", "-y"]
        for item in inputs:
            cmd += [
                "-ss",
                f"{item.start_time:.3f}",
                "-to",
                f"{item.end_time:.3f}",
                "-i",
                item.path,
            ]

        streams = "".join(f"[{i}:v:0][{i}:a:0]" for i in range(len(inputs)))
        filter_graph = f"{streams}concat=n={len(inputs)}:v=1:a=1:unsafe=1[v][a]"

        cmd += [
            "-filter_complex",
            filter_graph,
            "-map",
            "[v]",
            "-map",
            "[a]",
            "-c:v",
            "libx264",
            "-preset",
            "medium",
            "-crf",
            "23",
            "-pix_fmt",
            "yuv420p",
            "-c:a",
            "aac",
            "-b:a",
            "128k",
            "-movflags",
            "+faststart",
            "-max_muxing_queue_size",
            "9999",
            "-progress",
            "pipe:1",
            "-nostats",
            output_path,
        ]
        return cmd

    def merge(
        self,
        inputs: Sequence[MergeInput],
        output_path: str,
        timeout_seconds: float,
        job_id: str = "-",
        cancel_event: threading.Event | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> None:
        """Trim and concatenate inputs into ``output_path``.

        Blocks until ffmpeg exits. The process is killed when the timeout
        expires and terminated when ``cancel_event`` is set.

        Args:
            inputs: Trimmed inputs in playback order
            output_path: Destination MP4 file
            timeout_seconds: Wall-clock budget for the whole subprocess
            job_id: Merge job identifier for logs and errors
            cancel_event: Optional cancellation signal
            on_progress: Called with seconds of output encoded so far

        Raises:
            MergeTimeoutError: If ffmpeg runs past the timeout
            MergeCancelledError: If the cancel event is set while running
            MediaProcessingError: If ffmpeg exits with a non-zero code
        """
        cmd = self.build_merge_command(inputs, output_path)
        logger.info(f"[{job_id}] FFmpeg command: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise MediaProcessingError(job_id, None, f"ffmpeg not found: {e}") from e

        stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        readers = [
            threading.Thread(
                target=self._read_progress,
                args=(process.stdout, on_progress),
                daemon=True,
            ),
            threading.Thread(
                target=self._collect_lines,
                args=(process.stderr, stderr_tail),
                daemon=True,
            ),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + timeout_seconds
        try:
            while True:
                try:
                    process.wait(timeout=self.poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    pass

                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"[{job_id}] Cancellation requested - stopping FFmpeg")
                    self._terminate(process)
                    raise MergeCancelledError(job_id)

                if time.monotonic() >= deadline:
                    logger.error(f"[{job_id}] Process timeout - killing FFmpeg")
                    process.kill()
                    process.wait()
                    raise MergeTimeoutError(job_id, timeout_seconds)
        finally:
            if process.poll() is None:
                process.kill()
                process.wait()
            for reader in readers:
                reader.join(timeout=1)

        if process.returncode != 0:
            stderr = "\n".join(stderr_tail)
            logger.error(f"[{job_id}] FFmpeg stderr: {stderr}")
            raise MediaProcessingError(job_id, process.returncode, stderr)

        logger.info(f"[{job_id}] FFmpeg finished")

    def probe(self, path: str, job_id: str = "-") -> MediaProbe:
        """Return duration and size of a media file.

        Raises:
            MediaProcessingError: If ffprobe fails or reports no duration
        """
        cmd = [
            self.ffprobe_bin,
            "-v",
            "error",
            "-show_entries",
            "format=duration,size",
            "-of",
            "json",
            path,
        ]

        try:
            completed = subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=PROBE_TIMEOUT
            )
            payload = json.loads(completed.stdout or "{}")
        except subprocess.CalledProcessError as e:
            raise MediaProcessingError(job_id, e.returncode, e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise MediaProcessingError(job_id, None, f"ffprobe timed out: {e}") from e
        except FileNotFoundError as e:
            raise MediaProcessingError(job_id, None, f"ffprobe not found: {e}") from e
        except json.JSONDecodeError as e:
            raise MediaProcessingError(job_id, 0, f"Unreadable ffprobe output: {e}") from e

        info = payload.get("format", {})
        try:
            duration = float(info.get("duration") or 0)
        except (TypeError, ValueError):
            duration = 0.0
        try:
            size = int(info.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        if size <= 0 and os.path.exists(path):
            size = os.path.getsize(path)

        return MediaProbe(duration_seconds=duration, size_bytes=size)

    def extract_frame(
        self, video_path: str, at_seconds: float, output_path: str, job_id: str = "-"
    ) -> str:
        """Save one JPEG frame of ``video_path`` taken at ``at_seconds``.

        Raises:
            MediaProcessingError: If ffmpeg fails or writes an empty image
        """
        cmd = [
            self.ffmpeg_bin,
            "-hide_banner",
            "-ss",
            f"{max(0.0, at_seconds):.3f}",
            "-i",
            video_path,
            "-frames:v",
            "1",
            "-s",
            THUMBNAIL_SIZE,
            "-q:v",
            str(THUMBNAIL_QUALITY),
            "-y",
            output_path,
        ]

        try:
            subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=THUMBNAIL_TIMEOUT
            )
        except subprocess.CalledProcessError as e:
            raise MediaProcessingError(job_id, e.returncode, e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise MediaProcessingError(
                job_id, None, f"Thumbnail extraction timed out: {e}"
            ) from e
        except FileNotFoundError as e:
            raise MediaProcessingError(job_id, None, f"ffmpeg not found: {e}") from e

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise MediaProcessingError(job_id, 0, "Thumbnail file is empty")
        return output_path

    def _terminate(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    @staticmethod
    def _read_progress(stream, on_progress: Callable[[float], None] | None) -> None:
        """Parse ``-progress`` key=value lines and report encoded seconds."""
        for line in stream:
            key, _, value = line.strip().partition("=")
            if key not in ("out_time_us", "out_time_ms") or on_progress is None:
                continue
            try:
                # ffmpeg reports both keys in microseconds
                seconds = int(value) / 1_000_000
            except ValueError:
                continue
            try:
                on_progress(seconds)
            except Exception as e:  # noqa: BLE001 - progress reporting must not stop reading
                logger.debug(f"Progress callback failed: {e}")

    @staticmethod
    def _collect_lines(stream, sink: deque) -> None:
        for line in stream:
            sink.append(line.rstrip())
