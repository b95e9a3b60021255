"""Domain exceptions for the application."""


class ReelcutError(Exception):
    """Base exception for clip selection and merge errors."""

    pass


class RateLimitedError(ReelcutError):
    """Raised when the text-generation service refuses a call for rate limiting.

    Attributes:
        retry_after_ms: Delay advertised by the service, if any
    """

    def __init__(self, retry_after_ms: int | None = None, message: str = ""):
        self.retry_after_ms = retry_after_ms
        detail = message or "Text generation rate limit reached"
        if retry_after_ms is not None:
            detail = f"{detail} (retry after {retry_after_ms}ms)"
        super().__init__(detail)


class GenerationFailureError(ReelcutError):
    """Raised when the text-generation service fails or returns unusable output.

    Attributes:
        reason: Description of the failure
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Text generation failed: {reason}")


class ValidationViolationError(ReelcutError):
    """Raised when a clip list breaks a duration, bounds or section constraint.

    Attributes:
        clip_id: Identifier of the offending clip (None when the list is empty)
        check: Name of the failed check
        expected: Expected value or bound
        actual: Observed value
    """

    def __init__(self, clip_id: str | None, check: str, expected, actual):
        self.clip_id = clip_id
        self.check = check
        self.expected = expected
        self.actual = actual
        subject = f"clip {clip_id}" if clip_id else "clip list"
        super().__init__(
            f"Validation failed ({check}) for {subject}: "
            f"expected {expected}, got {actual}"
        )


class SourceNotFoundError(ReelcutError):
    """Raised when a source record or its media file cannot be found.

    Attributes:
        reference: Stored reference or source id that failed to resolve
        tried_paths: Every location that was checked, in order
    """

    def __init__(self, reference: str, tried_paths: list[str] | None = None):
        self.reference = reference
        self.tried_paths = list(tried_paths or [])
        if self.tried_paths:
            tried = "\n".join(self.tried_paths)
            message = f"Could not resolve path for: {reference}\nTried paths:\n{tried}"
        else:
            message = f"Source not found: {reference}"
        super().__init__(message)


class InvalidClipError(ReelcutError):
    """Raised when a merge request contains a clip with unusable timestamps."""

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        self.message = message
        super().__init__(f"Invalid clip for source {source_id}: {message}")


class MergeJobError(ReelcutError):
    """Base exception for failures tied to a merge job.

    Attributes:
        job_id: Merge job identifier
    """

    def __init__(self, job_id: str, message: str):
        self.job_id = job_id
        super().__init__(f"[{job_id}] {message}")


class MergeTimeoutError(MergeJobError):
    """Raised when the media subprocess exceeds its wall-clock budget."""

    def __init__(self, job_id: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            job_id, f"Media processing timed out after {timeout_seconds:g}s"
        )


class EmptyOutputError(MergeJobError):
    """Raised when the produced file is empty or has no measurable duration."""

    def __init__(self, job_id: str, output_path: str, size_bytes: int, duration: float):
        self.output_path = output_path
        self.size_bytes = size_bytes
        self.duration = duration
        super().__init__(
            job_id,
            f"Merged output is unusable: {output_path} "
            f"(size={size_bytes} bytes, duration={duration:.2f}s)",
        )


class MediaProcessingError(MergeJobError):
    """Raised when the media subprocess exits with an error."""

    def __init__(self, job_id: str, returncode: int | None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            job_id, f"Media processing failed (exit code {returncode}): {stderr}"
        )


class MergeCancelledError(MergeJobError):
    """Raised when a merge job is cancelled before it finishes."""

    def __init__(self, job_id: str):
        super().__init__(job_id, "Merge job cancelled")


class UpstreamFailureError(ReelcutError):
    """Raised when the storage or persistence collaborator fails.

    Attributes:
        service: Name of the failing collaborator
    """

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service} failed: {message}")
