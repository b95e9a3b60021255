import logging

from fastapi import HTTPException, status

from ..domain.exceptions import (
    EmptyOutputError,
    InvalidClipError,
    MediaProcessingError,
    MergeCancelledError,
    MergeTimeoutError,
    RateLimitedError,
    ReelcutError,
    SourceNotFoundError,
    UpstreamFailureError,
    ValidationViolationError,
)

logger = logging.getLogger(__name__)

# Most specific classes first
ERROR_RESPONSES = [
    (SourceNotFoundError, status.HTTP_404_NOT_FOUND, "SOURCE_NOT_FOUND"),
    (InvalidClipError, status.HTTP_422_UNPROCESSABLE_ENTITY, "INVALID_CLIP"),
    (
        ValidationViolationError,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_VIOLATION",
    ),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS, "RATE_LIMITED"),
    (UpstreamFailureError, status.HTTP_502_BAD_GATEWAY, "UPSTREAM_FAILURE"),
    (MergeTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "MERGE_TIMEOUT"),
    (MergeCancelledError, status.HTTP_409_CONFLICT, "MERGE_CANCELLED"),
    (EmptyOutputError, status.HTTP_500_INTERNAL_SERVER_ERROR, "EMPTY_OUTPUT"),
    (
        MediaProcessingError,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "MEDIA_PROCESSING_FAILED",
    ),
]


def to_http_exception(error: ReelcutError) -> HTTPException:
    """Map a domain error to the HTTP status clients see."""
    for error_type, status_code, error_code in ERROR_RESPONSES:
        if isinstance(error, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error_code = "INTERNAL_ERROR"

    if status_code >= 500:
        logger.error(f"{error_code}: {error}")
    else:
        logger.warning(f"{error_code}: {error}")

    detail = {"detail": str(error), "error_code": error_code}
    if isinstance(error, SourceNotFoundError) and error.tried_paths:
        detail["tried_paths"] = error.tried_paths
    return HTTPException(status_code=status_code, detail=detail)
