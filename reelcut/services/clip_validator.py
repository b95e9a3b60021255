"""Validation of candidate clips against source bounds and request constraints."""

import logging
from collections.abc import Mapping, Sequence

from ..domain.exceptions import ValidationViolationError
from ..domain.models import CandidateClip, SelectionConstraint, ValidatedClip

logger = logging.getLogger(__name__)

DURATION_TOLERANCE_SECONDS = 0.05
END_SECTION_START_RATIO = 0.8
DEFAULT_CLAMP_TOLERANCE_SECONDS = 0.5

# Absorbs float noise such as 61.04 - 50.0 == 11.039999999999999
_EPSILON = 1e-9


def clip_id(clip: CandidateClip, index: int) -> str:
    """Identifier used in violation messages."""
    return f"{clip.source_id}#{index}"


def validate_clips(
    clips: Sequence[CandidateClip],
    source_durations: Mapping[str, float],
    constraint: SelectionConstraint,
    clamp_tolerance: float = DEFAULT_CLAMP_TOLERANCE_SECONDS,
) -> list[ValidatedClip]:
    """Check a clip list and return it as validated clips.

    Checks run in a fixed order and the first failure is raised:

    1. the list is non-empty
    2. every clip lies within its source (small overshoots are clamped)
    3. every clip matches the explicit duration, if one was requested
    4. every clip starts in the final 20% of its source, if end-anchored

    Args:
        clips: Candidate clips in playback order
        source_durations: Duration in seconds for each known source id
        constraint: Constraints parsed from the user instruction
        clamp_tolerance: Largest overshoot that is clamped instead of rejected

    Returns:
        Validated clips in the same order

    Raises:
        ValidationViolationError: On the first failed check
    """
    if not clips:
        raise ValidationViolationError(None, "non_empty", "at least 1 clip", 0)

    bounded = [
        _check_bounds(clip, index, source_durations, clamp_tolerance)
        for index, clip in enumerate(clips)
    ]

    expected = constraint.explicit_duration_seconds
    if expected is not None:
        for index, clip in enumerate(bounded):
            actual = clip.end_time - clip.start_time
            if abs(actual - expected) > DURATION_TOLERANCE_SECONDS + _EPSILON:
                raise ValidationViolationError(
                    clip_id(clip, index),
                    "explicit_duration",
                    f"{expected:.2f}s ± {DURATION_TOLERANCE_SECONDS}s",
                    f"{actual:.2f}s",
                )

    if constraint.require_from_end:
        for index, clip in enumerate(bounded):
            threshold = source_durations[clip.source_id] * END_SECTION_START_RATIO
            if clip.start_time < threshold - _EPSILON:
                raise ValidationViolationError(
                    clip_id(clip, index),
                    "end_anchored",
                    f"startTime >= {threshold:.2f}",
                    f"{clip.start_time:.2f}",
                )

    return [
        ValidatedClip(
            source_id=clip.source_id,
            transcript_text=clip.transcript_text,
            start_time=clip.start_time,
            end_time=clip.end_time,
        )
        for clip in bounded
    ]


def _check_bounds(
    clip: CandidateClip,
    index: int,
    source_durations: Mapping[str, float],
    clamp_tolerance: float,
) -> CandidateClip:
    identifier = clip_id(clip, index)
    duration = source_durations.get(clip.source_id)
    if duration is None:
        raise ValidationViolationError(
            identifier, "known_source", sorted(source_durations), clip.source_id
        )

    start = clip.start_time
    end = clip.end_time

    if start < 0:
        if start < -clamp_tolerance:
            raise ValidationViolationError(
                identifier, "start_bounds", "startTime >= 0", f"{start:.2f}"
            )
        logger.debug(f"Clamping start of {identifier} from {start} to 0")
        start = 0.0

    if end > duration:
        if end > duration + clamp_tolerance:
            raise ValidationViolationError(
                identifier,
                "end_bounds",
                f"endTime <= {duration:.2f}",
                f"{end:.2f}",
            )
        logger.debug(f"Clamping end of {identifier} from {end} to {duration}")
        end = duration

    if start >= end:
        raise ValidationViolationError(
            identifier, "ordering", f"endTime > {start:.2f}", f"{end:.2f}"
        )

    if start == clip.start_time and end == clip.end_time:
        return clip
    return CandidateClip(
        source_id=clip.source_id,
        transcript_text=clip.transcript_text,
        start_time=start,
        end_time=end,
        notes=clip.notes,
    )
