"""Best-effort parsing of clip lists out of generated text.

Model output often wraps the JSON array in prose or markdown fences. The
functions here return ``None`` or an empty list instead of raising, so
callers can treat an unusable response like an empty one.
"""

import json
import logging
import re

from ..domain.models import CandidateClip

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_decoder = json.JSONDecoder()


def extract_json_array(text: str | None) -> list | None:
    """Return the first well-formed JSON array found in ``text``, or None."""
    if not text:
        return None

    stripped = text.strip()
    parsed = _try_load_list(stripped)
    if parsed is not None:
        return parsed

    for block in _FENCE_PATTERN.findall(stripped):
        parsed = _try_load_list(block.strip())
        if parsed is not None:
            return parsed

    position = stripped.find("[")
    while position != -1:
        try:
            value, _end = _decoder.raw_decode(stripped, position)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            return value
        position = stripped.find("[", position + 1)

    return None


def _try_load_list(text: str) -> list | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, list) else None


def _to_float(value) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if result != result or result in (float("inf"), float("-inf")):
        return None
    return result


def coerce_candidates(
    items: list | None, default_source_id: str | None = None
) -> list[CandidateClip]:
    """Convert decoded JSON items into candidate clips, skipping malformed ones."""
    candidates: list[CandidateClip] = []
    if not items:
        return candidates

    for item in items:
        if not isinstance(item, dict):
            continue

        start = _to_float(item.get("startTime", item.get("start_time")))
        end = _to_float(item.get("endTime", item.get("end_time")))
        if start is None or end is None:
            logger.debug(f"Skipping candidate without numeric timestamps: {item}")
            continue

        source_id = item.get("videoId") or item.get("sourceId") or default_source_id
        if not source_id:
            continue

        notes = item.get("notes")
        candidates.append(
            CandidateClip(
                source_id=str(source_id),
                transcript_text=str(item.get("transcriptText") or item.get("text") or ""),
                start_time=start,
                end_time=end,
                notes=str(notes) if notes else None,
            )
        )

    return candidates
