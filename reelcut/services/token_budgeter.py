"""Token-aware chunking of transcript segments.

Segments are grouped greedily so that every chunk fits one generation call.
Token cost is a cheap deterministic estimate, not a tokenizer count: what
matters is that the same input always yields the same chunk boundaries.
"""

import json
import logging
import math
from collections.abc import Iterable, Iterator

from ..domain.models import TranscriptSegment

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS_PER_CHUNK = 40000
DEFAULT_RESERVED_TOKENS = 5000
CHARS_PER_TOKEN = 4


def estimate_tokens(segment: TranscriptSegment) -> int:
    """Approximate token cost of a segment as serialized into a prompt."""
    serialized = json.dumps(segment.to_dict(), indent=2, ensure_ascii=False)
    return math.ceil(len(serialized) / CHARS_PER_TOKEN)


def chunk_segments(
    segments: Iterable[TranscriptSegment],
    max_tokens_per_chunk: int = DEFAULT_MAX_TOKENS_PER_CHUNK,
    reserved_tokens: int = DEFAULT_RESERVED_TOKENS,
) -> Iterator[list[TranscriptSegment]]:
    """Yield ordered chunks of segments that each fit the token ceiling.

    A segment that alone exceeds the ceiling is yielded as its own
    single-element chunk. Chained together, the chunks reproduce the input
    exactly.

    Args:
        segments: Segments in chronological order
        max_tokens_per_chunk: Token ceiling for one generation call
        reserved_tokens: Headroom kept for prompt scaffolding and context

    Yields:
        Non-empty lists of segments

    Raises:
        ValueError: If the effective ceiling is not positive
    """
    effective_max = max_tokens_per_chunk - reserved_tokens
    if effective_max <= 0:
        raise ValueError(
            f"Effective token ceiling must be positive, got {effective_max} "
            f"(max={max_tokens_per_chunk}, reserved={reserved_tokens})"
        )

    current: list[TranscriptSegment] = []
    current_tokens = 0

    for index, segment in enumerate(segments):
        tokens = estimate_tokens(segment)

        if tokens > effective_max:
            logger.warning(
                f"Segment at index {index} exceeds token limit ({tokens} tokens). "
                f"Including it as a single chunk."
            )
            if current:
                yield current
                current = []
                current_tokens = 0
            yield [segment]
            continue

        if current and current_tokens + tokens > effective_max:
            yield current
            current = []
            current_tokens = 0

        current.append(segment)
        current_tokens += tokens

    if current:
        yield current
