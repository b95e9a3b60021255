"""Test token-aware transcript chunking."""

import json
import math

import pytest

from reelcut.domain.models import TranscriptSegment
from reelcut.services.token_budgeter import chunk_segments, estimate_tokens


def make_segments(count, words=10):
    return [
        TranscriptSegment(
            text=" ".join(["word"] * words),
            start_time=float(i),
            end_time=float(i + 1),
            source_id="video-1",
        )
        for i in range(count)
    ]


class TestEstimateTokens:
    """Test token estimation."""

    def test_estimate_is_quarter_of_serialized_length_rounded_up(self):
        """Test the estimate matches ceil(len(pretty JSON) / 4)."""
        segment = TranscriptSegment("hello there", 1.5, 3.25, source_id="v1")
        serialized = json.dumps(segment.to_dict(), indent=2)

        assert estimate_tokens(segment) == math.ceil(len(serialized) / 4)

    def test_longer_text_costs_more(self):
        short = TranscriptSegment("hi", 0.0, 1.0, source_id="v1")
        long = TranscriptSegment("hi " * 100, 0.0, 1.0, source_id="v1")

        assert estimate_tokens(long) > estimate_tokens(short)


class TestChunkSegments:
    """Test chunk boundaries."""

    def test_chunks_reproduce_input_in_order(self):
        """Test that concatenated chunks equal the input sequence."""
        segments = make_segments(50)

        chunks = list(chunk_segments(segments, max_tokens_per_chunk=300, reserved_tokens=50))

        assert len(chunks) > 1
        flattened = [segment for chunk in chunks for segment in chunk]
        assert flattened == segments

    def test_every_chunk_fits_effective_limit(self):
        segments = make_segments(50)

        chunks = list(chunk_segments(segments, max_tokens_per_chunk=300, reserved_tokens=50))

        for chunk in chunks:
            assert sum(estimate_tokens(s) for s in chunk) <= 250

    def test_everything_fits_in_one_chunk(self):
        segments = make_segments(3)

        chunks = list(chunk_segments(segments))

        assert chunks == [segments]

    def test_oversize_segment_is_its_own_chunk(self):
        """Test a segment larger than the ceiling is emitted alone."""
        small = make_segments(2)
        huge = TranscriptSegment("x" * 4000, 5.0, 6.0, source_id="video-1")
        segments = [small[0], huge, small[1]]

        chunks = list(chunk_segments(segments, max_tokens_per_chunk=300, reserved_tokens=50))

        assert chunks == [[small[0]], [huge], [small[1]]]

    def test_empty_input_yields_nothing(self):
        assert list(chunk_segments([])) == []

    def test_chunking_is_deterministic(self):
        segments = make_segments(40)

        first = list(chunk_segments(segments, 300, 50))
        second = list(chunk_segments(segments, 300, 50))

        assert first == second

    def test_non_positive_effective_limit_raises(self):
        with pytest.raises(ValueError, match="Effective token ceiling"):
            list(chunk_segments(make_segments(1), max_tokens_per_chunk=100, reserved_tokens=100))
