"""Test the transcript-to-clip selection pipeline."""

import json

import pytest

from reelcut.domain.exceptions import RateLimitedError
from reelcut.domain.models import SourceTranscript, TranscriptSegment
from reelcut.services.clip_selection_orchestrator import (
    NO_TRANSCRIPT_TEXT,
    ClipSelectionOrchestrator,
)
from reelcut.services.generation_client import GenerationClient, TextGenerationService
from reelcut.services.prompt_builder import CONTEXT_PREAMBLE
from reelcut.services.retry_policy import RetryPolicy


class ScriptedService(TextGenerationService):
    """Replays canned responses and records every call."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, messages, temperature):
        self.calls.append({"messages": messages, "temperature": temperature})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_orchestrator(responses, **kwargs):
    service = ScriptedService(responses)
    client = GenerationClient(service, RetryPolicy(max_attempts=1))
    return ClipSelectionOrchestrator(client, **kwargs), service


def clips_json(*clips):
    return json.dumps(
        [
            {"videoId": source, "transcriptText": text, "startTime": start, "endTime": end}
            for source, text, start, end in clips
        ]
    )


@pytest.fixture
def transcript():
    """A 100 second source with three segments."""
    return SourceTranscript(
        source_id="v1",
        duration=100.0,
        segments=(
            TranscriptSegment("welcome to the show", 0.0, 30.0),
            TranscriptSegment("here is the main story", 30.0, 80.0),
            TranscriptSegment("thanks for watching, goodbye", 80.0, 100.0),
        ),
    )


class TestSelection:
    """Test accepted selections."""

    def test_eight_second_clip_from_the_end(self, transcript):
        """Test a valid final response is accepted without fallback."""
        orchestrator, service = make_orchestrator(
            [clips_json(("v1", "thanks for watching, goodbye", 90.0, 98.0))]
        )

        result = orchestrator.select_clips(
            [transcript], "give me an 8 second clip from the end"
        )

        assert result.used_fallback is False
        assert len(result.clips) == 1
        clip = result.clips[0]
        assert clip.source_id == "v1"
        assert clip.duration == pytest.approx(8.0, abs=0.05)
        assert clip.start_time >= 80.0
        assert len(service.calls) == 1
        assert "exactly 8.00 seconds" in service.calls[0]["messages"][-1]["content"]

    def test_invalid_final_answer_is_retried_colder(self, transcript):
        orchestrator, service = make_orchestrator(
            [
                clips_json(("v1", "here is the main story", 40.0, 48.0)),
                clips_json(("v1", "thanks for watching", 91.0, 99.0)),
            ]
        )

        result = orchestrator.select_clips(
            [transcript], "give me an 8 second clip from the end"
        )

        assert result.used_fallback is False
        assert result.clips[0].start_time == 91.0
        assert [call["temperature"] for call in service.calls] == [0.2, 0.0]

    def test_rate_limited_final_attempt_is_retried(self, transcript):
        orchestrator, service = make_orchestrator(
            [RateLimitedError(), clips_json(("v1", "main story", 30.0, 45.0))]
        )

        result = orchestrator.select_clips([transcript], "the main story")

        assert result.used_fallback is False
        assert len(service.calls) == 2


class TestChunking:
    """Test multi-chunk processing."""

    @pytest.fixture
    def long_transcript(self):
        # ~70 estimated tokens per segment: one segment per 100-token chunk
        return SourceTranscript(
            source_id="v1",
            duration=90.0,
            segments=tuple(
                TranscriptSegment(chr(ord("a") + i) * 200, i * 30.0, (i + 1) * 30.0)
                for i in range(3)
            ),
        )

    def test_candidates_flow_into_later_chunks(self, long_transcript):
        orchestrator, service = make_orchestrator(
            [
                json.dumps(
                    [{"videoId": "v1", "transcriptText": "aaa", "startTime": 1, "endTime": 9, "notes": "hook"}]
                ),
                json.dumps(
                    [{"videoId": "v1", "transcriptText": "bbb", "startTime": 31, "endTime": 39}]
                ),
                clips_json(("v1", "aaa", 1.0, 9.0), ("v1", "bbb", 31.0, 39.0)),
            ],
            max_tokens_per_chunk=100,
            reserved_tokens=0,
        )

        result = orchestrator.select_clips([long_transcript], "two highlights")

        assert len(service.calls) == 3
        assert result.used_fallback is False
        assert [c.start_time for c in result.clips] == [1.0, 31.0]

        first_messages = service.calls[0]["messages"]
        assert [m["role"] for m in first_messages] == ["system", "user"]

        final_messages = service.calls[2]["messages"]
        context = final_messages[1]["content"]
        assert context.startswith(CONTEXT_PREAMBLE)
        payload = json.loads(context[len(CONTEXT_PREAMBLE):])
        assert [item["transcriptText"] for item in payload] == ["aaa", "bbb"]

    def test_unparseable_candidate_chunk_is_skipped(self, long_transcript):
        orchestrator, service = make_orchestrator(
            [
                "I am not JSON",
                json.dumps(
                    [{"videoId": "v1", "transcriptText": "bbb", "startTime": 31, "endTime": 39}]
                ),
                clips_json(("v1", "bbb", 31.0, 39.0)),
            ],
            max_tokens_per_chunk=100,
            reserved_tokens=0,
        )

        result = orchestrator.select_clips([long_transcript], "highlight")

        assert result.used_fallback is False
        # Chunk 2 has no context yet, chunk 3 carries only chunk 2's candidate
        assert [m["role"] for m in service.calls[1]["messages"]] == ["system", "user"]
        payload = json.loads(
            service.calls[2]["messages"][1]["content"][len(CONTEXT_PREAMBLE):]
        )
        assert len(payload) == 1

    def test_rolling_context_keeps_newest_candidates(self, long_transcript):
        many = [
            {"videoId": "v1", "transcriptText": f"c{i}", "startTime": i, "endTime": i + 1}
            for i in range(5)
        ]
        orchestrator, service = make_orchestrator(
            [json.dumps(many), json.dumps(many), clips_json(("v1", "c4", 4.0, 5.0))],
            max_tokens_per_chunk=100,
            reserved_tokens=0,
            rolling_context_limit=3,
        )

        orchestrator.select_clips([long_transcript], "highlight")

        payload = json.loads(
            service.calls[2]["messages"][1]["content"][len(CONTEXT_PREAMBLE):]
        )
        assert [item["transcriptText"] for item in payload] == ["c2", "c3", "c4"]


class TestFallback:
    """Test fallback synthesis."""

    def test_malformed_responses_produce_one_fallback_clip(self, transcript):
        """Test unusable output degrades to the tail of the primary source."""
        orchestrator, service = make_orchestrator(["not json"] * 3)

        result = orchestrator.select_clips([transcript], "something funny")

        assert result.used_fallback is True
        assert len(result.clips) == 1
        clip = result.clips[0]
        assert clip.source_id == "v1"
        assert clip.start_time == 89.0
        assert clip.end_time == 100.0
        assert clip.transcript_text == "thanks for watching, goodbye"
        assert len(service.calls) == 3

    def test_fallback_uses_explicit_duration(self, transcript):
        orchestrator, _ = make_orchestrator(["[]"] * 3)

        result = orchestrator.select_clips([transcript], "an 8 second clip")

        assert result.used_fallback is True
        assert result.clips[0].start_time == 92.0
        assert result.clips[0].end_time == 100.0

    def test_fallback_text_covers_overlapping_segments(self, transcript):
        orchestrator, _ = make_orchestrator(["[]"] * 3)

        result = orchestrator.select_clips([transcript], "a 25 seconds clip")

        assert result.clips[0].start_time == 75.0
        assert result.clips[0].transcript_text == (
            "here is the main story thanks for watching, goodbye"
        )

    def test_fallback_is_clamped_to_short_source(self):
        short = SourceTranscript(
            source_id="v2",
            duration=5.0,
            segments=(TranscriptSegment("tiny", 0.0, 5.0),),
        )
        orchestrator, _ = make_orchestrator(["nope"] * 3)

        result = orchestrator.select_clips([short], None)

        assert result.clips[0].start_time == 0.0
        assert result.clips[0].end_time == 5.0

    def test_no_segments_skips_generation(self):
        empty = SourceTranscript(source_id="v3", duration=60.0)
        orchestrator, service = make_orchestrator([])

        result = orchestrator.select_clips([empty], "anything")

        assert result.used_fallback is True
        assert result.clips[0].transcript_text == NO_TRANSCRIPT_TEXT
        assert service.calls == []

    def test_no_transcripts_is_an_error(self):
        orchestrator, _ = make_orchestrator([])

        with pytest.raises(ValueError):
            orchestrator.select_clips([], "anything")

    def test_zero_duration_primary_is_an_error(self):
        silent = SourceTranscript(
            source_id="v4",
            duration=0.0,
            segments=(TranscriptSegment("hi", 0.0, 1.0),),
        )
        orchestrator, service = make_orchestrator(["not json"] * 3)

        with pytest.raises(ValueError):
            orchestrator.select_clips([silent], "anything")
        assert service.calls == []


def test_end_to_end_clip_from_the_end():
    """Test instruction parsing, generation and validation together."""
    transcript = SourceTranscript(
        source_id="v1",
        duration=100.0,
        segments=(
            TranscriptSegment("a", 0.0, 10.0),
            TranscriptSegment("b", 10.0, 20.0),
            TranscriptSegment("end part", 90.0, 100.0),
        ),
    )
    orchestrator, _ = make_orchestrator(
        [clips_json(("v1", "end part", 91.5, 99.52))]
    )

    result = orchestrator.select_clips(
        [transcript], "give me an 8 second clip from the end"
    )

    [clip] = result.clips
    assert result.used_fallback is False
    assert clip.start_time >= 80
    assert abs((clip.end_time - clip.start_time) - 8) <= 0.05
