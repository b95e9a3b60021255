"""Transcript-to-clip selection pipeline.

Flow for one request::

    Chunking -> PerChunkGeneration(i) ... -> FinalGeneration -> Validating
             -> Accepted | FallbackSynthesis -> Done

Chunks are processed strictly in order because each chunk's prompt carries
the candidates gathered so far.
"""

import dataclasses
import logging
from collections.abc import Sequence

from ..domain.exceptions import (
    GenerationFailureError,
    RateLimitedError,
    ValidationViolationError,
)
from ..domain.models import (
    RollingContext,
    SelectionConstraint,
    SelectionResult,
    SourceTranscript,
    TranscriptSegment,
    ValidatedClip,
)
from .clip_validator import validate_clips
from .constraint_parser import parse_selection_constraint
from .generation_client import GenerationClient
from .prompt_builder import build_chunk_request
from .response_parser import coerce_candidates, extract_json_array
from .token_budgeter import (
    DEFAULT_MAX_TOKENS_PER_CHUNK,
    DEFAULT_RESERVED_TOKENS,
    chunk_segments,
)

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_SECONDS = 11.0
NO_TRANSCRIPT_TEXT = "No transcript available"


class ClipSelectionOrchestrator:
    """Turns transcripts plus an instruction into a validated clip list."""

    def __init__(
        self,
        generation_client: GenerationClient,
        max_tokens_per_chunk: int = DEFAULT_MAX_TOKENS_PER_CHUNK,
        reserved_tokens: int = DEFAULT_RESERVED_TOKENS,
        rolling_context_limit: int = 30,
        candidate_temperature: float = 0.2,
        final_temperature: float = 0.2,
        retry_temperature: float = 0.0,
        final_retries: int = 2,
    ):
        self.generation_client = generation_client
        self.max_tokens_per_chunk = max_tokens_per_chunk
        self.reserved_tokens = reserved_tokens
        self.rolling_context_limit = rolling_context_limit
        self.candidate_temperature = candidate_temperature
        self.final_temperature = final_temperature
        self.retry_temperature = retry_temperature
        self.final_retries = final_retries

    def select_clips(
        self, transcripts: Sequence[SourceTranscript], instruction: str | None
    ) -> SelectionResult:
        """Select clips for an instruction.

        Always returns a clip list for a non-empty transcript list; when
        generation cannot produce a valid selection, a fallback clip is
        synthesized and ``used_fallback`` is set.

        Args:
            transcripts: Source transcripts; the first one is the primary source
            instruction: Free-text request such as "an 8 second clip from the end"

        Raises:
            ValueError: If no transcripts are given or the primary source
                has no positive duration
        """
        if not transcripts:
            raise ValueError("At least one transcript is required")

        primary = transcripts[0]
        if primary.duration <= 0:
            raise ValueError(
                f"Primary source {primary.source_id} has no positive duration"
            )
        source_durations = {t.source_id: float(t.duration) for t in transcripts}
        constraint = parse_selection_constraint(instruction)
        logger.info(
            f"Selecting clips: primary={primary.source_id} "
            f"duration={primary.duration:.2f}s "
            f"explicit_duration={constraint.explicit_duration_seconds} "
            f"from_end={constraint.require_from_end}"
        )

        segments = self._flatten_segments(transcripts)
        if not segments:
            logger.warning("No transcript segments available, using fallback clip")
            return self._fallback(primary, constraint)

        chunks = list(
            chunk_segments(segments, self.max_tokens_per_chunk, self.reserved_tokens)
        )
        total = len(chunks)
        logger.info(f"Split {len(segments)} segments into {total} token-aware chunks")

        context = RollingContext(limit=self.rolling_context_limit)
        for index, chunk in enumerate(chunks[:-1]):
            context = self._process_candidate_chunk(
                index, total, chunk, context, constraint, instruction, primary
            )

        clips = self._final_generation(
            total, chunks[-1], context, constraint, instruction, primary, source_durations
        )
        if clips is not None:
            return SelectionResult(clips=clips, used_fallback=False)

        return self._fallback(primary, constraint)

    def _flatten_segments(
        self, transcripts: Sequence[SourceTranscript]
    ) -> list[TranscriptSegment]:
        segments: list[TranscriptSegment] = []
        for transcript in transcripts:
            for segment in transcript.segments:
                if segment.source_id is None:
                    segment = dataclasses.replace(
                        segment, source_id=transcript.source_id
                    )
                segments.append(segment)
        return segments

    def _process_candidate_chunk(
        self,
        index: int,
        total: int,
        chunk: list[TranscriptSegment],
        context: RollingContext,
        constraint: SelectionConstraint,
        instruction: str | None,
        primary: SourceTranscript,
    ) -> RollingContext:
        """Gather candidates from a non-final chunk and return the new context.

        Failures here only cost context, so they are logged and skipped.
        """
        logger.info(f"Processing chunk {index + 1}/{total}...")
        request = build_chunk_request(
            index,
            total,
            chunk,
            context,
            constraint,
            instruction,
            primary.duration,
            temperature=self.candidate_temperature,
        )

        try:
            response = self.generation_client.generate(request)
        except (GenerationFailureError, RateLimitedError) as e:
            logger.warning(f"Skipping candidates from chunk {index + 1}: {e}")
            return context

        items = extract_json_array(response)
        if items is None:
            logger.warning(f"Error parsing segments from chunk {index + 1}")
            return context

        candidates = coerce_candidates(items, default_source_id=primary.source_id)
        logger.info(
            f"Added {len(candidates)} potential segments from chunk {index + 1}"
        )
        return context.extended(candidates)

    def _final_generation(
        self,
        total: int,
        chunk: list[TranscriptSegment],
        context: RollingContext,
        constraint: SelectionConstraint,
        instruction: str | None,
        primary: SourceTranscript,
        source_durations: dict[str, float],
    ) -> list[ValidatedClip] | None:
        """Run the final generation and validation, retrying colder on failure.

        Returns:
            Validated clips, or None once every attempt has failed
        """
        attempts = 1 + max(0, self.final_retries)
        for attempt in range(1, attempts + 1):
            temperature = (
                self.final_temperature if attempt == 1 else self.retry_temperature
            )
            request = build_chunk_request(
                total - 1,
                total,
                chunk,
                context,
                constraint,
                instruction,
                primary.duration,
                temperature=temperature,
            )

            try:
                response = self.generation_client.generate(request)
                items = extract_json_array(response)
                if items is None:
                    raise GenerationFailureError("response contained no JSON array")
                candidates = coerce_candidates(
                    items, default_source_id=primary.source_id
                )
                clips = validate_clips(candidates, source_durations, constraint)
            except (
                GenerationFailureError,
                RateLimitedError,
                ValidationViolationError,
            ) as e:
                logger.warning(
                    f"Final selection attempt {attempt}/{attempts} failed: {e}"
                )
                continue

            logger.info(
                f"Accepted {len(clips)} clips on final attempt {attempt}/{attempts}"
            )
            return clips

        return None

    def _fallback(
        self, primary: SourceTranscript, constraint: SelectionConstraint
    ) -> SelectionResult:
        """Synthesize one clip covering the tail of the primary source."""
        duration = max(0.0, float(primary.duration))
        length = constraint.explicit_duration_seconds or DEFAULT_FALLBACK_SECONDS
        start = max(0.0, duration - length)
        end = duration

        text = " ".join(
            segment.text
            for segment in primary.segments
            if segment.start_time < end and segment.end_time > start
        )

        logger.warning(
            f"Using fallback clip for {primary.source_id}: {start:.2f}-{end:.2f}s"
        )
        clip = ValidatedClip(
            source_id=primary.source_id,
            transcript_text=text or NO_TRANSCRIPT_TEXT,
            start_time=start,
            end_time=end,
        )
        return SelectionResult(clips=[clip], used_fallback=True)
