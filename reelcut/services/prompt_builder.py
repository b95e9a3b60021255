"""Rendering of generation requests for each transcript chunk.

Non-final chunks only gather candidate segments for later context. The final
chunk commits to the clip list, with every numeric constraint spelled out.
"""

import json

from ..domain.models import RollingContext, SelectionConstraint, TranscriptSegment
from .clip_validator import DURATION_TOLERANCE_SECONDS, END_SECTION_START_RATIO
from .generation_client import GenerationRequest

DEFAULT_INSTRUCTION = (
    "Generate engaging clips from the transcript with accurate timestamps."
)
MIN_CLIP_SECONDS = 3.0
MAX_CLIP_SECONDS = 60.0

SYSTEM_MESSAGE = (
    "You are a precise transcript processor and master storyteller with an "
    "emphasis on narrative cohesion and accuracy. When generating clips, you "
    "must maintain the exact wording from the source material while creating a "
    "compelling narrative flow. Never modify, paraphrase, or correct the "
    "original transcript text. Produce only valid JSON arrays with accurate "
    "numeric values and exact transcript quotes."
)

CONTEXT_PREAMBLE = (
    "Important segments identified from previous chunks (for reference only):\n"
)
CONTEXT_ACKNOWLEDGEMENT = (
    "I've noted these important segments from previous chunks and will consider "
    "them as I analyze the next chunk."
)

CANDIDATE_PROMPT_TEMPLATE = """USER CONTEXT: {instruction}

ADDITIONAL CONSTRAINTS:
{constraints}

TASK: This is chunk {position} of {total} of segment data.

Analyze these segments and identify the 5-10 most important segments that could
be part of a cohesive narrative. For each segment provide the videoId, the exact
transcript text (do not modify it), and the start and end times.

Return the segments as a JSON array in this format:
[
  {{
    "videoId": "string",
    "transcriptText": "exact quote from transcript",
    "startTime": number,
    "endTime": number,
    "notes": "brief explanation of why this segment matters to the narrative"
  }}
]

Segment chunk {position}/{total}:
{chunk}"""

FINAL_PROMPT_TEMPLATE = """USER CONTEXT: {instruction}

ADDITIONAL CONSTRAINTS:
{constraints}

TASK: This is the final chunk ({position} of {total}) of segment data.

Now that you have seen all chunks, select the final clips. Combine the most
meaningful segments from the important segments of previous chunks and from
this final chunk into one cohesive story.

RULES:
1. Use EXACT quotes from the transcript. Never paraphrase, reword or correct
   the spoken content.
2. Timestamps are plain numbers with 2 decimal places. Clips must not overlap.
3. Respect every numeric constraint above exactly.

OUTPUT FORMAT:
Return ONLY a valid JSON array and nothing else:
[
  {{
    "videoId": "string",
    "transcriptText": "exact quote from transcript",
    "startTime": number,
    "endTime": number
  }}
]

Current (final) chunk data:
{chunk}"""


def describe_constraints(
    constraint: SelectionConstraint, source_duration: float
) -> str:
    """Render the numeric constraints as prompt bullet points."""
    lines = [
        f"- The video duration is {source_duration:.2f} seconds.",
        f"- All clips must have startTime >= 0 and endTime <= {source_duration:.2f}.",
    ]
    if constraint.explicit_duration_seconds is not None:
        lines.append(
            f"- The clip must be exactly "
            f"{constraint.explicit_duration_seconds:.2f} seconds long "
            f"(±{DURATION_TOLERANCE_SECONDS:.2f} seconds)."
        )
    else:
        lines.append(
            f"- Clip duration should be between {MIN_CLIP_SECONDS:.2f} and "
            f"{MAX_CLIP_SECONDS:.2f} seconds."
        )
    if constraint.require_from_end:
        lines.append(
            f"- The clip must be from the end part of the video and must start "
            f"after {source_duration * END_SECTION_START_RATIO:.2f} seconds "
            f"(the final 20% of its duration)."
        )
    return "\n".join(lines)


def _dump(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def build_chunk_request(
    chunk_index: int,
    total_chunks: int,
    chunk: list[TranscriptSegment],
    rolling_context: RollingContext,
    constraint: SelectionConstraint,
    instruction: str | None,
    source_duration: float,
    temperature: float = 0.2,
) -> GenerationRequest:
    """Build the request for one chunk.

    Args:
        chunk_index: Zero-based index of the chunk
        total_chunks: Number of chunks in the transcript
        chunk: Segments of this chunk
        rolling_context: Candidates gathered from earlier chunks
        constraint: Parsed instruction constraints
        instruction: The user's free-text request
        source_duration: Duration of the primary source in seconds
        temperature: Sampling temperature for the call

    Returns:
        GenerationRequest ready for GenerationClient
    """
    is_first = chunk_index == 0
    is_final = chunk_index == total_chunks - 1
    user_instruction = (instruction or "").strip() or DEFAULT_INSTRUCTION
    chunk_payload = _dump([segment.to_dict() for segment in chunk])
    constraints = describe_constraints(constraint, source_duration)

    messages = [{"role": "system", "content": SYSTEM_MESSAGE}]

    if len(rolling_context) > 0 and not is_first:
        messages.append(
            {
                "role": "user",
                "content": CONTEXT_PREAMBLE + _dump(rolling_context.to_payload()),
            }
        )
        messages.append({"role": "assistant", "content": CONTEXT_ACKNOWLEDGEMENT})

    if is_final:
        prompt = FINAL_PROMPT_TEMPLATE.format(
            instruction=user_instruction,
            constraints=constraints,
            position=chunk_index + 1,
            total=total_chunks,
            chunk=chunk_payload,
        )
    else:
        prompt = CANDIDATE_PROMPT_TEMPLATE.format(
            instruction=user_instruction,
            constraints=constraints,
            position=chunk_index + 1,
            total=total_chunks,
            chunk=chunk_payload,
        )

    messages.append({"role": "user", "content": prompt})
    return GenerationRequest(messages=messages, temperature=temperature)
