"""Derive numeric selection constraints from a free-text instruction."""

import re

from ..domain.models import SelectionConstraint

# First "<number> second(s)" / "<number> sec(s)" mention wins
DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(?:second|sec)s?\b", re.IGNORECASE)
END_ANCHOR_PATTERN = re.compile(r"\b(?:end|last)\b", re.IGNORECASE)


def parse_selection_constraint(instruction: str | None) -> SelectionConstraint:
    """Extract an explicit duration and an end-anchor flag.

    Instructions that match neither pattern yield the defaults; this never
    rejects an instruction.
    """
    if not instruction:
        return SelectionConstraint()

    explicit_duration = None
    match = DURATION_PATTERN.search(instruction)
    if match:
        value = float(match.group(1))
        if value > 0:
            explicit_duration = value

    return SelectionConstraint(
        explicit_duration_seconds=explicit_duration,
        require_from_end=bool(END_ANCHOR_PATTERN.search(instruction)),
    )
