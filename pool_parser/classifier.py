"""
Line Classifier
===============
Tags a single pool paragraph with its structural role.

Rules are tried in a fixed order and the first one that accepts the line
wins. Every rule returns either a ``LineMatch`` or ``None`` to decline, so
a rule can reject a line it syntactically matches (a group header for a
subelement other than the current one) and let later rules see it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .models import LineKind

# ─── Anchor Patterns ──────────────────────────────────────────────────────────

# Plain hyphen, en dash or em dash
DASH = "[-–—]"

# Header and answer paragraphs may carry soft line breaks, hence DOTALL

# "SUBELEMENT T1 – FCC Rules, descriptions, and definitions ..."
SUBELEMENT_PATTERN = re.compile(
    rf"^\s*SUBELEMENT\s+([TEG]\d)\b\s*{DASH}?\s*(.*)$", re.IGNORECASE | re.DOTALL
)

# "T1A - Purpose and permissible use ..." or "T1A Purpose ..."
# (?!\d) keeps errata lines such as "G1A04 – question deleted" out
GROUP_PATTERN = re.compile(
    rf"^\s*([TEG]\d[A-Z])(?!\d)\s*{DASH}?\s*(.+)$", re.IGNORECASE | re.DOTALL
)

# "T1A01 (C) [97.1]"
QUESTION_ID_PATTERN = re.compile(
    r"^\s*([TEG]\d[A-Z]\d{2})\s*\(([A-D])\)", re.IGNORECASE
)

# "A. Some answer text" or "D.Some answer text"
ANSWER_PATTERN = re.compile(r"^\s*([A-D])\.\s*(.+)$", re.DOTALL)

# "figure T-1", "Figure E5-1", "Figure E73"
FIGURE_REF_PATTERN = re.compile(r"figure\s+([TEG]\d*-?\d+)", re.IGNORECASE)

# Trailing "[97.1]" citation on a question id line
REFERENCE_PATTERN = re.compile(r"\[(.+?)\]\s*$")

# Trailing "[4 Exam Questions - 4 Groups]" on headers
BRACKET_SUFFIX_PATTERN = re.compile(r"\s*\[.*\]\s*$")


@dataclass(frozen=True)
class LineMatch:
    """Tagged classification result for one paragraph."""
    kind: LineKind
    line: str = ""
    subelement_id: Optional[str] = None
    group_id: Optional[str] = None
    question_id: Optional[str] = None
    correct_answer: Optional[str] = None
    answer_letter: Optional[str] = None
    title: str = ""
    text: str = ""
    reference: Optional[str] = None
    figure: Optional[str] = None


Rule = Callable[[str, Optional[str]], Optional[LineMatch]]


def find_figure_ref(text: str) -> Optional[str]:
    """Return the figure identifier cited in ``text``, if any."""
    match = FIGURE_REF_PATTERN.search(text)
    if match:
        return match.group(1).upper()
    return None


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def _strip_title(title: str) -> str:
    return BRACKET_SUFFIX_PATTERN.sub("", collapse_whitespace(title)).strip()


# ─── Rules ────────────────────────────────────────────────────────────────────


def match_subelement_header(
    line: str, current_subelement_id: Optional[str] = None
) -> Optional[LineMatch]:
    match = SUBELEMENT_PATTERN.match(line)
    if not match:
        return None
    return LineMatch(
        kind=LineKind.SUBELEMENT_HEADER,
        line=line,
        subelement_id=match.group(1).upper(),
        title=collapse_whitespace(match.group(2)),
    )


def match_group_header(
    line: str, current_subelement_id: Optional[str] = None
) -> Optional[LineMatch]:
    # A question id line also satisfies the group pattern prefix
    if QUESTION_ID_PATTERN.match(line):
        return None

    match = GROUP_PATTERN.match(line)
    if not match:
        return None

    group_id = match.group(1).upper()
    if not current_subelement_id or group_id[:2] != current_subelement_id:
        return None

    return LineMatch(
        kind=LineKind.GROUP_HEADER,
        line=line,
        subelement_id=group_id[:2],
        group_id=group_id,
        title=_strip_title(match.group(2)),
    )


def match_question_id(
    line: str, current_subelement_id: Optional[str] = None
) -> Optional[LineMatch]:
    match = QUESTION_ID_PATTERN.match(line)
    if not match:
        return None

    question_id = match.group(1).upper()
    remainder = line[match.end():].strip()

    reference = None
    ref_match = REFERENCE_PATTERN.search(remainder)
    if ref_match:
        reference = ref_match.group(1)
        remainder = remainder[:ref_match.start()].strip()

    return LineMatch(
        kind=LineKind.QUESTION_ID,
        line=line,
        subelement_id=question_id[:2],
        group_id=question_id[:3],
        question_id=question_id,
        correct_answer=match.group(2).upper(),
        text=remainder,
        reference=reference,
    )


def match_answer(
    line: str, current_subelement_id: Optional[str] = None
) -> Optional[LineMatch]:
    match = ANSWER_PATTERN.match(line)
    if not match:
        return None
    return LineMatch(
        kind=LineKind.ANSWER,
        line=line,
        answer_letter=match.group(1),
        text=collapse_whitespace(match.group(2)),
    )


def match_continuation(
    line: str, current_subelement_id: Optional[str] = None
) -> Optional[LineMatch]:
    return LineMatch(
        kind=LineKind.CONTINUATION,
        line=line,
        text=line,
        figure=find_figure_ref(line),
    )


# Precedence order; first accepting rule wins
CLASSIFICATION_RULES: tuple[Rule, ...] = (
    match_subelement_header,
    match_group_header,
    match_question_id,
    match_answer,
    match_continuation,
)


def classify_line(
    line: str, current_subelement_id: Optional[str] = None
) -> LineMatch:
    """
    Classify one paragraph.

    Args:
        line: Raw paragraph text; surrounding whitespace is ignored.
        current_subelement_id: Subelement in effect, used to confirm
            group headers.

    Returns:
        The first accepting rule's ``LineMatch``; ``IGNORED`` for blank
        lines.
    """
    line = line.strip()
    if not line:
        return LineMatch(kind=LineKind.IGNORED)

    for rule in CLASSIFICATION_RULES:
        result = rule(line, current_subelement_id)
        if result is not None:
            return result

    # Only reached if the rule tuple loses its catch-all continuation rule
    return LineMatch(kind=LineKind.IGNORED, line=line)
