"""
State Machine Parser
====================
Deterministic state machine that rebuilds the subelement / group / question
hierarchy of a question pool from its flat paragraph sequence.

Each paragraph is classified first (see ``classifier``), then dispatched on
its ``LineKind``. The machine never raises on text content: anything it
cannot place is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .classifier import (
    LineMatch,
    classify_line,
    collapse_whitespace,
    find_figure_ref,
)
from .models import LineKind, Question, Subelement
from .structure import StructureBuilder

logger = logging.getLogger(__name__)


class ParserState(Enum):
    """Position of the parser within the pool."""
    PREAMBLE = "PREAMBLE"
    AWAITING_QUESTION = "AWAITING_QUESTION"
    QUESTION_TEXT = "QUESTION_TEXT"
    ANSWERS = "ANSWERS"


@dataclass
class ParserContext:
    """Context carried from one paragraph to the next."""
    current_subelement_id: Optional[str] = None
    current_group_id: Optional[str] = None
    current_question: Optional[Question] = None


class PoolStateMachine:
    """
    Finite State Machine that folds an ordered paragraph sequence into a
    populated ``StructureBuilder`` and a flat question list.

    One instance per document; instances share no state.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset the state machine for a fresh parsing run."""
        self.state = ParserState.PREAMBLE
        self.context = ParserContext()
        self.structure = StructureBuilder()
        self.questions: list[Question] = []
        self.duplicate_ids: list[str] = []
        self._emitted_ids: set[str] = set()

    @property
    def collecting_text(self) -> bool:
        return self.state == ParserState.QUESTION_TEXT

    @property
    def seen_first_subelement(self) -> bool:
        return self.state != ParserState.PREAMBLE

    @property
    def subelements(self) -> dict[str, Subelement]:
        return self.structure.subelements

    def parse(
        self, paragraphs: Iterable[str]
    ) -> tuple[dict[str, Subelement], list[Question]]:
        """Parse paragraphs into (subelements by id, questions in parse order)."""
        self.reset()

        for paragraph in paragraphs:
            self.step(paragraph)

        # Finalize the last question
        self.finalize()

        logger.info(
            f"Parsed {len(self.questions)} questions in "
            f"{len(self.subelements)} subelements"
        )
        return self.subelements, self.questions

    def step(self, paragraph: str) -> LineMatch:
        """Consume one paragraph and return how it was classified."""
        match = classify_line(paragraph, self.context.current_subelement_id)

        # Errata and title pages precede the first subelement header
        if (
            self.state == ParserState.PREAMBLE
            and match.kind != LineKind.SUBELEMENT_HEADER
        ):
            return match

        if match.kind == LineKind.SUBELEMENT_HEADER:
            self._enter_subelement(match)
        elif match.kind == LineKind.GROUP_HEADER:
            self._enter_group(match)
        elif match.kind == LineKind.QUESTION_ID:
            self._start_new_question(match)
        elif match.kind == LineKind.ANSWER:
            self._record_answer(match)
        elif match.kind == LineKind.CONTINUATION:
            self._append_text(match)

        return match

    def finalize(self):
        """Finalize any pending (in-progress) question."""
        if self.context.current_question:
            self._finalize_question()

    # ─── Transitions ──────────────────────────────────────────────────────

    def _enter_subelement(self, match: LineMatch):
        self.finalize()
        self.context.current_subelement_id = match.subelement_id
        self.structure.ensure_subelement(match.subelement_id, match.title)
        self.state = ParserState.AWAITING_QUESTION

    def _enter_group(self, match: LineMatch):
        self.finalize()
        self.context.current_group_id = match.group_id
        self.structure.ensure_group(
            self.context.current_subelement_id, match.group_id, match.title
        )
        self.state = ParserState.AWAITING_QUESTION

    def _start_new_question(self, match: LineMatch):
        """Finalize previous and start fresh state."""
        self.finalize()

        # Question ids carry their own hierarchy; headers may be missing
        self.structure.ensure_subelement(match.subelement_id)
        self.structure.ensure_group(match.subelement_id, match.group_id)
        self.context.current_subelement_id = match.subelement_id
        self.context.current_group_id = match.group_id

        logger.debug(f"Detected question {match.question_id}")

        self.context.current_question = Question(
            id=match.question_id,
            correct_answer=match.correct_answer,
            reference=match.reference,
            text=collapse_whitespace(match.text),
        )
        self.state = ParserState.QUESTION_TEXT

    def _record_answer(self, match: LineMatch):
        question = self.context.current_question
        if not question:
            return
        question.answers[match.answer_letter] = match.text
        self.state = ParserState.ANSWERS

    def _append_text(self, match: LineMatch):
        question = self.context.current_question
        if not question or self.state != ParserState.QUESTION_TEXT:
            return

        if question.figure is None and match.figure:
            question.figure = match.figure

        text = collapse_whitespace(match.text)
        if question.text:
            question.text += " " + text
        else:
            question.text = text

    def _finalize_question(self):
        q = self.context.current_question
        self.context.current_question = None
        self.state = ParserState.AWAITING_QUESTION

        # Captions appended as text may cite the figure
        if q.figure is None:
            q.figure = find_figure_ref(q.text)

        if q.id in self._emitted_ids:
            logger.warning(f"Duplicate question id {q.id}; keeping the first")
            self.duplicate_ids.append(q.id)
            return

        if not self.structure.add_question(q):
            logger.debug(f"Dropping {q.id}: no group {q.group_id}")
            return

        self._emitted_ids.add(q.id)
        self.questions.append(q)


def parse_paragraphs(
    paragraphs: Iterable[str],
) -> tuple[dict[str, Subelement], list[Question]]:
    """Parse with a fresh state machine."""
    return PoolStateMachine().parse(paragraphs)
