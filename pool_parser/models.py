"""
Data Models
===========
Pydantic models for the parsed question pool.
All models are serializable to JSON; figure image bytes are only emitted
through the explicit pool-document rendering (as base64).
"""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


# ─── Enums ────────────────────────────────────────────────────────────────────


class LineKind(str, Enum):
    """Structural role of a single paragraph."""
    SUBELEMENT_HEADER = "subelement_header"
    GROUP_HEADER = "group_header"
    QUESTION_ID = "question_id"
    ANSWER = "answer"
    CONTINUATION = "continuation"
    IGNORED = "ignored"


class ExamClass(str, Enum):
    """License class a pool belongs to, keyed by question id prefix."""
    TECHNICIAN = "technician"
    GENERAL = "general"
    EXTRA = "extra"

    @classmethod
    def from_prefix(cls, prefix: str) -> Optional[ExamClass]:
        return {
            "T": cls.TECHNICIAN,
            "G": cls.GENERAL,
            "E": cls.EXTRA,
        }.get(prefix[:1].upper())


# ─── Pool Structure Models ────────────────────────────────────────────────────


class Question(BaseModel):
    """
    A single pool question.

    ``answers`` keeps document order; ``figure_image`` holds raw image
    bytes and is populated only after figure resolution.
    """
    id: str = Field(pattern=r"^[TEG]\d[A-Z]\d{2}$")
    correct_answer: str = Field(pattern=r"^[A-D]$")
    text: str = ""
    answers: dict[str, str] = Field(default_factory=dict)
    reference: Optional[str] = None
    figure: Optional[str] = None
    figure_image: Optional[bytes] = Field(default=None, exclude=True)

    @computed_field
    @property
    def subelement_id(self) -> str:
        return self.id[:2]

    @computed_field
    @property
    def group_id(self) -> str:
        return self.id[:3]

    @computed_field
    @property
    def has_all_answers(self) -> bool:
        """True when exactly the four choices A-D are present."""
        return sorted(self.answers) == ["A", "B", "C", "D"]

    def to_output(self) -> dict:
        """Render the question node of the pool document."""
        data = {
            "id": self.id,
            "question": self.text,
            "answers": dict(self.answers),
            "correct_answer": self.correct_answer,
            "reference": self.reference,
            "figure": self.figure,
        }
        if self.figure_image is not None:
            data["figure_image_base64"] = base64.b64encode(
                self.figure_image
            ).decode("ascii")
        return data


class Group(BaseModel):
    """A sub-topic within a subelement. Holds question ids, not questions."""
    id: str = Field(pattern=r"^[TEG]\d[A-Z]$")
    title: str = ""
    question_ids: list[str] = Field(default_factory=list)


class Subelement(BaseModel):
    """Top-level topic area of the pool."""
    id: str = Field(pattern=r"^[TEG]\d$")
    title: str = ""
    groups: dict[str, Group] = Field(default_factory=dict)


# ─── Result Models ────────────────────────────────────────────────────────────


class PoolMetadata(BaseModel):
    """Metadata about the source document / pool."""
    exam_class: Optional[ExamClass] = None
    pool_year: Optional[str] = None
    source_document: str = ""
    file_hash: str = ""
    file_size_bytes: int = 0


class ParseVersion(BaseModel):
    """Version tracking for a parse run."""
    parser_version: str = "1.0.0"
    parse_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    paragraph_count: int = 0
    question_count: int = 0


class ValidationReport(BaseModel):
    """Post-parse validation report."""
    total_questions: int = 0
    complete_questions: int = 0
    questions_missing_answers: list[str] = Field(default_factory=list)
    questions_with_unlisted_correct_answer: list[str] = Field(
        default_factory=list
    )
    questions_missing_text: list[str] = Field(default_factory=list)
    duplicate_question_ids: list[str] = Field(default_factory=list)
    empty_groups: list[str] = Field(default_factory=list)
    untitled_subelements: list[str] = Field(default_factory=list)
    untitled_groups: list[str] = Field(default_factory=list)
    figures_referenced: int = 0
    figures_unresolved: list[str] = Field(default_factory=list)
    questions_per_subelement: dict[str, int] = Field(default_factory=dict)

    @computed_field
    @property
    def success_rate(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return round(
            self.complete_questions / self.total_questions * 100,
            2
        )


class PoolResult(BaseModel):
    """
    Complete output of a parse run: the structure tree, the flat question
    list in parse order, and the validation report.
    """
    metadata: PoolMetadata = Field(default_factory=PoolMetadata)
    parse_version: ParseVersion = Field(default_factory=ParseVersion)
    subelements: dict[str, Subelement] = Field(default_factory=dict)
    questions: list[Question] = Field(default_factory=list)
    validation: ValidationReport = Field(default_factory=ValidationReport)

    def question_index(self) -> dict[str, Question]:
        return {q.id: q for q in self.questions}

    def to_pool_document(self) -> dict:
        """
        Render the ordered pool document: subelements, groups and questions
        each sorted by id.
        """
        # structure.py imports this module
        from .structure import render_tree

        exam_class = self.metadata.exam_class
        return {
            "exam_class": exam_class.value if exam_class else None,
            "pool_year": self.metadata.pool_year,
            "subelements": render_tree(
                self.subelements, self.question_index()
            ),
        }

