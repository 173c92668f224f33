"""
Validation Engine
=================
Post-parse validation and reporting.

After parsing each pool, generates a report:
    - Total Questions
    - Complete Questions (all four choices present)
    - Questions Missing Answers
    - Questions Whose Correct Letter Has No Choice Text
    - Duplicate Question Ids
    - Empty / Untitled Groups and Untitled Subelements
    - Unresolved Figures

Reports only; never alters the parse.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from .models import Question, Subelement, ValidationReport

logger = logging.getLogger(__name__)


class ValidationEngine:
    """
    Validates a parsed pool and produces a report.
    """

    def validate(
        self,
        subelements: dict[str, Subelement],
        questions: list[Question],
        duplicate_ids: Optional[list[str]] = None,
        figures_requested: bool = False,
    ) -> ValidationReport:
        """
        Run full validation on a parsed pool.

        Args:
            subelements: Structure tree by subelement id.
            questions: Flat question list in parse order.
            duplicate_ids: Ids the parser dropped as repeats.
            figures_requested: Whether figure images were resolved, so that
                questions citing a figure without an image are reported.

        Returns:
            ValidationReport with all detected issues.
        """
        report = ValidationReport()
        report.duplicate_question_ids = sorted(set(duplicate_ids or []))

        for subelement in sorted(subelements.values(), key=lambda s: s.id):
            if not subelement.title:
                report.untitled_subelements.append(subelement.id)
            for group in sorted(subelement.groups.values(), key=lambda g: g.id):
                if not group.title:
                    report.untitled_groups.append(group.id)
                if not group.question_ids:
                    report.empty_groups.append(group.id)

        if not questions:
            logger.warning("No questions to validate")
            return report

        report.total_questions = len(questions)
        report.questions_per_subelement = dict(
            sorted(Counter(q.subelement_id for q in questions).items())
        )

        for q in questions:
            if q.has_all_answers:
                report.complete_questions += 1
            else:
                report.questions_missing_answers.append(q.id)

            if q.correct_answer not in q.answers:
                report.questions_with_unlisted_correct_answer.append(q.id)

            if not q.text.strip():
                report.questions_missing_text.append(q.id)

            if q.figure:
                report.figures_referenced += 1
                if figures_requested and q.figure_image is None:
                    report.figures_unresolved.append(q.id)

        # Log summary
        logger.info("=" * 60)
        logger.info("VALIDATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Total Questions: {report.total_questions}")
        logger.info(
            f"Complete Questions: {report.complete_questions} "
            f"({report.success_rate}%)"
        )
        logger.info(
            f"Questions Missing Answers: "
            f"{len(report.questions_missing_answers)}"
        )
        logger.info(
            f"Correct Answer Not Listed: "
            f"{len(report.questions_with_unlisted_correct_answer)}"
        )
        logger.info(
            f"Duplicate Question Ids: {len(report.duplicate_question_ids)}"
        )
        logger.info(f"Empty Groups: {len(report.empty_groups)}")
        logger.info(f"Figures Referenced: {report.figures_referenced}")
        if figures_requested:
            logger.info(
                f"Figures Unresolved: {len(report.figures_unresolved)}"
            )
        logger.info("=" * 60)

        return report
