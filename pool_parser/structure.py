"""
Structure Builder
=================
Owns the subelement -> group containers discovered (or inferred) while
parsing, and renders them as an id-sorted tree.
"""

from __future__ import annotations

import base64
import logging
from typing import Optional

from .models import Group, Question, Subelement

logger = logging.getLogger(__name__)


class StructureBuilder:
    """
    Incrementally built pool hierarchy.

    Entries are created on first sight and never overwritten, so the first
    title seen for an id is the one kept.
    """

    def __init__(self):
        self.subelements: dict[str, Subelement] = {}

    def ensure_subelement(self, subelement_id: str, title: str = "") -> Subelement:
        subelement = self.subelements.get(subelement_id)
        if subelement is None:
            subelement = Subelement(id=subelement_id, title=title)
            self.subelements[subelement_id] = subelement
            logger.debug(
                f"Subelement {subelement_id} created"
                + (f": {title}" if title else " (derived)")
            )
        return subelement

    def ensure_group(
        self, subelement_id: str, group_id: str, title: str = ""
    ) -> Optional[Group]:
        """Create the group under an existing subelement; None if the subelement is unknown."""
        subelement = self.subelements.get(subelement_id)
        if subelement is None:
            return None

        group = subelement.groups.get(group_id)
        if group is None:
            group = Group(id=group_id, title=title)
            subelement.groups[group_id] = group
            logger.debug(
                f"Group {group_id} created"
                + (f": {title}" if title else " (derived)")
            )
        return group

    def add_question(self, question: Question) -> bool:
        """Attach a question id to its owning group. False if no such group."""
        subelement = self.subelements.get(question.subelement_id)
        if subelement is None:
            return False
        group = subelement.groups.get(question.group_id)
        if group is None:
            return False
        group.question_ids.append(question.id)
        return True


def render_tree(
    subelements: dict[str, Subelement],
    questions: dict[str, Question],
) -> list[dict]:
    """
    Map the hierarchy onto ordered plain data, sorting subelements, groups
    and questions by id. Question ids with no entry in ``questions`` are
    skipped.
    """
    tree = []
    for subelement in sorted(subelements.values(), key=lambda s: s.id):
        groups = []
        for group in sorted(subelement.groups.values(), key=lambda g: g.id):
            members = [
                questions[qid] for qid in group.question_ids
                if qid in questions
            ]
            groups.append({
                "id": group.id,
                "title": group.title,
                "questions": [
                    q.to_output()
                    for q in sorted(members, key=lambda q: q.id)
                ],
            })
        tree.append({
            "id": subelement.id,
            "title": subelement.title,
            "groups": groups,
        })
    return tree


def load_tree(tree: list[dict]) -> tuple[dict[str, Subelement], list[Question]]:
    """Rebuild subelements and questions from a rendered tree."""
    subelements: dict[str, Subelement] = {}
    questions: list[Question] = []

    for sub_data in tree:
        subelement = Subelement(id=sub_data["id"], title=sub_data.get("title", ""))
        subelements[subelement.id] = subelement

        for group_data in sub_data.get("groups", []):
            group = Group(id=group_data["id"], title=group_data.get("title", ""))
            subelement.groups[group.id] = group

            for q_data in group_data.get("questions", []):
                image = q_data.get("figure_image_base64")
                question = Question(
                    id=q_data["id"],
                    correct_answer=q_data["correct_answer"],
                    text=q_data.get("question", ""),
                    answers=q_data.get("answers", {}),
                    reference=q_data.get("reference"),
                    figure=q_data.get("figure"),
                    figure_image=base64.b64decode(image) if image else None,
                )
                group.question_ids.append(question.id)
                questions.append(question)

    return subelements, questions
