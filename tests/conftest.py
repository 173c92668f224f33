"""Shared fixtures: a small Technician pool excerpt in document order."""

from __future__ import annotations

import logging

import pytest

SAMPLE_POOL = [
    "2022-2026 Technician Class (Element 2) Question Pool",
    "Effective July 1, 2022",
    "ERRATA",
    "T1A04 – question deleted",
    "T1A05 (A) [97.3(a)(11)] A question withdrawn before publication",
    "SUBELEMENT T1 – COMMISSION'S RULES - [6 Exam Questions - 6 Groups]",
    "T1A – Purpose and permissible use of the Amateur Radio Service "
    "[1 Exam Question]",
    "T1A01 (C) [97.1]",
    "Which of the following is part of the Basis and Purpose of the "
    "Amateur Radio Service?",
    "A. Providing personal radio communications for as many citizens as possible",
    "B. Providing communications for international non-profit organizations",
    "C. Advancing skills in the technical and communication phases of the radio art",
    "D. All these choices are correct",
    "~~",
    "T1A02 (C) [97.1]",
    "Which agency regulates and enforces the rules for the Amateur Radio Service "
    "in the United States?",
    "A. FEMA",
    "B. Homeland Security",
    "C. The FCC",
    "D. All these choices are correct",
    "~~",
    "SUBELEMENT T6 — ELECTRICAL COMPONENTS - [4 Exam Questions - 4 Groups]",
    "T6C — Circuit diagrams; schematic symbols",
    "T6C02 (A)",
    "What is component 1 in figure T-1?",
    "A. Resistor",
    "B. Transistor",
    "C. Battery",
    "D. Connector",
    "~~",
    "T6C03 (B)",
    "What is component 2 in the schematic?",
    "Refer to figure T-1",
    "A. Resistor",
    "B. Transistor",
    "C. Indicator lamp",
    "D. Connector",
    "~~",
]


@pytest.fixture
def sample_paragraphs() -> list[str]:
    return list(SAMPLE_POOL)


@pytest.fixture
def pool_txt(tmp_path):
    path = tmp_path / "technician_pool.txt"
    path.write_text("\n".join(SAMPLE_POOL), encoding="utf-8")
    return path


@pytest.fixture
def pool_docx(tmp_path):
    from docx import Document

    doc = Document()
    for paragraph in SAMPLE_POOL:
        doc.add_paragraph(paragraph)
    path = tmp_path / "technician_pool.docx"
    doc.save(str(path))
    return path


@pytest.fixture(autouse=True)
def reset_package_logger():
    # Engines attach handlers to whatever stderr was current
    yield
    logger = logging.getLogger("pool_parser")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
