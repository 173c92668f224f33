"""
Document Reader
===============
Yields the paragraph texts of a question pool document in reading order.

Supported inputs:
    - .docx  Word documents (python-docx), one entry per paragraph
    - .txt   plain-text exports, one entry per line
"""

from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".docx", ".txt"}


def read_paragraphs(path: str) -> list[str]:
    """
    Read paragraph texts from a pool document.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        RuntimeError: If the file type is unsupported or cannot be opened.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Document not found: {path}")

    suffix = Path(path).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise RuntimeError(
            f"Unsupported document type '{suffix}' "
            f"(expected one of: {', '.join(sorted(SUPPORTED_SUFFIXES))})"
        )

    if suffix == ".txt":
        with open(path, "r", encoding="utf-8") as f:
            paragraphs = f.read().splitlines()
    else:
        try:
            doc = Document(path)
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as e:
            raise RuntimeError(f"Cannot open Word document {path}: {e}") from e
        paragraphs = [p.text for p in doc.paragraphs]

    logger.info(f"Read {len(paragraphs)} paragraphs from {path}")
    return paragraphs
