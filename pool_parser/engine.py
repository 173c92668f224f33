"""
Pool Parser Engine
==================
Main orchestrator that combines document reading, state machine parsing,
figure resolution, validation and output formatting.

Usage:
    engine = PoolParserEngine(config)
    result = engine.parse("path/to/technician_pool.docx")
    document = result.to_pool_document()

Architecture:
    DOCX → read_paragraphs → paragraphs → PoolStateMachine →
    (Subelements, Questions) → FigureResolver → ValidationEngine →
    PoolResult (JSON)
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .docx_reader import read_paragraphs
from .figures import FigureResolver, attach_figure_images
from .models import (
    ExamClass,
    ParseVersion,
    PoolMetadata,
    PoolResult,
    Subelement,
)
from .state_machine import PoolStateMachine
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ParserConfig:
    """Configuration for the parser engine."""

    # Figures
    images_dir: Optional[str] = None
    image_workers: int = 4
    svg_dpi: int = 150

    # Pool metadata (exam class is detected when not given)
    exam_class: Optional[str] = None
    pool_year: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


def detect_exam_class(subelements: dict[str, Subelement]) -> Optional[ExamClass]:
    """Exam class from the first subelement id's letter."""
    if not subelements:
        return None
    return ExamClass.from_prefix(next(iter(subelements)))


class PoolParserEngine:
    """
    Main question pool parsing engine.

    Orchestrates the full pipeline:
        1. Paragraph extraction
        2. State machine parsing (structure detection)
        3. Figure resolution (optional)
        4. Validation
        5. Output formatting

    Each parse uses its own state machine, so one engine may serve
    several threads.
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the package
        package_logger = logging.getLogger("pool_parser")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setFormatter(formatter)
            package_logger.addHandler(console)

        for handler in package_logger.handlers:
            handler.setLevel(log_level)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file)
            already = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path.absolute()
                for h in package_logger.handlers
            )
            if not already:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                package_logger.addHandler(file_handler)

    def parse(self, document_path: str) -> PoolResult:
        """
        Parse a pool document into a structured result.

        Args:
            document_path: Path to the .docx (or .txt) pool file.

        Returns:
            PoolResult containing the structure, questions and validation.

        Raises:
            FileNotFoundError: If the document doesn't exist.
            RuntimeError: If the document cannot be opened.
        """
        document_path = os.path.abspath(document_path)

        start_time = time.time()
        logger.info(f"Starting parse of: {document_path}")

        # ── Step 1: Extract paragraphs ────────────────────────────────
        logger.info("Phase 1: Paragraph extraction")
        paragraphs = read_paragraphs(document_path)

        result = self.parse_paragraphs(paragraphs)

        # ── Step 2: File metadata ─────────────────────────────────────
        result.metadata.source_document = os.path.basename(document_path)
        result.metadata.file_size_bytes = os.path.getsize(document_path)
        result.metadata.file_hash = self._compute_file_hash(document_path)

        elapsed = time.time() - start_time
        logger.info(
            f"Parse complete in {elapsed:.2f}s, "
            f"{len(result.questions)} questions extracted"
        )
        return result

    def parse_paragraphs(self, paragraphs: Sequence[str]) -> PoolResult:
        """Run parsing, figure resolution and validation on paragraph texts."""
        # ── State machine parsing ─────────────────────────────────────
        logger.info("Phase 2: State machine parsing")
        machine = PoolStateMachine()
        subelements, questions = machine.parse(paragraphs)

        # ── Figure resolution ─────────────────────────────────────────
        figures_requested = bool(self.config.images_dir)
        if figures_requested:
            logger.info("Phase 3: Figure resolution")
            resolver = FigureResolver(
                self.config.images_dir, dpi=self.config.svg_dpi
            )
            attach_figure_images(
                questions, resolver, max_workers=self.config.image_workers
            )

        # ── Validation ────────────────────────────────────────────────
        logger.info("Phase 4: Validation")
        validation = ValidationEngine().validate(
            subelements,
            questions,
            duplicate_ids=machine.duplicate_ids,
            figures_requested=figures_requested,
        )

        if self.config.exam_class:
            exam_class = ExamClass(self.config.exam_class.lower())
        else:
            exam_class = detect_exam_class(subelements)

        return PoolResult(
            metadata=PoolMetadata(
                exam_class=exam_class,
                pool_year=self.config.pool_year,
            ),
            parse_version=ParseVersion(
                parser_version=__version__,
                paragraph_count=len(paragraphs),
                question_count=len(questions),
            ),
            subelements=subelements,
            questions=questions,
            validation=validation,
        )

    def _compute_file_hash(self, filepath: str) -> str:
        """Compute SHA-256 hash of a file."""
        sha256 = hashlib.sha256()
        with open(filepath, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        return sha256.hexdigest()


def to_json(result: PoolResult, pretty: bool = False) -> str:
    """Serialize the ordered pool document."""
    return json.dumps(
        result.to_pool_document(),
        indent=2 if pretty else None,
        ensure_ascii=False,
    )


def save_json(result: PoolResult, filepath: str, pretty: bool = False):
    """Write the pool document to ``filepath``."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(to_json(result, pretty=pretty))
    logger.info(f"Saved JSON output: {path}")
