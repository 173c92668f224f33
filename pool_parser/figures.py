"""
Figure Resolver
===============
Looks up figure images for questions that cite a figure and returns their
bytes, rasterising SVG assets to PNG.

Lookup keys are normalized figure references: "T-1", a "t_1.png" file and
a "T1.svg" file all resolve to the key "t1".

SVG conversion tries, in order:
    1. PyMuPDF (in-process)
    2. rsvg-convert
    3. ImageMagick (magick / convert)
"""

from __future__ import annotations

import base64
import logging
import re
import shutil
import subprocess
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Optional

import fitz  # PyMuPDF

from .models import Question

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg"}

_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_figure_ref(ref: str) -> str:
    """Lowercase and drop whitespace, hyphens and underscores."""
    return _SEPARATORS.sub("", str(ref).strip().lower())


# ─── SVG Converters ───────────────────────────────────────────────────────────


def convert_svg_with_pymupdf(svg_path: Path, dpi: int = 150) -> Optional[bytes]:
    with fitz.open(str(svg_path)) as doc:
        if doc.page_count == 0:
            return None
        pix = doc[0].get_pixmap(dpi=dpi)
        return pix.tobytes("png")


def _run_converter(command: list[str], output: Path) -> Optional[bytes]:
    if not shutil.which(command[0]):
        return None
    try:
        subprocess.run(command, check=True, capture_output=True, timeout=60)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"{command[0]} failed: {e}")
        return None
    if not output.exists() or output.stat().st_size == 0:
        return None
    return output.read_bytes()


def convert_svg_with_rsvg(svg_path: Path, dpi: int = 150) -> Optional[bytes]:
    with tempfile.TemporaryDirectory() as tmp:
        output = Path(tmp) / "figure.png"
        return _run_converter(
            ["rsvg-convert", "-f", "png", "-d", str(dpi), "-p", str(dpi),
             "-o", str(output), str(svg_path)],
            output,
        )


def convert_svg_with_imagemagick(svg_path: Path, dpi: int = 150) -> Optional[bytes]:
    with tempfile.TemporaryDirectory() as tmp:
        output = Path(tmp) / "figure.png"
        for tool in ("magick", "convert"):
            data = _run_converter(
                [tool, "-density", str(dpi), str(svg_path), str(output)],
                output,
            )
            if data:
                return data
    return None


SVG_CONVERTERS: tuple[Callable[[Path, int], Optional[bytes]], ...] = (
    convert_svg_with_pymupdf,
    convert_svg_with_rsvg,
    convert_svg_with_imagemagick,
)


# ─── Resolver ─────────────────────────────────────────────────────────────────


class FigureResolver:
    """
    Resolves figure references against a directory of image files.

    The directory is scanned once at construction. ``resolve`` is a pure
    function of the normalized reference and caches its results, so it is
    safe to call from several threads.
    """

    def __init__(
        self,
        image_dir: Optional[str],
        dpi: int = 150,
        converters: Optional[Iterable[Callable[[Path, int], Optional[bytes]]]] = None,
    ):
        self.image_dir = Path(image_dir) if image_dir else None
        self.dpi = dpi
        self.converters = tuple(converters) if converters is not None else SVG_CONVERTERS
        self.image_map = self._build_image_map()
        self._cache: dict[str, Optional[bytes]] = {}
        self._lock = threading.Lock()

    def _build_image_map(self) -> dict[str, Path]:
        if not self.image_dir or not self.image_dir.is_dir():
            if self.image_dir:
                logger.warning(f"Figure directory not found: {self.image_dir}")
            return {}

        image_map = {}
        for path in sorted(self.image_dir.iterdir()):
            if not path.is_file():
                continue
            if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
                continue
            image_map[normalize_figure_ref(path.stem)] = path

        logger.info(f"Indexed {len(image_map)} figure images in {self.image_dir}")
        return image_map

    def resolve(self, figure_ref: Optional[str]) -> Optional[bytes]:
        """Return image bytes for ``figure_ref``, or None if unavailable."""
        if not figure_ref:
            return None

        key = normalize_figure_ref(figure_ref)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        data = self._load(key)

        with self._lock:
            self._cache.setdefault(key, data)
            return self._cache[key]

    def encode(self, figure_ref: Optional[str]) -> Optional[str]:
        """Base64 form of ``resolve``."""
        data = self.resolve(figure_ref)
        if data is None:
            return None
        return base64.b64encode(data).decode("ascii")

    def _load(self, key: str) -> Optional[bytes]:
        path = self.image_map.get(key)
        if not path or not path.exists():
            return None

        if path.suffix.lower() == ".svg":
            return self._convert_svg(path)
        return path.read_bytes()

    def _convert_svg(self, svg_path: Path) -> Optional[bytes]:
        for converter in self.converters:
            try:
                data = converter(svg_path, self.dpi)
            except Exception as e:
                logger.debug(f"{converter.__name__} failed on {svg_path}: {e}")
                continue
            if data:
                return data

        logger.warning(
            f"Could not convert SVG {svg_path}; "
            f"install PyMuPDF, rsvg-convert or ImageMagick"
        )
        return None


def attach_figure_images(
    questions: list[Question],
    resolver: FigureResolver,
    max_workers: int = 4,
) -> int:
    """
    Populate ``figure_image`` on every question citing a resolvable figure.

    Each distinct figure is resolved once (in parallel when
    ``max_workers > 1``); assignment happens on the calling thread.

    Returns:
        Number of questions that received an image.
    """
    by_key: dict[str, list[Question]] = {}
    refs: dict[str, str] = {}
    for q in questions:
        if not q.figure:
            continue
        key = normalize_figure_ref(q.figure)
        by_key.setdefault(key, []).append(q)
        refs.setdefault(key, q.figure)

    if not by_key:
        return 0

    keys = sorted(by_key)
    if max_workers > 1 and len(keys) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            images = dict(zip(keys, pool.map(resolver.resolve, [refs[k] for k in keys])))
    else:
        images = {k: resolver.resolve(refs[k]) for k in keys}

    attached = 0
    for key in keys:
        data = images[key]
        if data is None:
            logger.warning(
                f"No image for figure {refs[key]} "
                f"({', '.join(q.id for q in by_key[key])})"
            )
            continue
        for q in by_key[key]:
            if q.figure_image is None:
                q.figure_image = data
                attached += 1

    logger.info(f"Attached figure images to {attached} questions")
    return attached
