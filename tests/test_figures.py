"""
Tests for figure resolution: key normalization, raster lookup, SVG
conversion fallbacks and image attachment.
"""

from __future__ import annotations

import base64

import pytest

from pool_parser.figures import (
    FigureResolver,
    attach_figure_images,
    convert_svg_with_pymupdf,
    normalize_figure_ref,
)
from pool_parser.models import Question

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

SIMPLE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="40" height="20">'
    '<rect x="0" y="0" width="40" height="20" fill="black"/>'
    "</svg>"
)


@pytest.fixture
def image_dir(tmp_path):
    folder = tmp_path / "figures"
    folder.mkdir()
    (folder / "T1.png").write_bytes(PNG_SIGNATURE + b"t1")
    (folder / "e5_1.jpg").write_bytes(b"jpeg-e5-1")
    (folder / "T-2.svg").write_text(SIMPLE_SVG, encoding="utf-8")
    (folder / "notes.txt").write_text("not an image", encoding="utf-8")
    return folder


def _question(qid: str, figure=None) -> Question:
    return Question(id=qid, correct_answer="A", text="?", figure=figure)


class CountingResolver(FigureResolver):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    def _load(self, key):
        self.calls.append(key)
        return super()._load(key)


# ═══════════════════════════════════════════════════════════════════════════════
# KEY NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════════════


class TestNormalizeFigureRef:

    def test_separators_and_case(self):
        assert normalize_figure_ref("T-1") == "t1"
        assert normalize_figure_ref("t_1") == "t1"
        assert normalize_figure_ref(" E5 - 1 ") == "e51"
        assert normalize_figure_ref("G7-1") == normalize_figure_ref("g7_1")


# ═══════════════════════════════════════════════════════════════════════════════
# RESOLVER
# ═══════════════════════════════════════════════════════════════════════════════


class TestFigureResolver:

    def test_image_map_skips_unsupported_files(self, image_dir):
        resolver = FigureResolver(str(image_dir))
        assert sorted(resolver.image_map) == ["e51", "t1", "t2"]

    def test_raster_returned_as_is(self, image_dir):
        resolver = FigureResolver(str(image_dir))
        assert resolver.resolve("T-1") == PNG_SIGNATURE + b"t1"
        assert resolver.resolve("E5-1") == b"jpeg-e5-1"

    def test_unknown_figure(self, image_dir):
        resolver = FigureResolver(str(image_dir))
        assert resolver.resolve("T-9") is None
        assert resolver.resolve(None) is None
        assert resolver.encode("T-9") is None

    def test_missing_directory(self, tmp_path):
        resolver = FigureResolver(str(tmp_path / "absent"))
        assert resolver.image_map == {}
        assert resolver.resolve("T-1") is None

    def test_no_directory(self):
        assert FigureResolver(None).resolve("T-1") is None

    def test_encode_is_base64(self, image_dir):
        resolver = FigureResolver(str(image_dir))
        encoded = resolver.encode("t1")
        assert base64.b64decode(encoded) == PNG_SIGNATURE + b"t1"

    def test_svg_converter_fallback(self, image_dir):
        attempts = []

        def broken(path, dpi):
            attempts.append("broken")
            raise RuntimeError("renderer crashed")

        def unavailable(path, dpi):
            attempts.append("unavailable")
            return None

        def working(path, dpi):
            attempts.append("working")
            return b"converted-" + str(dpi).encode()

        resolver = FigureResolver(
            str(image_dir), dpi=96, converters=[broken, unavailable, working]
        )
        assert resolver.resolve("T-2") == b"converted-96"
        assert attempts == ["broken", "unavailable", "working"]

    def test_svg_all_converters_fail(self, image_dir):
        resolver = FigureResolver(
            str(image_dir), converters=[lambda path, dpi: None]
        )
        assert resolver.resolve("T-2") is None

    def test_results_cached(self, image_dir):
        calls = []

        def converter(path, dpi):
            calls.append(path.name)
            return b"png"

        resolver = FigureResolver(str(image_dir), converters=[converter])
        assert resolver.resolve("T-2") == b"png"
        assert resolver.resolve("t_2") == b"png"
        assert calls == ["T-2.svg"]

    def test_misses_cached(self, image_dir):
        resolver = CountingResolver(str(image_dir))
        resolver.resolve("T-9")
        resolver.resolve("T-9")
        assert resolver.calls == ["t9"]

    def test_pymupdf_renders_svg(self, image_dir):
        data = convert_svg_with_pymupdf(image_dir / "T-2.svg", dpi=72)
        assert data.startswith(PNG_SIGNATURE)


# ═══════════════════════════════════════════════════════════════════════════════
# ATTACHMENT
# ═══════════════════════════════════════════════════════════════════════════════


class TestAttachFigureImages:

    def test_each_figure_resolved_once(self, image_dir):
        questions = [
            _question("T6C01", "T-1"),
            _question("T6C02", "T-1"),
            _question("T6C03"),
            _question("T6C04", "T-9"),
        ]
        resolver = CountingResolver(str(image_dir))

        attached = attach_figure_images(questions, resolver, max_workers=1)

        assert attached == 2
        assert sorted(resolver.calls) == ["t1", "t9"]
        assert questions[0].figure_image == PNG_SIGNATURE + b"t1"
        assert questions[1].figure_image == PNG_SIGNATURE + b"t1"
        assert questions[2].figure_image is None
        assert questions[3].figure_image is None

    def test_parallel_resolution(self, image_dir):
        questions = [
            _question("E5C01", "E5-1"),
            _question("T6C01", "T-1"),
            _question("T6C02", "T-2"),
        ]
        resolver = FigureResolver(
            str(image_dir), converters=[lambda path, dpi: b"svg-png"]
        )

        attached = attach_figure_images(questions, resolver, max_workers=4)

        assert attached == 3
        assert [q.figure_image for q in questions] == [
            b"jpeg-e5-1",
            PNG_SIGNATURE + b"t1",
            b"svg-png",
        ]

    def test_existing_image_kept(self, image_dir):
        question = _question("T6C01", "T-1")
        question.figure_image = b"already-set"
        attached = attach_figure_images([question], FigureResolver(str(image_dir)))
        assert attached == 0
        assert question.figure_image == b"already-set"

    def test_no_figures(self, image_dir):
        resolver = CountingResolver(str(image_dir))
        assert attach_figure_images([_question("T1A01")], resolver) == 0
        assert resolver.calls == []

    def test_image_in_output(self, image_dir):
        question = _question("T6C01", "T-1")
        attach_figure_images([question], FigureResolver(str(image_dir)))
        output = question.to_output()
        assert base64.b64decode(output["figure_image_base64"]) == (
            PNG_SIGNATURE + b"t1"
        )
