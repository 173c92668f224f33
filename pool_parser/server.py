"""
HTTP Microservice
=================
Flask-based HTTP API for the question pool parser.

Lets other services parse pool documents without shelling out to the CLI.

Endpoints:
    POST   /api/parse    → Parse an uploaded (or server-side) pool document
    GET    /api/health   → Health check
    GET    /api/info     → Parser version info
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

from . import __version__
from .docx_reader import SUPPORTED_SUFFIXES
from .engine import ParserConfig, PoolParserEngine
from .models import ExamClass

logger = logging.getLogger(__name__)

_project_root = Path(__file__).parent.parent.absolute()

app = Flask(__name__)
app.json.sort_keys = False
CORS(app)


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(config)

    app.config.setdefault("UPLOAD_DIR", str(_project_root / "uploads"))
    app.config.setdefault("IMAGE_DIR", None)
    app.config.setdefault("MAX_CONTENT_LENGTH", 50 * 1024 * 1024)  # 50MB

    Path(app.config["UPLOAD_DIR"]).mkdir(parents=True, exist_ok=True)
    return app


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "pool-parser",
        "version": __version__,
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Parser version and capability info."""
    return jsonify({
        "version": __version__,
        "engine": "python-docx",
        "capabilities": [
            "structure_detection",
            "figure_resolution",
            "validation",
        ],
        "supported_formats": sorted(s.lstrip(".") for s in SUPPORTED_SUFFIXES),
        "exam_classes": [c.value for c in ExamClass],
        "figures_enabled": bool(app.config.get("IMAGE_DIR")),
    })


# ─── Parse Endpoint ──────────────────────────────────────────────────────────


@app.route("/api/parse", methods=["POST"])
def parse_pool():
    """
    Parse a pool document and return the structured pool JSON.

    Accepts either:
        - A file upload (multipart/form-data, field "file")
        - A JSON body with file_path pointing to an existing file

    Optional parameters: exam_class, pool_year.
    """
    if "file" in request.files:
        file = request.files["file"]
        if not file.filename:
            return jsonify({"error": "No file selected"}), 400
        params = request.form
    elif request.is_json:
        params = request.get_json(silent=True) or {}
        file = None
        document_path = params.get("file_path")
        if not document_path or not os.path.exists(document_path):
            return jsonify({
                "error": f"File not found: {document_path}"
            }), 404
    else:
        return jsonify({
            "error": "Provide a file upload or JSON with file_path"
        }), 400

    exam_class = params.get("exam_class")
    if exam_class == "":
        exam_class = None
    if exam_class is not None and (
        not isinstance(exam_class, str)
        or exam_class.lower() not in {c.value for c in ExamClass}
    ):
        return jsonify({"error": f"Unknown exam_class: {exam_class}"}), 400

    config = ParserConfig(
        images_dir=app.config.get("IMAGE_DIR"),
        exam_class=exam_class,
        pool_year=params.get("pool_year"),
        log_level=params.get("log_level", "INFO"),
    )

    try:
        engine = PoolParserEngine(config)
        if file is None:
            result = engine.parse(document_path)
        else:
            suffix = Path(file.filename).suffix.lower()
            with tempfile.TemporaryDirectory(dir=app.config.get("UPLOAD_DIR")) as tmp:
                # secure_filename drops non-ASCII stems and can eat the suffix
                stem = Path(secure_filename(file.filename)).stem or "upload"
                upload_path = Path(tmp) / f"{stem}{suffix}"
                file.save(str(upload_path))
                result = engine.parse(str(upload_path))
                result.metadata.source_document = file.filename
    except FileNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RuntimeError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.exception("Parse failed")
        return jsonify({"error": str(e)}), 500

    document = result.to_pool_document()
    document["validation"] = result.validation.model_dump()
    return jsonify(document), 200


def run_server(host: str = "0.0.0.0", port: int = 5000, debug: bool = False):
    """Run the Flask server."""
    create_app()
    logger.info(f"Starting pool parser service on {host}:{port}")
    app.run(host=host, port=port, debug=debug)
