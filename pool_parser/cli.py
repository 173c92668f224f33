"""
CLI Interface
=============
Command-line interface for the question pool parser.

Usage:
    python -m pool_parser parse <docx_path> [options]
    python -m pool_parser info <docx_path>
    python -m pool_parser validate <json_path>
    python -m pool_parser serve [options]
"""

from __future__ import annotations

import json
import os
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .engine import ParserConfig, PoolParserEngine, detect_exam_class, save_json, to_json
from .models import ExamClass
from .structure import load_tree
from .validator import ValidationEngine

console = Console()
error_console = Console(stderr=True)

EXAM_CLASSES = [c.value for c in ExamClass]


@click.group()
@click.version_option(version=__version__, prog_name="pool-parser")
def cli():
    """Ham Pool Parser: amateur radio question pool to structured JSON."""
    pass


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o",
    default=None,
    help="Output JSON file (default: stdout)",
)
@click.option(
    "--images",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Directory of figure images to embed",
)
@click.option(
    "--pretty", "-p",
    is_flag=True,
    default=False,
    help="Pretty-print JSON output",
)
@click.option(
    "--exam-class",
    default=None,
    type=click.Choice(EXAM_CLASSES, case_sensitive=False),
    help="Exam class (detected from question ids when omitted)",
)
@click.option(
    "--pool-year",
    default=None,
    help="Pool year range, e.g. 2022-2026",
)
@click.option(
    "--workers", "-j",
    default=4,
    type=click.IntRange(min=1),
    help="Parallel figure conversions",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
def parse(
    input_path: str,
    output: str,
    images: str,
    pretty: bool,
    exam_class: str,
    pool_year: str,
    workers: int,
    log_level: str,
    log_file: str,
):
    """Parse a question pool document into structured JSON."""

    json_to_stdout = output is None
    if json_to_stdout and log_level != "DEBUG":
        # Keep stdout clean JSON
        log_level = "ERROR"

    config = ParserConfig(
        images_dir=images,
        image_workers=workers,
        exam_class=exam_class,
        pool_year=pool_year,
        log_level=log_level,
        log_file=log_file,
    )

    if not json_to_stdout:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]Ham Pool Parser v{__version__}[/]\n"
                f"[dim]Parsing: {os.path.basename(input_path)}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        engine = PoolParserEngine(config)
        result = engine.parse(input_path)
    except FileNotFoundError as e:
        error_console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except RuntimeError as e:
        error_console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if json_to_stdout:
        click.echo(to_json(result, pretty=pretty))
        return

    save_json(result, output, pretty=pretty)
    _display_results(result)
    click.echo(
        f"Wrote {len(result.questions)} questions to {output}", err=True
    )


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
def info(input_path: str):
    """Display pool document structure information."""

    try:
        engine = PoolParserEngine(ParserConfig(log_level="ERROR"))
        result = engine.parse(input_path)
    except (FileNotFoundError, RuntimeError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    group_count = sum(len(s.groups) for s in result.subelements.values())
    figures = sorted({q.figure for q in result.questions if q.figure})
    references = sum(1 for q in result.questions if q.reference)
    exam_class = result.metadata.exam_class

    console.print()
    table = Table(title="Pool Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", result.metadata.source_document)
    table.add_row(
        "File Size",
        f"{result.metadata.file_size_bytes / 1024:.1f} KB",
    )
    table.add_row("Paragraphs", str(result.parse_version.paragraph_count))
    table.add_row("Exam Class", exam_class.value if exam_class else "(unknown)")
    table.add_row("Subelements", str(len(result.subelements)))
    table.add_row("Groups", str(group_count))
    table.add_row("Questions", str(len(result.questions)))
    table.add_row("With Reference", str(references))
    table.add_row("Figures Cited", ", ".join(figures) or "-")

    console.print(table)
    console.print()
    _display_structure_table(result)


@cli.command()
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
def validate(json_path: str):
    """Validate a previously generated pool JSON."""

    with open(json_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            console.print(f"[red]Error:[/] invalid JSON: {e}")
            sys.exit(1)

    if not isinstance(data, dict):
        console.print("[red]Error:[/] not a pool document: expected an object")
        sys.exit(1)

    try:
        subelements, questions = load_tree(data.get("subelements", []))
    except (KeyError, TypeError, ValidationError) as e:
        console.print(f"[red]Error:[/] not a pool document: {e}")
        sys.exit(1)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Validation Report[/]\n"
            f"[dim]File: {json_path}[/]",
            border_style="cyan",
        )
    )

    report = ValidationEngine().validate(subelements, questions)
    _display_validation_table(report.model_dump())

    exam_class = data.get("exam_class")
    detected = detect_exam_class(subelements)
    if exam_class and detected and exam_class != detected.value:
        console.print(
            f"[yellow]⚠ exam_class '{exam_class}' does not match "
            f"question ids ({detected.value})[/]"
        )


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP parsing service."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Pool Parser Service[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_results(result):
    """Display parse results in a formatted table."""
    console.print()

    meta = result.metadata
    table = Table(title="Pool Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Source", meta.source_document)
    table.add_row(
        "Exam Class", meta.exam_class.value if meta.exam_class else "(unknown)"
    )
    table.add_row("Pool Year", meta.pool_year or "(not set)")
    table.add_row("File Hash", meta.file_hash[:16] + "...")
    console.print(table)
    console.print()

    _display_structure_table(result)
    _display_validation_table(result.validation.model_dump())

    pv = result.parse_version
    console.print(
        f"[dim]Parser v{pv.parser_version} | "
        f"Paragraphs: {pv.paragraph_count} | "
        f"Questions: {pv.question_count} | "
        f"Timestamp: {pv.parse_timestamp}[/]"
    )
    console.print()


def _display_structure_table(result):
    """Per-subelement group and question counts."""
    table = Table(title="Subelements", border_style="cyan")
    table.add_column("Id", style="bold")
    table.add_column("Title")
    table.add_column("Groups", justify="right")
    table.add_column("Questions", justify="right")

    for subelement in sorted(result.subelements.values(), key=lambda s: s.id):
        question_count = sum(
            len(g.question_ids) for g in subelement.groups.values()
        )
        table.add_row(
            subelement.id,
            subelement.title or "[dim](derived)[/]",
            str(len(subelement.groups)),
            str(question_count),
        )

    console.print(table)
    console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    total = validation.get("total_questions", 0)
    complete = validation.get("complete_questions", 0)
    rate = validation.get("success_rate", 0)

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    table.add_row(
        "Total Questions",
        str(total),
        "[green]✓[/]" if total > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Complete Questions",
        f"{complete} ({rate}%)",
        "[green]✓[/]" if rate >= 100 else "[yellow]⚠[/]",
    )

    for label, key in [
        ("Questions Missing Answers", "questions_missing_answers"),
        ("Correct Answer Not Listed", "questions_with_unlisted_correct_answer"),
        ("Questions Missing Text", "questions_missing_text"),
        ("Duplicate Question Ids", "duplicate_question_ids"),
        ("Empty Groups", "empty_groups"),
        ("Figures Unresolved", "figures_unresolved"),
    ]:
        items = validation.get(key, [])
        table.add_row(label, str(len(items)), status_icon(len(items)))

    table.add_row(
        "Untitled Subelements / Groups",
        f"{len(validation.get('untitled_subelements', []))} / "
        f"{len(validation.get('untitled_groups', []))}",
        "[dim]-[/]",
    )
    table.add_row(
        "Figures Referenced",
        str(validation.get("figures_referenced", 0)),
        "[dim]-[/]",
    )

    console.print(table)
    console.print()


# ─── Entry point (for python -m pool_parser.cli) ──────────────────────────────


if __name__ == "__main__":
    cli()
