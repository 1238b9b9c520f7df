"""HTML and JSON report rendering for testbench results."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from html import escape
from pathlib import Path
from typing import Sequence
from urllib.parse import quote

from . import __version__
from .models import Classification, TestBenchResult

logger = logging.getLogger(__name__)

STYLESHEET = "css/report.css"
SUMMARY_HTML = "index.html"
SUMMARY_JSON = "summary.json"

_STATUS_CLASS = {
    Classification.SUCCESS: "status-success",
    Classification.COMPILE_FAILED: "status-compile-failed",
    Classification.RUN_FAILED: "status-run-failed",
}


def report_file_name(test_bench_name: str) -> str:
    """Relative path of the per-testbench report inside the report directory."""

    return f"{test_bench_name}.html"


def _page(title: str, body: list[str], *, depth: int = 0) -> str:
    prefix = "../" * depth
    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape(title)}</title>",
        f'<link rel="stylesheet" href="{prefix}{STYLESHEET}">',
        "</head>",
        "<body>",
        *body,
        f'<footer>Generated by hdltb {__version__}</footer>',
        "</body>",
        "</html>",
    ]
    return "\n".join(lines) + "\n"


def _status(result: TestBenchResult) -> str:
    css = _STATUS_CLASS[result.classification]
    return f'<span class="status {css}">{escape(result.classification.value)}</span>'


def render_test_bench_report(result: TestBenchResult) -> str:
    """Render the detail page of one testbench."""

    body = [
        f"<h1>{escape(result.name)}</h1>",
        f"<p>Result: {_status(result)}</p>",
        "<h2>Compilation</h2>",
        f"<p>Exit code: {result.compile_exit_code}</p>",
        f"<pre>{escape(result.compile_output)}</pre>",
        "<h2>Simulation</h2>",
    ]
    if result.run_exit_code is None:
        body.append("<p>Not run: compilation failed.</p>")
    else:
        body.append(f"<p>Exit code: {result.run_exit_code}</p>")
        body.append(f"<pre>{escape(result.run_output or '')}</pre>")
    body.append(f'<p><a href="{"../" * result.name.count("/")}{SUMMARY_HTML}">Back to summary</a></p>')
    return _page(result.name, body, depth=result.name.count("/"))


def render_summary_report(results: Sequence[TestBenchResult]) -> str:
    """Render the index page listing every testbench."""

    passed = sum(1 for result in results if result.passed)
    body = [
        "<h1>Testbench summary</h1>",
        f"<p>{passed} of {len(results)} testbenches passed.</p>",
        "<table>",
        "<tr><th>Testbench</th><th>Compile</th><th>Run</th><th>Result</th></tr>",
    ]
    for result in results:
        run_code = "-" if result.run_exit_code is None else str(result.run_exit_code)
        body.append(
            "<tr>"
            f'<td><a href="{escape(quote(result.report_file))}">{escape(result.name)}</a></td>'
            f"<td>{result.compile_exit_code}</td>"
            f"<td>{run_code}</td>"
            f"<td>{_status(result)}</td>"
            "</tr>"
        )
    body.append("</table>")
    return _page("Testbench summary", body)


def render_summary_json(results: Sequence[TestBenchResult]) -> str:
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "total": len(results),
        "passed": sum(1 for result in results if result.passed),
        "results": [result.to_dict() for result in results],
    }
    return json.dumps(payload, indent=2)


def write_reports(results: Sequence[TestBenchResult], report_directory: Path) -> Path:
    """Write one page per testbench plus the summary pages; return the index path."""

    report_directory = Path(report_directory)
    for result in results:
        path = report_directory / result.report_file
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Creating report for %s -> %s", result.name, path)
        path.write_text(render_test_bench_report(result), encoding="utf-8")

    index = report_directory / SUMMARY_HTML
    logger.info("Creating summary report %s", index)
    index.write_text(render_summary_report(results), encoding="utf-8")
    (report_directory / SUMMARY_JSON).write_text(render_summary_json(results), encoding="utf-8")
    return index


__all__ = [
    "SUMMARY_HTML",
    "SUMMARY_JSON",
    "render_summary_json",
    "render_summary_report",
    "render_test_bench_report",
    "report_file_name",
    "write_reports",
]
