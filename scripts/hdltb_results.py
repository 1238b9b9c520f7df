"""Print testbench results from the summary.json of a finished hdltb run."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterable

from hdltb.config import load_settings
from hdltb.report import SUMMARY_JSON


def load_summary(report_directory: Path) -> dict[str, Any]:
    """Read the summary written by the last run into ``report_directory``."""

    path = Path(report_directory) / SUMMARY_JSON
    return json.loads(path.read_text(encoding="utf-8"))


def _select(results: Iterable[dict[str, Any]], *, failed_only: bool) -> list[dict[str, Any]]:
    selected = []
    for item in results:
        if failed_only and item.get("classification") == "success":
            continue
        selected.append(
            {
                "name": item.get("name"),
                "classification": item.get("classification"),
                "compile_exit_code": item.get("compile_exit_code"),
                "run_exit_code": item.get("run_exit_code"),
                "report_file": item.get("report_file"),
            }
        )
    return selected


def _default_formatter(item: dict[str, Any]) -> str:
    run_code = "-" if item["run_exit_code"] is None else item["run_exit_code"]
    return " | ".join(
        [
            f"{item['name']}",
            f"result={item['classification']}",
            f"compile={item['compile_exit_code']}",
            f"run={run_code}",
        ]
    )


def show_results(args: argparse.Namespace, *, formatter=_default_formatter) -> int:
    report_directory = args.report_directory
    if report_directory is None:
        report_directory = load_settings(input_directory=args.input_directory).report_directory

    try:
        summary = load_summary(report_directory)
    except FileNotFoundError:
        print(f"No summary found in {report_directory}; run hdltb first", file=sys.stderr)
        return 1
    except json.JSONDecodeError as exc:
        print(f"Unreadable summary in {report_directory}: {exc}", file=sys.stderr)
        return 1

    payload = _select(summary.get("results", []), failed_only=args.failed)
    if args.format == "json":
        print(json.dumps(payload, indent=2))
    else:
        print(f"{summary.get('passed', 0)} of {summary.get('total', 0)} testbenches passed")
        for item in payload:
            print(formatter(item))

    if args.strict and any(item["classification"] != "success" for item in payload):
        return 3
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show results of the last hdltb run.")
    parser.add_argument("--input-directory", type=Path, default=None)
    parser.add_argument(
        "--report-directory",
        type=Path,
        default=None,
        help="Report directory holding summary.json (default: from hdltb settings)",
    )
    parser.add_argument("--failed", action="store_true", help="Only list failing testbenches")
    parser.add_argument(
        "--format",
        choices={"json", "text"},
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 3 when any listed testbench did not pass",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = show_results(args)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
