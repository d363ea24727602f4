from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from lube_doctor import __version__ as TOOL_VERSION
from lube_doctor.loader import TEXT_FORMATS
from lube_doctor.merge import execute_merge, load_settings, output_paths, write_outputs
from lube_doctor.merge_modules.categorize import BUCKET_PREDICATES, REVIEW_FILTERS, filter_for_review
from lube_doctor.merge_modules.pages import assign_page_numbers
from lube_doctor.merge_modules.shared import MergeSettings
from lube_doctor.merge_modules.summary import build_review_payload, build_structured_summary
from lube_doctor.merge_modules.workbook import write_view_workbook

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_DIAGNOSTICS = 3
EXIT_DIAGNOSTICS_FAILED = 5

REVIEW_VIEWS = ("all", *BUCKET_PREDICATES.keys())


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class LubeDoctorArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("LUBE_DOCTOR_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir() -> Path:
    return Path.cwd() / "lube-doctor-output" / f"merge-{timestamp_token()}"


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def remove_generated_at(value: Any) -> Any:
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if key == "generated_at":
                result[key] = "1970-01-01T00:00:00Z"
            else:
                result[key] = remove_generated_at(item)
        return result
    if isinstance(value, list):
        return [remove_generated_at(item) for item in value]
    return value


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (UnicodeDecodeError, json.JSONDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def resolve_inputs(raw_inputs: list[str]) -> list[Path]:
    paths = [Path(raw) for raw in raw_inputs]
    for path in paths:
        if not path.exists():
            raise CliError(f"File not found: {path}", EXIT_COMMAND_ERROR)
        if path.suffix.lower() not in TEXT_FORMATS:
            raise CliError(
                f"Unsupported file type '{path.suffix or '[missing extension]'}'. "
                f"Supported: {', '.join(sorted(TEXT_FORMATS))}",
                EXIT_COMMAND_ERROR,
            )
    return paths


def settings_from_args(args: argparse.Namespace) -> MergeSettings:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    if config_path is not None and not config_path.exists():
        raise CliError(f"Config not found: {config_path}", EXIT_COMMAND_ERROR)
    return load_settings(
        config_path,
        case_insensitive=True if args.case_insensitive else None,
        preserve_order=False if args.sort else None,
        client_name=getattr(args, "client", None),
    )


# ══════════════════════════════════════════════════════════════════════════
# TEXT RENDERING
# ══════════════════════════════════════════════════════════════════════════

def render_merge_text(summary: dict[str, Any]) -> str:
    rows = summary["rows"]
    stats = summary["stats"]
    lines = [
        "lube-doctor merge",
        f"Files used: {len(summary['files']['used'])}",
        f"Columns: {summary['columns']['count']}",
        f"Rows accepted: {rows['accepted']}",
        f"After dedupe: {rows['combined_deduped']}",
        f"Duplicates removed: {rows['duplicates_removed']}",
        f"Done rows: {rows['done']}",
        f"ToDo rows: {rows['todo']}",
        f"Critical: {stats['critical']}",
        f"Complicated: {stats['complicated']}",
        f"Not accessible: {stats['not_accessible']}",
    ]
    if summary["files"]["skipped"]:
        lines.append("Skipped (no data rows): " + ", ".join(summary["files"]["skipped"]))
    if summary["diagnostics"]:
        lines.append("Diagnostics:")
        lines.extend(f"- {message}" for message in summary["diagnostics"])
    return "\n".join(lines) + "\n"


def render_bucket_lines(summary: dict[str, Any]) -> str:
    return "\n".join(f"Bucket {name}: {count}" for name, count in summary["buckets"].items()) + "\n"


def render_review_text(payload: dict[str, Any]) -> str:
    lines = [
        f"lube-doctor review ({payload['view']}, filter={payload['filter']})",
        f"Showing {payload['count']} item(s)",
    ]
    for item in payload["items"]:
        page = item["page_number"] if item["page_number"] is not None else "-"
        lines.append(
            f"[{page}] {item['identifier'] or '(no asset number)'} | {item['area'] or '-'} | "
            f"{item['status'] or '-'} | {item['criticality'] or '-'}"
        )
    return "\n".join(lines) + "\n"


EXPLAIN_RULES = {
    "missing_status_column": {
        "description": "The merged files have no status column, so rows cannot be split into Done and ToDo.",
        "evidence": "No header matches the configured status column name after trimming.",
        "effect": "Done.csv and ToDo.csv are empty; sorting is skipped.",
        "disable_hint": "Set status_column in the settings file if the export uses another header.",
    },
    "missing_identifier_column": {
        "description": "The merged files have no asset number column, so duplicates cannot be detected.",
        "evidence": "No header matches the configured identifier column name after trimming.",
        "effect": "Every accepted row is kept.",
        "disable_hint": "Set identifier_column in the settings file if the export uses another header.",
    },
    "procedures-ready": {
        "description": "Rows marked done that carry an asset number.",
        "evidence": "Status cell equals the done marker (case-insensitive) and the asset number is not blank.",
        "effect": "Listed on the procedures sheet named after the client.",
        "disable_hint": "Fix the status or asset number in the source export.",
    },
    "not-collected": {
        "description": "Equipment that was not found in the field or has no asset number.",
        "evidence": "Status normalizes to 'Not Found' (including 'pas trouvé') or the asset number is blank.",
        "effect": "Listed on the 'Pas collécté' sheet.",
        "disable_hint": "Fill in the asset number or status in the source export.",
    },
    "no-lube-point": {
        "description": "Equipment with no lubrication point.",
        "evidence": "Status equals 'NLP' (case-insensitive).",
        "effect": "Listed on the 'Pas lubrifié' sheet.",
        "disable_hint": "Change the status in the source export.",
    },
    "sampled": {
        "description": "Equipment where an oil sample was taken.",
        "evidence": "Normalized status contains 'sampl' or 'échantillon'.",
        "effect": "Listed on the 'Echantillion' sheet.",
        "disable_hint": "Change the status in the source export.",
    },
    "questions": {
        "description": "Equipment with an open question.",
        "evidence": "Normalized status contains 'Question' or the Comment/Question cell is filled.",
        "effect": "Listed on the 'Questions' sheet.",
        "disable_hint": "Answer the question and clear the comment in the source export.",
    },
}


# ══════════════════════════════════════════════════════════════════════════
# PARSER
# ══════════════════════════════════════════════════════════════════════════

def _add_common_merge_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("inputs", nargs="+", help="CSV exports; the first file sets the column order")
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--case-insensitive", action="store_true", help="Compare status markers case-insensitively")
    parser.add_argument("--sort", action="store_true", help="Sort by status before deduplicating (done rows win)")
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="More human logs")


def build_parser() -> argparse.ArgumentParser:
    parser = LubeDoctorArgumentParser(prog="lube-doctor", description="Merge and review lubrication field exports.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge exports and write Combined/Done/ToDo and the schedule workbook.")
    _add_common_merge_arguments(merge)
    merge.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    merge.add_argument("--client", help="Client name used for the procedures sheet and workbook file")
    merge.add_argument("--dry-run", action="store_true", help="Run the pipeline without writing outputs")
    merge.add_argument("--fail-on-diagnostics", action="store_true", help="Return exit code 5 instead of 3 when a required column is missing")

    review = subparsers.add_parser("review", help="List classified equipment from one view.")
    _add_common_merge_arguments(review)
    review.add_argument("--view", choices=REVIEW_VIEWS, default="all", help="All equipment or one bucket")
    review.add_argument("--filter", dest="review_filter", choices=REVIEW_FILTERS, default="all", help="Review filter")
    review.add_argument("--search", default="", help="Search asset number, description, area, component")
    review.add_argument("--export", help="Write the listed items to this .xlsx file")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter settings file.")
    config_init.add_argument("--path", default="lube-doctor.json", help="Settings output path")

    explain = subparsers.add_parser("explain", help="Explain a diagnostic or bucket id.")
    explain.add_argument("rule_id", help="Rule identifier")
    explain.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


# ══════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════

def emit_verbose_load_details(result: dict[str, Any], quiet: bool) -> None:
    for path, loaded in zip(result["input_paths"], result["loaded"]):
        emit_human(
            f"{path}: encoding={loaded['detected_encoding']} delimiter={loaded['delimiter']!r} "
            f"rows={loaded['original_rows']} blank={loaded['blank_rows']}",
            quiet=quiet,
        )
    for warning in result["load_warnings"]:
        emit_human(f"Warning: {warning}", quiet=quiet)


def run_merge(args: argparse.Namespace) -> int:
    try:
        input_paths = resolve_inputs(args.inputs)
        settings = settings_from_args(args)
        out_dir = Path(args.out_dir) if args.out_dir else default_output_dir()
        result = execute_merge(input_paths, settings)
        if args.verbose:
            emit_verbose_load_details(result, args.quiet)

        outputs: dict[str, str] = {}
        summary_path = out_dir / "merge-summary.json"
        if not args.dry_run:
            for target in [*output_paths(result, out_dir).values(), summary_path]:
                if target.exists():
                    raise CliError(f"Refusing to overwrite existing output: {target}", EXIT_COMMAND_ERROR)
            outputs = write_outputs(result, out_dir)
            outputs["summary"] = str(summary_path)

        summary = build_structured_summary(
            result,
            input_paths=input_paths,
            output_dir=None if args.dry_run else out_dir,
            outputs=outputs,
        )
        summary = remove_generated_at(summary)
        if not args.dry_run:
            write_json(summary_path, summary)

        if args.json:
            maybe_emit_json_stdout(summary, True)
        else:
            emit_human(render_merge_text(summary).rstrip(), quiet=args.quiet)
            if args.verbose:
                emit_human(render_bucket_lines(summary).rstrip(), quiet=args.quiet)
            if not args.dry_run:
                emit_human(f"Outputs written: {out_dir}", quiet=args.quiet)

        if summary["diagnostics"]:
            return EXIT_DIAGNOSTICS_FAILED if args.fail_on_diagnostics else EXIT_DIAGNOSTICS
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_review(args: argparse.Namespace) -> int:
    try:
        input_paths = resolve_inputs(args.inputs)
        settings = settings_from_args(args)
        result = execute_merge(input_paths, settings)
        if args.verbose:
            emit_verbose_load_details(result, args.quiet)

        if args.view == "all":
            items = assign_page_numbers(result["classified"], settings.page_placeholder)
        else:
            items = result["buckets"][args.view]
        items = filter_for_review(items, args.review_filter, args.search)

        payload = remove_generated_at(
            build_review_payload(
                items,
                input_paths=input_paths,
                view=args.view,
                review_filter=args.review_filter,
                search=args.search,
                diagnostics=result["diagnostics"],
            )
        )
        if args.export:
            export_path = Path(args.export)
            if export_path.exists():
                raise CliError(f"Refusing to overwrite existing output: {export_path}", EXIT_COMMAND_ERROR)
            write_view_workbook(items, export_path, sheet_title=args.view)

        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            for message in result["diagnostics"]:
                emit_human(f"Diagnostic: {message}", quiet=args.quiet)
            print(render_review_text(payload).rstrip())
            if args.export:
                emit_human(f"View exported: {args.export}", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, asdict(MergeSettings()))
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_explain(args: argparse.Namespace) -> int:
    rule = EXPLAIN_RULES.get(args.rule_id)
    if rule is None:
        eprint(f"Unknown rule id: {args.rule_id}")
        return EXIT_COMMAND_ERROR
    payload = {"rule_id": args.rule_id, **rule}
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(
            "\n".join(
                [
                    f"Rule: {args.rule_id}",
                    f"What it means: {payload['description']}",
                    f"What triggers it: {payload['evidence']}",
                    f"Effect: {payload['effect']}",
                    f"How to resolve it: {payload['disable_hint']}",
                ]
            )
        )
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "merge":
            return run_merge(args)
        if args.command == "review":
            return run_review(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "explain":
            return run_explain(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
