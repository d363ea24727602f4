#!/usr/bin/env python3
"""
merge.py — lubrication field-export merger

Reads one or more field-collection CSV exports and produces:

  Combined_Deduped.csv   every accepted row, deduplicated by asset number
  Done.csv / ToDo.csv    the combined rows split on the "Done?" column
  <client>.xlsx          lubrication schedule with one sheet per bucket

Usage:
    python -m lube_doctor.merge export_a.csv export_b.csv [--out DIR] [--case-insensitive] [--sort]
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from lube_doctor.loader import load_files, load_uploads
from lube_doctor.merge_modules.categorize import categorize, compute_stats
from lube_doctor.merge_modules.classify import classify_records
from lube_doctor.merge_modules.dedupe import combine
from lube_doctor.merge_modules.pages import paginate_buckets
from lube_doctor.merge_modules.reconcile import reconcile_matrices
from lube_doctor.merge_modules.shared import MergeSettings
from lube_doctor.merge_modules.workbook import write_records_csv, write_schedule_workbook

COMBINED_CSV = "Combined_Deduped.csv"
DONE_CSV = "Done.csv"
TODO_CSV = "ToDo.csv"


# ══════════════════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════════════════

def load_settings(path: Optional[Path] = None, **overrides) -> MergeSettings:
    """
    Build settings from an optional JSON file plus keyword overrides.

    Overrides set to None are ignored so CLI flags can be passed straight
    through.
    """
    values: dict = {}
    if path is not None:
        suffix = path.suffix.lower()
        if suffix in {".yml", ".yaml"}:
            raise ValueError("YAML settings are not supported. Use JSON.")
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Settings root must be a JSON object.")
        unknown = sorted(set(payload) - set(MergeSettings.field_names()))
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        values.update(payload)
    values.update({key: value for key, value in overrides.items() if value is not None})
    settings = MergeSettings(**values)
    if settings.max_column_occurrences < 1:
        raise ValueError("max_column_occurrences must be at least 1")
    return settings


# ══════════════════════════════════════════════════════════════════════════
# PIPELINE
# ══════════════════════════════════════════════════════════════════════════

def merge_matrices(matrices: Sequence[Sequence[Sequence[str]]], settings: Optional[MergeSettings] = None) -> dict:
    """
    Run the whole pipeline over already-tokenized files.

    Every call builds its own schema and records from ``matrices``; nothing
    from a previous run is reused or mutated.
    """
    settings = settings or MergeSettings()
    reconciled = reconcile_matrices(matrices)
    combined = combine(reconciled.records, reconciled.schema, settings)
    classified = classify_records(combined.combined, reconciled.schema, settings)
    buckets = categorize(classified)

    return {
        "settings": settings,
        "schema": reconciled.schema,
        "records": reconciled.records,
        "total_rows": reconciled.accepted_rows,
        "blank_rows_skipped": reconciled.blank_rows_skipped,
        "files_used": reconciled.files_used,
        "files_skipped": reconciled.files_skipped,
        "combine": combined,
        "classified": classified,
        "stats": compute_stats(classified),
        "buckets": paginate_buckets(buckets, settings.page_placeholder),
        "diagnostics": list(combined.diagnostics),
    }


def _merge_loaded(loaded: list[dict], settings: Optional[MergeSettings]) -> dict:
    result = merge_matrices([item["rows"] for item in loaded], settings)
    result["loaded"] = loaded
    result["load_warnings"] = [warning for item in loaded for warning in item["warnings"]]
    return result


def execute_merge(input_paths: Sequence[Path], settings: Optional[MergeSettings] = None) -> dict:
    result = _merge_loaded(load_files(input_paths), settings)
    result["input_paths"] = list(input_paths)
    return result


def execute_merge_uploads(uploads: Sequence[tuple[str, bytes]], settings: Optional[MergeSettings] = None) -> dict:
    result = _merge_loaded(load_uploads(uploads), settings)
    result["input_paths"] = [Path(name) for name, _ in uploads]
    return result


def rerun_with(result: dict, **changes) -> dict:
    """Recompute a previous run with changed settings (e.g. the case toggle) from its inputs."""
    settings = replace(result["settings"], **changes)
    rerun = _merge_loaded(result["loaded"], settings)
    rerun["input_paths"] = list(result["input_paths"])
    return rerun


# ══════════════════════════════════════════════════════════════════════════
# OUTPUTS
# ══════════════════════════════════════════════════════════════════════════

def schedule_filename(settings: MergeSettings) -> str:
    return f"{settings.client_name}_Lubrication_Schedule.xlsx"


def output_paths(result: dict, out_dir: Path) -> dict[str, Path]:
    return {
        "combined": out_dir / COMBINED_CSV,
        "done": out_dir / DONE_CSV,
        "todo": out_dir / TODO_CSV,
        "schedule": out_dir / schedule_filename(result["settings"]),
    }


def write_outputs(result: dict, out_dir: Path) -> dict[str, str]:
    schema = result["schema"]
    combined = result["combine"]
    outputs = output_paths(result, out_dir)
    write_records_csv(combined.combined, schema, outputs["combined"])
    write_records_csv(combined.done, schema, outputs["done"])
    write_records_csv(combined.todo, schema, outputs["todo"])
    write_schedule_workbook(result["buckets"], outputs["schedule"], result["settings"].client_name)
    return {name: str(path) for name, path in outputs.items()}


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Merge lubrication field exports.")
    parser.add_argument("inputs", nargs="+", help="CSV exports, first file sets the column order")
    parser.add_argument("--out", default="lube-doctor-output", help="Output directory")
    parser.add_argument("--case-insensitive", action="store_true")
    parser.add_argument("--sort", action="store_true", help="Sort by status before deduplicating")
    return parser.parse_args(argv)


def main() -> int:
    args = parse_args(sys.argv[1:])
    settings = load_settings(case_insensitive=args.case_insensitive, preserve_order=not args.sort)
    result = execute_merge([Path(p) for p in args.inputs], settings)
    outputs = write_outputs(result, Path(args.out))
    for message in result["diagnostics"]:
        print(f"WARNING: {message}", file=sys.stderr)
    for name, path in outputs.items():
        print(f"{name}: {path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
