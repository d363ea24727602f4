from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Sequence

from lube_doctor import __version__ as TOOL_VERSION
from lube_doctor.contracts import MERGE_SUMMARY, REVIEW, build_contract, build_run_summary
from lube_doctor.merge_modules.shared import ClassifiedRecord


def build_structured_summary(
    result: dict,
    *,
    input_paths: Sequence[Path],
    output_dir: Path | None = None,
    outputs: dict[str, str] | None = None,
) -> dict:
    contract = build_contract(MERGE_SUMMARY)
    combine = result["combine"]
    bucket_counts = {name: len(items) for name, items in result["buckets"].items()}
    diagnostics = list(result["diagnostics"])
    rows = {
        "accepted": result["total_rows"],
        "blank_skipped": result["blank_rows_skipped"],
        "combined_deduped": len(combine.combined),
        "duplicates_removed": combine.duplicates_removed,
        "done": len(combine.done),
        "todo": len(combine.todo),
    }
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "settings": asdict(result["settings"]),
        "files": {
            "used": [str(input_paths[i]) for i in result["files_used"] if i < len(input_paths)],
            "skipped": [str(input_paths[i]) for i in result["files_skipped"] if i < len(input_paths)],
        },
        "columns": {
            "count": len(result["schema"]),
            "display_names": result["schema"].display_names(),
            "has_status_column": combine.has_status_column,
            "has_identifier_column": combine.has_identifier_column,
        },
        "rows": rows,
        "buckets": bucket_counts,
        "stats": dict(result["stats"]),
        "diagnostics": diagnostics,
        "outputs": dict(outputs or {}),
        "run_summary": build_run_summary(
            tool="lube-doctor",
            command="merge",
            input_paths=input_paths,
            status="degraded" if diagnostics else "ok",
            output_dir=output_dir,
            warnings=diagnostics,
            metrics={**rows, **{f"bucket_{name}": count for name, count in bucket_counts.items()}},
        ),
    }


def classified_to_dict(item: ClassifiedRecord) -> dict:
    return {
        "identifier": item.identifier,
        "status": item.status,
        "raw_status": item.raw_status,
        "is_done": item.is_done,
        "is_critical": item.is_critical,
        "is_complicated": item.is_complicated,
        "criticality": item.criticality,
        "conditions": dict(item.conditions),
        "features": dict(item.features),
        "components": list(item.components),
        "area": item.detail("area"),
        "asset_description": item.detail("asset_description"),
        "comment": item.detail("comment"),
        "page_number": item.page_number,
    }


def build_review_payload(
    items: Sequence[ClassifiedRecord],
    *,
    input_paths: Sequence[Path],
    view: str,
    review_filter: str,
    search: str,
    diagnostics: list[str],
) -> dict:
    contract = build_contract(REVIEW)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "view": view,
        "filter": review_filter,
        "search": search,
        "count": len(items),
        "items": [classified_to_dict(item) for item in items],
        "run_summary": build_run_summary(
            tool="lube-doctor",
            command="review",
            input_paths=input_paths,
            status="degraded" if diagnostics else "ok",
            warnings=diagnostics,
            metrics={"count": len(items)},
        ),
    }
