"""Versioned JSON contracts shared by the lube-doctor CLI and web page."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

MERGE_SUMMARY = "lube_doctor.merge_summary"
REVIEW = "lube_doctor.review"

CONTRACT_VERSIONS = {
    MERGE_SUMMARY: "1.0.0",
    REVIEW: "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    if name not in CONTRACT_VERSIONS:
        raise KeyError(f"Unknown contract '{name}'. Known: {', '.join(sorted(CONTRACT_VERSIONS))}")
    return {"name": name, "version": CONTRACT_VERSIONS[name]}


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_paths: Sequence[Path],
    status: str = "ok",
    output_dir: Path | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    warnings = list(warnings or [])
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_count": len(input_paths),
        "input_files": [str(path) for path in input_paths],
        "output_dir": str(output_dir) if output_dir else None,
        "warnings_count": len(warnings),
        "warnings": warnings,
        "metrics": dict(metrics or {}),
    }
