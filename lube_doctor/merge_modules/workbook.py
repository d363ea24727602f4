from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Sequence

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from lube_doctor.merge_modules.categorize import (
    BUCKET_NO_LUBE_POINT,
    BUCKET_NOT_COLLECTED,
    BUCKET_PROCEDURES,
    BUCKET_QUESTIONS,
    BUCKET_SAMPLED,
)
from lube_doctor.merge_modules.shared import CONDITION_CATEGORIES, ClassifiedRecord, Schema

Record = dict[str, str]

INVALID_SHEET_CHARS_RE = re.compile(r"[\[\]\*\?/\\:]")
MAX_SHEET_TITLE = 31

# (header, value getter) per exported column
CONDITION_COLUMNS = [
    (category.title(), lambda item, category=category: item.conditions.get(category, ""))
    for category in CONDITION_CATEGORIES
]

PROCEDURE_COLUMNS = [
    ("Priority", lambda item: item.criticality),
    ("Area", lambda item: item.detail("area")),
    ("Page", lambda item: item.page_number or ""),
    ("Asset number", lambda item: item.identifier),
    ("Asset description", lambda item: item.detail("asset_description")),
    ("Component", lambda item: item.detail("component")),
    ("Sub-Component", lambda item: item.detail("sub_component")),
    ("Current Lubricant", lambda item: item.detail("current_lubricant")),
    ("Recommended Lubricant", lambda item: item.detail("recommended_lubricant")),
    ("LIS Number", lambda item: item.detail("lubricant_lis")),
    ("# of Points", lambda item: item.details.get("number_of_points")),
    ("Procedure #", lambda item: item.detail("procedure_number")),
    ("Procedure", lambda item: item.detail("procedure")),
    ("Sub Task 1", lambda item: item.detail("sub_task_1")),
    ("Sub Task 2", lambda item: item.detail("sub_task_2")),
    ("Measured Task 1", lambda item: item.detail("measured_task_1")),
    ("Measured Task 2", lambda item: item.detail("measured_task_2")),
    ("Operation Status", lambda item: item.detail("operation_status")),
    ("Component Class", lambda item: item.detail("component_class")),
    ("Time Interval (days)", lambda item: item.details.get("time_interval_days")),
    ("Required Time (min)", lambda item: item.details.get("required_time_min")),
    ("Recommended Quantity", lambda item: item.details.get("recommended_quantity")),
    ("Unit", lambda item: item.detail("unit")),
    ("Comment/Question", lambda item: item.detail("comment")),
    *CONDITION_COLUMNS,
]

CATEGORY_COLUMNS = [
    ("Page", lambda item: item.page_number or ""),
    ("Asset number", lambda item: item.identifier),
    ("Asset description", lambda item: item.detail("asset_description")),
    ("Area", lambda item: item.detail("area")),
    ("Component", lambda item: item.detail("component")),
    ("Status", lambda item: item.status),
    ("User", lambda item: item.detail("user")),
    ("Date/Time", lambda item: item.detail("date_time")),
    ("Comment", lambda item: item.detail("comment")),
]

VIEW_COLUMNS = [
    ("Priority", lambda item: item.criticality),
    ("Asset Number", lambda item: item.identifier),
    ("Description", lambda item: item.detail("asset_description")),
    ("Area", lambda item: item.detail("area")),
    ("Component", lambda item: item.detail("component")),
    ("Status", lambda item: item.status),
    ("Recommended Lubricant", lambda item: item.detail("recommended_lubricant")),
    *CONDITION_COLUMNS,
]

# Sheet titles for the non-procedure buckets, as the field team names them.
CATEGORY_SHEETS = [
    (BUCKET_NOT_COLLECTED, "Pas collécté"),
    (BUCKET_NO_LUBE_POINT, "Pas lubrifié"),
    (BUCKET_SAMPLED, "Echantillion"),
    (BUCKET_QUESTIONS, "Questions"),
]


# ── CSV ───────────────────────────────────────────────────────────────────

def records_to_dataframe(records: Sequence[Record], schema: Schema) -> pd.DataFrame:
    keys = schema.keys()
    rows = [[record.get(key, "") for key in keys] for record in records]
    return pd.DataFrame(rows, columns=schema.display_names(), dtype=str)


def render_records_csv(records: Sequence[Record], schema: Schema) -> str:
    frame = records_to_dataframe(records, schema)
    return frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def write_records_csv(records: Sequence[Record], schema: Schema, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_records_csv(records, schema), encoding="utf-8")


# ── Workbooks ─────────────────────────────────────────────────────────────

def safe_sheet_title(name: str, fallback: str = "Sheet") -> str:
    cleaned = INVALID_SHEET_CHARS_RE.sub("-", name).strip().strip("'")
    return (cleaned or fallback)[:MAX_SHEET_TITLE]


def _style_sheet(ws, col_widths: list[int]) -> None:
    """Bold header, frozen first row, and column widths."""
    font = Font(bold=True)
    for cell in ws[1]:
        cell.font = font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return [max(min_width, min(max_width, w)) for w in widths]


def _fill_sheet(ws, columns, items: Sequence[ClassifiedRecord]) -> None:
    headers = [header for header, _ in columns]
    rows_for_width = [headers]
    ws.append(headers)
    for item in items:
        row_out = [getter(item) for _, getter in columns]
        ws.append(row_out)
        rows_for_width.append(row_out)
    _style_sheet(ws, _infer_col_widths(rows_for_width))


def build_schedule_workbook(
    buckets: dict[str, list[ClassifiedRecord]],
    client_name: str,
) -> openpyxl.Workbook:
    wb = openpyxl.Workbook()

    # ── Procedures sheet, named after the client ─────────────────────────
    ws = wb.active
    ws.title = safe_sheet_title(client_name, fallback="Procedures")
    _fill_sheet(ws, PROCEDURE_COLUMNS, buckets.get(BUCKET_PROCEDURES, []))

    # ── One sheet per remaining bucket ───────────────────────────────────
    used_titles = {ws.title}
    for bucket_name, title in CATEGORY_SHEETS:
        sheet_title = title if title not in used_titles else safe_sheet_title(f"{title} ({bucket_name})")
        used_titles.add(sheet_title)
        _fill_sheet(wb.create_sheet(sheet_title), CATEGORY_COLUMNS, buckets.get(bucket_name, []))
    return wb


def write_schedule_workbook(
    buckets: dict[str, list[ClassifiedRecord]],
    output_path: Path,
    client_name: str,
) -> None:
    wb = build_schedule_workbook(buckets, client_name)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)


def build_view_workbook(items: Sequence[ClassifiedRecord], sheet_title: str = "Export") -> openpyxl.Workbook:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = safe_sheet_title(sheet_title, fallback="Export")
    _fill_sheet(ws, VIEW_COLUMNS, items)
    return wb


def write_view_workbook(items: Sequence[ClassifiedRecord], output_path: Path, sheet_title: str = "Export") -> None:
    wb = build_view_workbook(items, sheet_title)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
