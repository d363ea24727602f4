"""
Business classification of reconciled equipment rows.

Every function here is pure: it reads one record through the column lookup
helper and returns derived values. Missing columns and unparseable values
resolve to empty/False/None; nothing in this module raises for bad data.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Mapping, Optional

from lube_doctor.merge_modules.reconcile import get_column, get_column_occurrences
from lube_doctor.merge_modules.shared import (
    COMPLICATED_COLUMN,
    COMPLICATED_MARKER,
    COMPONENT_COLUMN,
    CONDITION_LOOKUP,
    CRITICAL_COLUMN,
    CRITICAL_NUMBER_COLUMN,
    CRITICAL_SENTINEL,
    CRITICALITY_BOTH,
    CRITICALITY_COMPLICATED,
    CRITICALITY_CRITICAL,
    DECIMAL_DETAIL_COLUMNS,
    FEATURE_COLUMNS,
    FEATURE_TRUE,
    INTEGER_DETAIL_COLUMNS,
    STATUS_RULES,
    TEXT_DETAIL_COLUMNS,
    ClassifiedRecord,
    MergeSettings,
    Schema,
)

LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")
LEADING_DECIMAL_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")


# ── Criticality ───────────────────────────────────────────────────────────

def criticality_label(is_critical: bool, is_complicated: bool) -> str:
    if is_critical and is_complicated:
        return CRITICALITY_BOTH
    if is_critical:
        return CRITICALITY_CRITICAL
    if is_complicated:
        return CRITICALITY_COMPLICATED
    return ""


def classify_criticality(record: Mapping[str, str], schema: Schema) -> tuple[bool, bool, str]:
    critical = get_column(record, schema, CRITICAL_COLUMN)
    critical_number = get_column(record, schema, CRITICAL_NUMBER_COLUMN)
    complicated = get_column(record, schema, COMPLICATED_COLUMN)
    is_critical = critical == CRITICAL_SENTINEL or critical_number == CRITICAL_SENTINEL
    is_complicated = complicated.lower() == COMPLICATED_MARKER
    return is_critical, is_complicated, criticality_label(is_critical, is_complicated)


# ── Status ────────────────────────────────────────────────────────────────

def normalize_status(raw_value: str) -> str:
    value = (raw_value or "").strip()
    lowered = value.lower()
    for label, contains, equals in STATUS_RULES:
        if any(needle in lowered for needle in contains) or lowered in equals:
            return label
    return value


def is_done_value(raw_value: str, settings: MergeSettings) -> bool:
    return (raw_value or "").strip().lower() == settings.done_marker.lower()


# ── Conditions / features ─────────────────────────────────────────────────

def scan_conditions(record: Mapping[str, str], schema: Schema) -> dict[str, str]:
    """Match every cell against the condition dictionary; a later column overrides an earlier one."""
    conditions: dict[str, str] = {}
    for column in schema:
        value = (record.get(column.internal_key) or "").strip()
        match = CONDITION_LOOKUP.get(value)
        if match is not None:
            category, label = match
            conditions[category] = label
    return conditions


def read_features(record: Mapping[str, str], schema: Schema) -> dict[str, bool]:
    return {
        name: get_column(record, schema, column_name) == FEATURE_TRUE
        for name, column_name in FEATURE_COLUMNS
    }


# ── Descriptive fields ────────────────────────────────────────────────────

def parse_int(value: str) -> Optional[int]:
    match = LEADING_INT_RE.match(value or "")
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        # int() refuses digit strings past sys.get_int_max_str_digits()
        return None


def parse_decimal(value: str) -> Optional[float]:
    match = LEADING_DECIMAL_RE.match((value or "").replace(",", "."))
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def read_details(record: Mapping[str, str], schema: Schema) -> dict[str, object]:
    details: dict[str, object] = {
        name: get_column(record, schema, column_name)
        for name, column_name in TEXT_DETAIL_COLUMNS.items()
    }
    for name, column_name in INTEGER_DETAIL_COLUMNS.items():
        details[name] = parse_int(get_column(record, schema, column_name))
    for name, column_name in DECIMAL_DETAIL_COLUMNS.items():
        details[name] = parse_decimal(get_column(record, schema, column_name))
    return details


def read_components(record: Mapping[str, str], schema: Schema, settings: MergeSettings) -> list[str]:
    values = get_column_occurrences(record, schema, COMPONENT_COLUMN, settings.max_column_occurrences)
    return [value for value in values if value]


# ── Record classification ─────────────────────────────────────────────────

def classify_record(record: Mapping[str, str], schema: Schema, settings: MergeSettings) -> ClassifiedRecord:
    raw_status = get_column(record, schema, settings.status_column)
    is_critical, is_complicated, criticality = classify_criticality(record, schema)
    return ClassifiedRecord(
        record=dict(record),
        identifier=get_column(record, schema, settings.identifier_column),
        raw_status=raw_status,
        status=normalize_status(raw_status),
        is_done=is_done_value(raw_status, settings),
        is_critical=is_critical,
        is_complicated=is_complicated,
        criticality=criticality,
        conditions=scan_conditions(record, schema),
        features=read_features(record, schema),
        details=read_details(record, schema),
        components=read_components(record, schema, settings),
    )


def classify_records(records, schema: Schema, settings: MergeSettings) -> list[ClassifiedRecord]:
    return [classify_record(record, schema, settings) for record in records]


def apply_manual_edit(
    classified: ClassifiedRecord,
    schema: Schema,
    updates: Mapping[str, str],
    settings: MergeSettings,
    *,
    occurrence: int = 1,
) -> ClassifiedRecord:
    """
    Return a re-derived copy of one record after editing cells by display name.

    Unknown display names are ignored; the schema is never widened. The
    original record and its page number are left as they were.
    """
    edited = dict(classified.record)
    for display_name, value in updates.items():
        column = schema.find(display_name, occurrence)
        if column is None:
            continue
        edited[column.internal_key] = "" if value is None else str(value)
    refreshed = classify_record(edited, schema, settings)
    return replace(refreshed, page_number=classified.page_number)
