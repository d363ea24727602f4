from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from lube_doctor.merge_modules.shared import ColumnDescriptor, MergeSettings, Schema

Record = dict[str, str]

PRIORITY_DONE = 1
PRIORITY_OTHER = 2
PRIORITY_NO_LUBE_POINT = 3
PRIORITY_BLANK = 4
PRIORITY_NOT_DONE = 5


@dataclass
class CombineResult:
    combined: list[Record]
    done: list[Record]
    todo: list[Record]
    has_status_column: bool
    has_identifier_column: bool
    duplicates_removed: int = 0
    diagnostics: list[str] = field(default_factory=list)


def _fold(value: str, case_insensitive: bool) -> str:
    return value.lower() if case_insensitive else value


def missing_status_message(settings: MergeSettings) -> str:
    return f"Missing column: {settings.status_column}"


def missing_identifier_message(settings: MergeSettings) -> str:
    return f"Missing column: {settings.identifier_column} (dedupe skipped)"


def status_priority(value: str, settings: MergeSettings) -> int:
    compare = _fold(value.strip(), settings.case_insensitive)
    if compare == _fold(settings.done_marker, settings.case_insensitive):
        return PRIORITY_DONE
    if compare == _fold(settings.no_lube_point_marker, settings.case_insensitive):
        return PRIORITY_NO_LUBE_POINT
    if compare == "":
        return PRIORITY_BLANK
    if compare == _fold(settings.not_done_marker, settings.case_insensitive):
        return PRIORITY_NOT_DONE
    return PRIORITY_OTHER


def sort_by_status(records: Sequence[Record], status_key: str, settings: MergeSettings) -> list[Record]:
    # sorted() is stable: equal priorities keep their ingestion order.
    return sorted(records, key=lambda record: status_priority(record.get(status_key) or "", settings))


def deduplicate(records: Sequence[Record], identifier_key: str) -> list[Record]:
    """
    First occurrence wins per trimmed identifier.

    Rows with a blank identifier are always kept and never remembered.
    """
    seen: set[str] = set()
    kept: list[Record] = []
    for record in records:
        identifier = (record.get(identifier_key) or "").strip()
        if not identifier:
            kept.append(record)
            continue
        if identifier in seen:
            continue
        seen.add(identifier)
        kept.append(record)
    return kept


def is_not_done(record: Record, status_key: str, settings: MergeSettings) -> bool:
    value = _fold((record.get(status_key) or "").strip(), settings.case_insensitive)
    return value == _fold(settings.not_done_marker, settings.case_insensitive)


def split_done_todo(records: Sequence[Record], status_key: str, settings: MergeSettings) -> tuple[list[Record], list[Record]]:
    done: list[Record] = []
    todo: list[Record] = []
    for record in records:
        if is_not_done(record, status_key, settings):
            todo.append(record)
        else:
            done.append(record)
    return done, todo


def combine(records: Sequence[Record], schema: Schema, settings: MergeSettings) -> CombineResult:
    """Optionally sort, then dedupe and split; missing key columns degrade instead of failing."""
    status_column: Optional[ColumnDescriptor] = schema.find(settings.status_column)
    identifier_column: Optional[ColumnDescriptor] = schema.find(settings.identifier_column)

    diagnostics: list[str] = []
    if status_column is None:
        diagnostics.append(missing_status_message(settings))
    if identifier_column is None:
        diagnostics.append(missing_identifier_message(settings))

    processed = list(records)
    if status_column is not None and not settings.preserve_order:
        processed = sort_by_status(processed, status_column.internal_key, settings)

    before = len(processed)
    if identifier_column is not None:
        processed = deduplicate(processed, identifier_column.internal_key)

    done: list[Record] = []
    todo: list[Record] = []
    if status_column is not None:
        done, todo = split_done_todo(processed, status_column.internal_key, settings)

    return CombineResult(
        combined=processed,
        done=done,
        todo=todo,
        has_status_column=status_column is not None,
        has_identifier_column=identifier_column is not None,
        duplicates_removed=before - len(processed),
        diagnostics=diagnostics,
    )
