from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from lube_doctor.merge_modules.schema import SchemaBuilder
from lube_doctor.merge_modules.shared import ColumnDescriptor, Schema

Record = dict[str, str]


@dataclass
class SourceTable:
    header: list[str]
    data_rows: list[list[str]]
    source_index: int
    local_schema: list[ColumnDescriptor] = field(default_factory=list)


@dataclass
class ReconcileResult:
    schema: Schema
    records: list[Record]
    accepted_rows: int
    blank_rows_skipped: int
    files_used: list[int]
    files_skipped: list[int]


def _cell(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def is_blank_row(row: Sequence[object]) -> bool:
    if len(row) == 0:
        return True
    return all(not _cell(cell).strip() for cell in row)


def split_sources(matrices: Sequence[Sequence[Sequence[object]]]) -> tuple[list[SourceTable], list[int]]:
    """Split token matrices into header + data rows; header-only or empty matrices are skipped."""
    tables: list[SourceTable] = []
    skipped: list[int] = []
    for index, matrix in enumerate(matrices):
        if len(matrix) < 2:
            skipped.append(index)
            continue
        header = [_cell(cell) for cell in matrix[0]]
        data_rows = [[_cell(cell) for cell in row] for row in matrix[1:]]
        tables.append(SourceTable(header=header, data_rows=data_rows, source_index=index))
    return tables, skipped


def align_row(row: Sequence[str], schema: Schema, local_index: Mapping[str, int]) -> Record:
    record: Record = {}
    for column in schema:
        position = local_index.get(column.internal_key)
        if position is not None and position < len(row):
            record[column.internal_key] = row[position]
        else:
            record[column.internal_key] = ""
    return record


def reconcile_matrices(matrices: Sequence[Sequence[Sequence[object]]]) -> ReconcileResult:
    """
    Merge per-file token matrices into schema-aligned records.

    All headers are unified first, then every data row is projected onto the
    finished canonical schema, so each record carries one value per column
    regardless of which file it came from.
    """
    tables, skipped = split_sources(matrices)

    builder = SchemaBuilder()
    for table in tables:
        table.local_schema = builder.add_file(table.header)
    schema = builder.build()

    records: list[Record] = []
    blank_rows = 0
    for table in tables:
        local_index = {column.internal_key: i for i, column in enumerate(table.local_schema)}
        for row in table.data_rows:
            if is_blank_row(row):
                blank_rows += 1
                continue
            records.append(align_row(row, schema, local_index))

    return ReconcileResult(
        schema=schema,
        records=records,
        accepted_rows=len(records),
        blank_rows_skipped=blank_rows,
        files_used=[table.source_index for table in tables],
        files_skipped=skipped,
    )


# ══════════════════════════════════════════════════════════════════════════
# COLUMN LOOKUP
# ══════════════════════════════════════════════════════════════════════════

def get_column(record: Mapping[str, str], schema: Schema, display_name: str, occurrence: int = 1) -> str:
    """Trimmed cell value for a display name, or "" when the column or value is absent."""
    column: Optional[ColumnDescriptor] = schema.find(display_name, occurrence)
    if column is None:
        return ""
    return (record.get(column.internal_key) or "").strip()


def get_column_occurrences(
    record: Mapping[str, str],
    schema: Schema,
    display_name: str,
    limit: int,
) -> list[str]:
    """Values of occurrences 1..limit of a repeated column (blank values included)."""
    return [get_column(record, schema, display_name, occurrence) for occurrence in range(1, limit + 1)]
