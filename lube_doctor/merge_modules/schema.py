from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from lube_doctor.merge_modules.shared import ColumnDescriptor, Schema, make_internal_key


def build_local_schema(header_row: Iterable[Optional[str]]) -> list[ColumnDescriptor]:
    """
    Describe one file's header row.

    Duplicate display names get increasing occurrence indices (1-based) so
    every cell stays addressable. Header text is used verbatim for the key.
    """
    counts: Counter[str] = Counter()
    local: list[ColumnDescriptor] = []
    for raw_name in header_row:
        display_name = raw_name or ""
        counts[display_name] += 1
        occurrence_index = counts[display_name]
        local.append(
            ColumnDescriptor(
                display_name=display_name,
                occurrence_index=occurrence_index,
                internal_key=make_internal_key(display_name, occurrence_index),
            )
        )
    return local


class SchemaBuilder:
    """
    Append-only union of per-file schemas.

    The first file's header order becomes the canonical order; later files
    only append descriptors whose internal key has not been seen yet. Call
    ``build()`` once all headers are in; the builder refuses further files
    after that so a finished run can never be widened behind its back.
    """

    def __init__(self) -> None:
        self._columns: list[ColumnDescriptor] = []
        self._seen: set[str] = set()
        self._local_schemas: list[list[ColumnDescriptor]] = []
        self._built: Optional[Schema] = None

    def add_file(self, header_row: Iterable[Optional[str]]) -> list[ColumnDescriptor]:
        if self._built is not None:
            raise RuntimeError("SchemaBuilder.build() was already called for this run")
        local = build_local_schema(header_row)
        for column in local:
            if column.internal_key in self._seen:
                continue
            self._seen.add(column.internal_key)
            self._columns.append(column)
        self._local_schemas.append(local)
        return local

    @property
    def local_schemas(self) -> list[list[ColumnDescriptor]]:
        return list(self._local_schemas)

    def build(self) -> Schema:
        if self._built is None:
            self._built = Schema(columns=tuple(self._columns))
        return self._built


def unify_headers(header_rows: Iterable[Iterable[Optional[str]]]) -> tuple[Schema, list[list[ColumnDescriptor]]]:
    builder = SchemaBuilder()
    for header_row in header_rows:
        builder.add_file(header_row)
    return builder.build(), builder.local_schemas
