from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from lube_doctor.merge_modules.shared import UNKNOWN_PLACEHOLDER, ClassifiedRecord


def page_key(item: ClassifiedRecord, placeholder: str = UNKNOWN_PLACEHOLDER) -> tuple[str, str]:
    return (item.detail("area") or placeholder, item.identifier or placeholder)


def assign_page_numbers(
    items: Sequence[ClassifiedRecord],
    placeholder: str = UNKNOWN_PLACEHOLDER,
) -> list[ClassifiedRecord]:
    """
    Number (area, asset) groups 1, 2, 3... in first-seen order.

    Returns copies laid out group by group; the input records keep whatever
    page number they had, so each bucket can be paginated on its own.
    """
    groups: dict[tuple[str, str], list[ClassifiedRecord]] = {}
    for item in items:
        groups.setdefault(page_key(item, placeholder), []).append(item)

    paged: list[ClassifiedRecord] = []
    for page_number, members in enumerate(groups.values(), start=1):
        paged.extend(replace(item, page_number=page_number) for item in members)
    return paged


def paginate_buckets(
    buckets: dict[str, list[ClassifiedRecord]],
    placeholder: str = UNKNOWN_PLACEHOLDER,
) -> dict[str, list[ClassifiedRecord]]:
    return {name: assign_page_numbers(items, placeholder) for name, items in buckets.items()}
