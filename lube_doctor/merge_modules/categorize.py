from __future__ import annotations

from typing import Callable, Sequence

from lube_doctor.merge_modules.shared import (
    SAMPLED_NEEDLES,
    STATUS_NO_LUBE_POINT,
    STATUS_NOT_ACCESSIBLE,
    STATUS_NOT_FOUND,
    STATUS_QUESTION,
    ClassifiedRecord,
)

BUCKET_PROCEDURES = "procedures-ready"
BUCKET_NOT_COLLECTED = "not-collected"
BUCKET_NO_LUBE_POINT = "no-lube-point"
BUCKET_SAMPLED = "sampled"
BUCKET_QUESTIONS = "questions"

REVIEW_FILTERS = ("all", "critical", "complicated", "done", "todo")


def is_procedure_ready(item: ClassifiedRecord) -> bool:
    return item.is_done and bool(item.identifier)


def is_not_collected(item: ClassifiedRecord) -> bool:
    return item.status == STATUS_NOT_FOUND or not item.identifier


def is_no_lube_point(item: ClassifiedRecord) -> bool:
    return item.status == STATUS_NO_LUBE_POINT


def is_sampled(item: ClassifiedRecord) -> bool:
    lowered = item.status.lower()
    return any(needle in lowered for needle in SAMPLED_NEEDLES)


def has_question(item: ClassifiedRecord) -> bool:
    # Case-sensitive: "Question" is the normalized label.
    return STATUS_QUESTION in item.status or bool(item.detail("comment"))


BUCKET_PREDICATES: dict[str, Callable[[ClassifiedRecord], bool]] = {
    BUCKET_PROCEDURES: is_procedure_ready,
    BUCKET_NOT_COLLECTED: is_not_collected,
    BUCKET_NO_LUBE_POINT: is_no_lube_point,
    BUCKET_SAMPLED: is_sampled,
    BUCKET_QUESTIONS: has_question,
}


def categorize(items: Sequence[ClassifiedRecord]) -> dict[str, list[ClassifiedRecord]]:
    """Independent, possibly overlapping buckets in input order."""
    return {
        name: [item for item in items if predicate(item)]
        for name, predicate in BUCKET_PREDICATES.items()
    }


def compute_stats(items: Sequence[ClassifiedRecord]) -> dict[str, int]:
    return {
        "total": len(items),
        "critical": sum(1 for item in items if item.is_critical),
        "complicated": sum(1 for item in items if item.is_complicated),
        "done": sum(1 for item in items if item.is_done),
        "todo": sum(1 for item in items if not item.is_done),
        "not_accessible": sum(1 for item in items if item.status == STATUS_NOT_ACCESSIBLE),
    }


def filter_for_review(
    items: Sequence[ClassifiedRecord],
    review_filter: str = "all",
    search: str = "",
) -> list[ClassifiedRecord]:
    if review_filter not in REVIEW_FILTERS:
        raise ValueError(f"Unknown review filter '{review_filter}'. Choose from: {', '.join(REVIEW_FILTERS)}")

    selected = list(items)
    if review_filter == "critical":
        selected = [item for item in selected if item.is_critical]
    elif review_filter == "complicated":
        selected = [item for item in selected if item.is_complicated]
    elif review_filter == "done":
        selected = [item for item in selected if item.is_done]
    elif review_filter == "todo":
        selected = [item for item in selected if not item.is_done]

    term = search.strip().lower()
    if term:
        selected = [
            item
            for item in selected
            if any(
                term in value.lower()
                for value in (
                    item.identifier,
                    item.detail("asset_description"),
                    item.detail("area"),
                    item.detail("component"),
                )
            )
        ]
    return selected
