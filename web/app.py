#!/usr/bin/env python3
from __future__ import annotations

import hashlib
import io
import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from lube_doctor.loader import TEXT_FORMATS
from lube_doctor.merge import COMBINED_CSV, DONE_CSV, TODO_CSV, execute_merge_uploads, load_settings, schedule_filename
from lube_doctor.merge_modules.categorize import (
    BUCKET_NO_LUBE_POINT,
    BUCKET_NOT_COLLECTED,
    BUCKET_PROCEDURES,
    BUCKET_QUESTIONS,
    BUCKET_SAMPLED,
    REVIEW_FILTERS,
    filter_for_review,
)
from lube_doctor.merge_modules.pages import assign_page_numbers
from lube_doctor.merge_modules.summary import classified_to_dict
from lube_doctor.merge_modules.workbook import (
    build_schedule_workbook,
    build_view_workbook,
    records_to_dataframe,
    render_records_csv,
)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
BUCKET_TITLES = {
    BUCKET_PROCEDURES: "Procedures",
    BUCKET_NOT_COLLECTED: "Not Collected",
    BUCKET_NO_LUBE_POINT: "No Lube Point",
    BUCKET_SAMPLED: "Sampled",
    BUCKET_QUESTIONS: "Questions",
}


def ensure_state() -> None:
    st.session_state.setdefault("result", None)
    st.session_state.setdefault("upload_signature", None)


def workbook_bytes(workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def upload_payload(uploads) -> list[tuple[str, bytes]]:
    return [(upload.name, upload.getvalue()) for upload in uploads]


def upload_signature(uploads: list[tuple[str, bytes]], case_insensitive: bool, sort_rows: bool, client_name: str) -> tuple:
    files = tuple((name, hashlib.sha1(data).hexdigest()) for name, data in uploads)
    return (files, case_insensitive, sort_rows, client_name)


def run_pipeline(
    uploads: list[tuple[str, bytes]],
    case_insensitive: bool,
    sort_rows: bool,
    client_name: str,
) -> tuple[Optional[dict], Optional[str]]:
    # A fresh run every time: previous results stay untouched in session state until replaced.
    try:
        settings = load_settings(
            case_insensitive=case_insensitive,
            preserve_order=not sort_rows,
            client_name=client_name or None,
        )
        return execute_merge_uploads(uploads, settings), None
    except Exception as exc:
        return None, str(exc)


def display_frame(records, schema) -> pd.DataFrame:
    # Repeated headers (e.g. "Component") get their occurrence number so the grid can show them.
    frame = records_to_dataframe(records, schema)
    frame.columns = [
        column.display_name if column.occurrence_index == 1 else f"{column.display_name} ({column.occurrence_index})"
        for column in schema
    ]
    return frame


def classified_frame(items) -> pd.DataFrame:
    rows = []
    for item in items:
        payload = classified_to_dict(item)
        rows.append(
            {
                "Page": payload["page_number"],
                "Priority": payload["criticality"],
                "Asset number": payload["identifier"],
                "Description": payload["asset_description"],
                "Area": payload["area"],
                "Status": payload["status"],
                "Comment": payload["comment"],
                **{category.title(): label for category, label in payload["conditions"].items()},
            }
        )
    return pd.DataFrame(rows)


def render_metrics(result: dict) -> None:
    combined = result["combine"]
    stats = result["stats"]
    top = st.columns(3)
    top[0].metric("After Dedupe", len(combined.combined))
    top[1].metric("Done Rows", len(combined.done))
    top[2].metric("ToDo Rows", len(combined.todo))
    bottom = st.columns(6)
    bottom[0].metric("Total Equipment", stats["total"])
    bottom[1].metric("Critical", stats["critical"])
    bottom[2].metric("Complicated", stats["complicated"])
    bottom[3].metric("Done", stats["done"])
    bottom[4].metric("To Do", stats["todo"])
    bottom[5].metric("Not Accessible", stats["not_accessible"])


def render_csv_views(result: dict) -> None:
    schema = result["schema"]
    combined = result["combine"]
    views = [("Combined", combined.combined, COMBINED_CSV), ("Done", combined.done, DONE_CSV), ("ToDo", combined.todo, TODO_CSV)]
    tabs = st.tabs([label for label, _, _ in views])
    for tab, (label, records, filename) in zip(tabs, views):
        with tab:
            st.dataframe(display_frame(records, schema), width="stretch", hide_index=True)
            st.download_button(
                f"Download {filename}",
                data=render_records_csv(records, schema).encode("utf-8"),
                file_name=filename,
                mime="text/csv",
                key=f"download_{label}",
            )


def render_review(result: dict) -> None:
    st.subheader("Equipment review")
    controls = st.columns([1, 1, 2])
    view = controls[0].selectbox("View", ["all", *BUCKET_TITLES.keys()], format_func=lambda v: BUCKET_TITLES.get(v, "All Equipment"))
    review_filter = controls[1].selectbox("Filter", REVIEW_FILTERS)
    search = controls[2].text_input("Search", placeholder="Asset number, description, area, component")

    if view == "all":
        items = assign_page_numbers(result["classified"], result["settings"].page_placeholder)
    else:
        items = result["buckets"][view]
    filtered = filter_for_review(items, review_filter, search)
    st.caption(f"Showing {len(filtered)} of {len(items)} items")
    st.dataframe(classified_frame(filtered), width="stretch", hide_index=True)
    st.download_button(
        "Export current view",
        data=workbook_bytes(build_view_workbook(filtered, sheet_title=BUCKET_TITLES.get(view, "All Equipment"))),
        file_name=f"{BUCKET_TITLES.get(view, 'All_Equipment').replace(' ', '_')}.xlsx",
        mime=XLSX_MIME,
        key="download_view",
    )


def render_schedule_download(result: dict) -> None:
    st.download_button(
        "Download lubrication schedule",
        data=workbook_bytes(build_schedule_workbook(result["buckets"], result["settings"].client_name)),
        file_name=schedule_filename(result["settings"]),
        mime=XLSX_MIME,
        type="primary",
        key="download_schedule",
    )


def render_results(result: Optional[dict]) -> None:
    if not result:
        return
    for message in result["diagnostics"]:
        st.warning(message)
    for message in result["load_warnings"]:
        st.info(message)
    if not result["diagnostics"]:
        st.success("Files processed successfully!")
    render_metrics(result)
    render_csv_views(result)
    render_review(result)
    render_schedule_download(result)


def main() -> None:
    st.set_page_config(page_title="lube-doctor", page_icon="🛢️", layout="wide")
    ensure_state()

    st.title("lube-doctor")
    st.caption("Upload field-collection exports to merge them, remove duplicate assets, and build the lubrication schedule.")

    uploads = st.file_uploader(
        "Upload CSV exports (the first file sets the column order)",
        type=[ext.lstrip(".") for ext in sorted(TEXT_FORMATS)],
        accept_multiple_files=True,
    )
    options = st.columns(3)
    case_insensitive = options[0].checkbox("Case-insensitive status matching", value=False)
    sort_rows = options[1].checkbox("Sort by status before dedupe", value=False)
    client_name = options[2].text_input("Client name", value="Lubrication-Schedule")

    if not uploads:
        st.session_state["result"] = None
        st.info("Supported here: " + " ".join(sorted(TEXT_FORMATS)))
        return

    payload = upload_payload(uploads)
    signature = upload_signature(payload, case_insensitive, sort_rows, client_name)
    if signature != st.session_state["upload_signature"]:
        with st.spinner("Processing files..."):
            result, error = run_pipeline(payload, case_insensitive, sort_rows, client_name)
        if error is not None:
            st.error(error)
        else:
            st.session_state["result"] = result
            st.session_state["upload_signature"] = signature

    render_results(st.session_state["result"])


if __name__ == "__main__":
    main()
