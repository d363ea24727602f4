#!/usr/bin/env python3
"""
loader.py — field-export loader for lube-doctor

Supports: .csv .tsv .txt

Public API:
    result = load_file("path/to/export.csv")
    rows   = result["rows"]

Result dict keys:
    rows              — token matrix (list of rows, each a list of strings);
                        the first row is the header
    source            — file name or caller-supplied label
    detected_encoding — encoding name reported by chardet
    encoding_info     — full dict: detected, confidence, is_utf8, suspicious_chars
    delimiter         — delimiter char
    original_rows     — parsed row count including header and blank lines
    blank_rows        — fully blank lines dropped before the header/data split
    warnings          — list of warning strings
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence

import chardet

TEXT_FORMATS = {".csv", ".tsv", ".txt"}
DEFAULT_MAX_WORKERS = 4


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding_info(raw: bytes) -> dict:
    """
    Detect encoding from raw bytes.

    Returns dict with: detected, confidence, is_utf8, suspicious_chars.
    """
    result = chardet.detect(raw) if raw else {}
    detected = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    is_utf8 = detected.upper().replace("-", "").replace("_", "") in ("UTF8", "UTF8SIG", "ASCII")

    suspicious: list[str] = []
    if not is_utf8:
        for row_idx, line in enumerate(raw.split(b"\n")[:100], start=1):
            try:
                line.decode("utf-8")
            except UnicodeDecodeError as e:
                bad_byte = line[e.start : e.end]
                suspicious.append(f"row {row_idx}: byte {bad_byte!r} at position {e.start}")

    return {
        "detected": detected,
        "confidence": confidence,
        "is_utf8": is_utf8,
        "suspicious_chars": suspicious[:10],
    }


# ══════════════════════════════════════════════════════════════════════════════
# SAFE TEXT READING (mixed-encoding tolerant)
# ══════════════════════════════════════════════════════════════════════════════

def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. CP1252 with replace (never crashes)

    A leading BOM and embedded null bytes are stripped.
    """
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to scoring each candidate delimiter by
    column-count consistency and column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            sniffed = csv.Sniffer().sniff(sample, delimiters=",;\t|")
            return sniffed.delimiter
        except csv.Error:
            pass

    candidates = [",", ";", "\t", "|"]
    best_delim = ","
    best_score = float("-inf")
    for delim in candidates:
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not rows:
            continue
        widths = [len(row) for row in rows]
        mode_width, mode_count = Counter(widths).most_common(1)[0]
        consistency = mode_count / len(widths)
        score = (mode_width * 2.0) + (consistency * mode_width)
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


def _validate_txt_table(rows: list[list[str]]) -> None:
    """Reject .txt files that are prose rather than a delimited export."""
    multi_field_rows = sum(1 for row in rows if len(row) > 1)
    if multi_field_rows < 1:
        raise ValueError(".txt file does not appear to contain delimited/tabular data")


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def parse_text(text: str, delimiter: Optional[str] = None) -> tuple[list[list[str]], str, int]:
    """Tokenize decoded text; fully blank lines are dropped. Returns (rows, delimiter, blank_count)."""
    delimiter = delimiter or _detect_delimiter(text)
    rows: list[list[str]] = []
    blank = 0
    for row in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter):
        if not row or all(not cell.strip() for cell in row):
            blank += 1
            continue
        rows.append(row)
    return rows, delimiter, blank


def load_bytes(raw: bytes, source: str = "<memory>", delimiter: Optional[str] = None) -> dict:
    suffix = Path(source).suffix.lower()
    encoding_info = _detect_encoding_info(raw)
    text = _read_text_safely(raw, encoding_info["detected"])
    if suffix == ".tsv" and delimiter is None:
        delimiter = "\t"
    rows, used_delimiter, blank = parse_text(text, delimiter)
    if suffix == ".txt":
        _validate_txt_table(rows)

    warnings: list[str] = []
    if not encoding_info["is_utf8"] and encoding_info["detected"] != "unknown":
        warnings.append(f"{source}: decoded as {encoding_info['detected']} (not UTF-8)")
    if encoding_info["suspicious_chars"]:
        warnings.append(f"{source}: {len(encoding_info['suspicious_chars'])} line(s) with non-UTF-8 bytes")

    return {
        "rows": rows,
        "source": source,
        "detected_encoding": encoding_info["detected"],
        "encoding_info": encoding_info,
        "delimiter": used_delimiter,
        "original_rows": len(rows) + blank,
        "blank_rows": blank,
        "warnings": warnings,
    }


def load_file(path: str | Path, delimiter: Optional[str] = None) -> dict:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in TEXT_FORMATS:
        raise ValueError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(TEXT_FORMATS))}"
        )
    return load_bytes(path.read_bytes(), source=path.name, delimiter=delimiter)


def load_files(paths: Sequence[str | Path], max_workers: int = DEFAULT_MAX_WORKERS) -> list[dict]:
    """
    Decode several files concurrently.

    Results come back in the order of ``paths``, never in completion order,
    because the first file decides the canonical column order.
    """
    if not paths:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(paths)))) as ex:
        return list(ex.map(load_file, paths))


def load_uploads(uploads: Sequence[tuple[str, bytes]], max_workers: int = DEFAULT_MAX_WORKERS) -> list[dict]:
    """Same as load_files for in-memory (name, bytes) pairs, e.g. browser uploads."""
    if not uploads:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(uploads)))) as ex:
        return list(ex.map(lambda item: load_bytes(item[1], source=item[0]), uploads))
