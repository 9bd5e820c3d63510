from __future__ import annotations

import codecs
from pathlib import Path

import pandas as pd

from cert_dashboard.config import AppConfig
from cert_dashboard.errors import ValidationError
from cert_dashboard.io.schema import match_community_header


def detect_csv_encoding(path: Path, probe_bytes: int = 1 << 20) -> str:
    with path.open("rb") as handle:
        prefix = handle.read(3)
        if prefix.startswith(codecs.BOM_UTF8):
            return "utf-8-sig"

    decoder = codecs.getincrementaldecoder("utf-8")()
    with path.open("rb") as handle:
        while True:
            block = handle.read(probe_bytes)
            if not block:
                break
            try:
                decoder.decode(block)
            except UnicodeDecodeError:
                return "cp1252"
    try:
        decoder.decode(b"", final=True)
    except UnicodeDecodeError:
        return "cp1252"
    return "utf-8"


def read_raw_rows(csv_path: Path) -> tuple[list[str], list[dict[str, str]]]:
    """Read a CSV as raw strings: the header list plus one mapping per data row."""
    try:
        frame = pd.read_csv(
            csv_path,
            encoding=detect_csv_encoding(csv_path),
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as exc:
        raise ValidationError(f"CSV file is empty: {csv_path.name}") from exc
    except pd.errors.ParserError as exc:
        raise ValidationError(f"CSV parsing error: {exc}") from exc

    headers = [str(column) for column in frame.columns]
    rows = frame.to_dict(orient="records")
    return headers, [{str(key): str(value) for key, value in row.items()} for row in rows]


def load_community_codes(csv_path: Path, config: AppConfig) -> list[str]:
    """Load a reference community list, trimmed and de-duplicated in file order."""
    headers, rows = read_raw_rows(csv_path)
    code_header = match_community_header(headers, config.columns)
    codes = (row.get(code_header, "").strip() for row in rows)
    return list(dict.fromkeys(code for code in codes if code))
