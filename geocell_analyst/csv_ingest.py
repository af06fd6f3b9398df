from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd

from geocell_analyst.colors import color_for
from geocell_analyst.models import CsvData, CsvRecord

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("timestamp", "cgi", "color", "target", "notes")
DEFAULT_COLOR_NAME = "red"
DEFAULT_TARGET = "unknown"
DEFAULT_NOTES = ""


def _cell(row: Dict[str, str], key: str) -> str:
    return (row.get(key) or "").strip()


def parse_csv(path: Union[str, Path]) -> List[CsvRecord]:
    """
    Read `timestamp,cgi,color,target,notes` rows (header required).

    Every column is read as text; absent or blank colors fall back to red,
    blank targets to "unknown" and blank notes to "". Columns missing from
    the header count as blank for every row.
    """
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError as exc:
        raise ValueError(f"{path}: CSV file is empty, a header row is required") from exc

    frame.columns = [str(col).strip().lower() for col in frame.columns]
    if "cgi" not in frame.columns:
        raise ValueError(f"{path}: CSV header has no 'cgi' column (expected {','.join(CSV_COLUMNS)})")
    unknown = [col for col in frame.columns if col not in CSV_COLUMNS]
    if unknown:
        logger.debug("Ignoring extra CSV columns: %s", ", ".join(unknown))

    records = []
    for row in frame.to_dict(orient="records"):
        records.append(
            CsvRecord(
                timestamp=_cell(row, "timestamp"),
                cgi=_cell(row, "cgi"),
                color=color_for(_cell(row, "color") or DEFAULT_COLOR_NAME),
                target=_cell(row, "target") or DEFAULT_TARGET,
                notes=_cell(row, "notes") or DEFAULT_NOTES,
            )
        )
    logger.info("Parsed %d CSV record(s) from %s", len(records), path)
    return records


def csv_data_by_cgi(records: List[CsvRecord]) -> Dict[str, CsvData]:
    # Later rows for the same CGI replace earlier ones.
    return {r.cgi: CsvData(color=r.color, target=r.target, notes=r.notes) for r in records if r.cgi}


def timestamps_by_cgi(records: List[CsvRecord]) -> Dict[str, str]:
    return {r.cgi: r.timestamp for r in records if r.cgi}
