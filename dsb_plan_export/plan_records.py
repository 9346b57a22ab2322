"""
Turn extracted class entries into flat substitution records.

A ClassEntry keeps its values column by column (periods[i] is column i,
top to bottom). Records are read row by row: the j-th value of every column
forms one substitution. Columns are named positionally by *fields*; the
defaults follow the usual Untis substitution plan layout:

    Stunde | Art | Fach | Raum | (Fach) | Vertr. von | (Le.) nach | Text
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Dict, List, Sequence

from .plan_html import ClassEntry

logger = logging.getLogger(__name__)

DEFAULT_FIELDS: tuple[str, ...] = (
    "PERIOD",
    "SUBSTITUTE_TYPE",
    "NEW_SUBJECT",
    "ROOM",
    "OLD_SUBJECT",
    "MOVED_FROM",
    "MOVED_TO",
    "NOTICE",
)


def _parse_plan_date(text: str) -> date | None:
    """Parse '21.10.2024' or '1.2.2025' (d.m.yyyy)."""
    m = re.search(r"(\d{1,2})\.(\d{1,2})\.(\d{4})", text)
    if not m:
        return None
    try:
        return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
    except ValueError:
        return None


def parse_plan_title(title: str) -> Dict[str, str]:
    """
    Split a plan title like '21.10.2024 Montag, Woche A' into
    DATE ('2024-10-21'), WEEKDAY ('Montag') and WEEK ('A').
    Missing parts are ''.
    """
    title = (title or "").strip()
    d = _parse_plan_date(title)

    weekday = ""
    m = re.search(r"\d{4}\s+([^\W\d_]+)", title)
    if m:
        weekday = m.group(1)

    week = ""
    m = re.search(r"Woche\s+([A-Za-z0-9]+)", title, re.I)
    if m:
        week = m.group(1)

    return {
        "DATE": d.isoformat() if d else "",
        "WEEKDAY": weekday,
        "WEEK": week,
    }


def entry_records(
    entry: ClassEntry, fields: Sequence[str] = DEFAULT_FIELDS
) -> List[Dict[str, str]]:
    """
    One record per plan row of *entry*; columns past len(fields) are dropped.

    Rows are rebuilt from the column lists by index, so the original row
    boundaries are only known when every column has the same length. If a
    plan row had fewer cells, the values of later rows move up in the short
    columns; this is logged as a warning and the records of that class
    should not be trusted.
    """
    lengths = {len(p) for p in entry.periods}
    if len(lengths) > 1:
        logger.warning(
            "Class %s has columns of different lengths %s; its rows may be misaligned",
            entry.name, [len(p) for p in entry.periods],
        )
    row_count = max(lengths, default=0)
    records: List[Dict[str, str]] = []
    for row in range(row_count):
        record = {"CLASS": entry.name}
        for i, name in enumerate(fields):
            column = entry.periods[i] if i < len(entry.periods) else []
            record[name] = column[row] if row < len(column) else ""
        records.append(record)
    return records


def plan_records(
    entries: Sequence[ClassEntry],
    title: str,
    fields: Sequence[str] = DEFAULT_FIELDS,
) -> List[Dict[str, str]]:
    """Records for a whole plan page, each tagged with the page's date info."""
    title_info = parse_plan_title(title)
    records: List[Dict[str, str]] = []
    for entry in entries:
        for rec in entry_records(entry, fields):
            rec.update(title_info)
            rec["TITLE"] = title
            records.append(rec)
    return records
