"""
Export substitution records to ICS, CSV, and JSON.
"""
from __future__ import annotations

import csv
import hashlib
import json
from datetime import date, datetime, timezone
from pathlib import Path

import icalendar


def _summary(rec: dict) -> str:
    """e.g. '5a 3: Vertretung M'."""
    head = " ".join(p for p in (rec.get("CLASS", ""), rec.get("PERIOD", "")) if p)
    body = " ".join(p for p in (rec.get("SUBSTITUTE_TYPE", ""), rec.get("NEW_SUBJECT", "")) if p)
    if head and body:
        return f"{head}: {body}"
    return head or body


def _description(rec: dict) -> str:
    lines = []
    for label, key in (
        ("Subject", "OLD_SUBJECT"),
        ("Moved from", "MOVED_FROM"),
        ("Moved to", "MOVED_TO"),
        ("Notice", "NOTICE"),
    ):
        value = rec.get(key, "")
        if value:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


def export_ics(records: list[dict], out_path: str | Path) -> None:
    """Export records as all-day events; records without DATE are skipped."""
    cal = icalendar.Calendar()
    cal.add("prodid", "-//DSB Plan Export//EN")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", "Substitution Plan")

    for rec in records:
        try:
            day = date.fromisoformat(rec.get("DATE", ""))
        except ValueError:
            continue

        summary = _summary(rec)
        event = icalendar.Event()

        # Deterministic UID so re-exports update instead of duplicating
        uid_string = "-".join(
            rec.get(k, "") for k in ("DATE", "CLASS", "PERIOD", "OLD_SUBJECT", "NEW_SUBJECT")
        )
        uid_hash = hashlib.md5(uid_string.encode("utf-8")).hexdigest()
        event.add("uid", f"{uid_hash}@dsb-plan-export")

        event.add("summary", summary)
        event.add("description", _description(rec))
        event.add("location", rec.get("ROOM", ""))
        event.add("dtstart", day)
        event.add("dtend", date.fromordinal(day.toordinal() + 1))
        event.add("dtstamp", datetime.now(timezone.utc))

        cal.add_component(event)

    Path(out_path).write_text(cal.to_ical().decode("utf-8"), encoding="utf-8")


def export_csv(records: list[dict], out_path: str | Path) -> None:
    """Export records to CSV."""
    if not records:
        Path(out_path).write_text("", encoding="utf-8")
        return
    keys = list(records[0].keys())
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=keys, extrasaction="ignore")
        w.writeheader()
        w.writerows(records)


def export_json(records: list[dict], out_path: str | Path) -> None:
    """Export records to JSON."""
    Path(out_path).write_text(
        json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8"
    )


def export(records: list[dict], out_path: str | Path, fmt: str) -> None:
    """Export to the given format: ics, csv, or json."""
    fmt = fmt.lower()
    if fmt == "ics":
        export_ics(records, out_path)
    elif fmt == "csv":
        export_csv(records, out_path)
    elif fmt == "json":
        export_json(records, out_path)
    else:
        raise ValueError(f"Unsupported format: {fmt}. Use ics, csv, or json.")
