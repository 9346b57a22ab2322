"""
Command-line interface: fetch or read DSB substitution plans and export them.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .export import export
from .plan_fetch import DEFAULT_TIMEOUT, PlanPage, fetch_plans
from .plan_html import extract_class_entries
from .plan_records import DEFAULT_FIELDS, plan_records


def _load_urls(args) -> list[str]:
    urls = list(args.url or [])
    if args.urls_file:
        p = Path(args.urls_file)
        if not p.exists():
            print(f"Error: --urls-file not found: {p}", file=sys.stderr)
            sys.exit(1)
        urls.extend(
            s
            for line in p.read_text(encoding="utf-8").splitlines()
            if (s := line.strip()) and not s.startswith("#")
        )
    return urls


def _read_saved_pages(paths: list[str]) -> list[PlanPage]:
    pages = []
    for path in paths:
        p = Path(path)
        entries, title = extract_class_entries(p.read_bytes())
        pages.append(PlanPage(url=str(p), title=title, entries=entries))
    return pages


def _parse_fields(text: str | None) -> tuple[str, ...]:
    if not text:
        return DEFAULT_FIELDS
    return tuple(f.strip().upper() for f in text.split(",") if f.strip())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Export DSB / Untis substitution plans to ICS / CSV / JSON.\n"
            "- Fetch mode: download plan pages by URL.\n"
            "- Saved mode: parse plan HTML files saved from the browser."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-o",
        "--output",
        default="dsb_plan",
        help="Output path (without extension). Default: dsb_plan",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["ics", "csv", "json"],
        default="json",
        help="Export format. Default: json",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--url",
        action="append",
        metavar="URL",
        help="Plan page URL to fetch. Repeat for several pages.",
    )
    mode.add_argument(
        "--html",
        action="append",
        metavar="HTML_PATH",
        help="Saved plan HTML file instead of fetching. Repeat for several files.",
    )
    parser.add_argument(
        "--urls-file",
        metavar="PATH",
        help="File with one plan URL per line (lines starting with # are ignored).",
    )
    parser.add_argument(
        "--fields",
        metavar="LIST",
        help="Comma-separated column names, left to right. "
        f"Default: {','.join(DEFAULT_FIELDS)}",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Number of plan pages fetched in parallel. Default: 4",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"HTTP timeout in seconds. Default: {DEFAULT_TIMEOUT}",
    )
    parser.add_argument(
        "--list-classes",
        action="store_true",
        help="List the classes found in the plan(s) with their number of rows, then exit.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args(argv)
    if args.html and args.urls_file:
        parser.error("argument --urls-file: not allowed with argument --html")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    if args.html:
        try:
            pages = _read_saved_pages(args.html)
        except (OSError, ValueError) as e:
            print(f"Error parsing plan HTML: {e}", file=sys.stderr)
            return 1
    else:
        urls = _load_urls(args)
        if not urls:
            print(
                "No plan specified. Use --url / --urls-file to fetch plan pages "
                "or --html for a saved HTML file.",
                file=sys.stderr,
            )
            return 1
        try:
            pages = fetch_plans(urls, max_workers=args.workers, timeout=args.timeout)
        except Exception as e:
            print(f"Error fetching plans: {e}", file=sys.stderr)
            return 1
        if not pages:
            print("Error: none of the plan pages could be fetched.", file=sys.stderr)
            return 1

    if args.list_classes:
        print("Class            | Rows | Plan")
        print("-" * 60)
        for page in pages:
            for entry in page.entries:
                rows = max((len(p) for p in entry.periods), default=0)
                print(f"{entry.name:<16} | {rows:>4} | {page.title}")
        return 0

    fields = _parse_fields(args.fields)
    records = []
    for page in pages:
        records.extend(plan_records(page.entries, page.title, fields))

    ext = {"ics": ".ics", "csv": ".csv", "json": ".json"}[args.format]
    out_path = Path(args.output).with_suffix(ext) if Path(args.output).suffix else Path(args.output + ext)
    export(records, out_path, args.format)
    print(f"Exported {len(records)} substitution(s) to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
