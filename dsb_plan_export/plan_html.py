"""
Parse a DSB / Untis substitution plan page into class entries.

The real HTML structure:
- The first <table> is the page header (school name, info block) and is
  never data.
- <div class="mon_title"> holds the plan date, e.g.
  "21.10.2024 Montag, Woche A".
- Every later table ("mon_list") is the plan itself. A row with a single
  <td colspan="N"> spanning the whole table names a class; the plain rows
  after it are that class's substitutions, one <td> per column:

    <tr><th>Stunde</th><th>Art</th>...<th>Text</th></tr>
    <tr><td colspan="8"><b>5a</b></td></tr>
    <tr><td>3</td><td>Vertretung</td><td>M</td><td>101</td>...</tr>

There is no schema; columns are positional. The extractor collects the cell
text per column ("period slot") and leaves the meaning of each column to
plan_records.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from bs4 import BeautifulSoup  # type: ignore[import]
from bs4.builder import ParserRejectedMarkup  # type: ignore[import]
from bs4.element import NavigableString, PreformattedString, Tag  # type: ignore[import]

logger = logging.getLogger(__name__)

TITLE_CLASS = "mon_title"

_CELL_TAGS = ("td", "th")


class PlanParseError(ValueError):
    """Raised when the input cannot be turned into an HTML tree at all."""


@dataclass
class ClassEntry:
    """One class (or group) of the plan and its values per period slot."""

    name: str
    periods: List[List[str]] = field(default_factory=list)


# ──────────────────────────────────────────────────────────────────
#  Tree helpers
# ──────────────────────────────────────────────────────────────────

def _is_element(node, tag: str | None = None) -> bool:
    if not isinstance(node, Tag):
        return False
    return tag is None or node.name == tag


def _is_text(node) -> bool:
    # Comments, doctypes, CDATA etc. are PreformattedString subclasses
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def _text_of(node) -> str:
    """
    Concatenate every text node below *node*, depth-first.

    Only the final result is stripped; whitespace between and inside nested
    elements is kept as it appears in the markup.
    """
    if node is None:
        return ""
    if _is_text(node):
        return str(node).strip()
    if not isinstance(node, Tag):
        return ""
    parts: List[str] = []
    for desc in node.descendants:
        if _is_text(desc):
            parts.append(str(desc))
    return "".join(parts).strip()


def _attr(node, key: str) -> str:
    """Attribute value of *node*, '' if missing. Never raises."""
    if not isinstance(node, Tag) or not node.attrs:
        return ""
    value = node.attrs.get(key)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        # multi-valued attributes such as class come back as lists
        return " ".join(value)
    return str(value)


def _first_child(node):
    if not isinstance(node, Tag) or not node.contents:
        return None
    return node.contents[0]


# ──────────────────────────────────────────────────────────────────
#  Table shape
# ──────────────────────────────────────────────────────────────────

def _count_columns(node) -> int:
    """Number of <td>/<th> children directly under *node* (0 for non-rows)."""
    if not isinstance(node, Tag):
        return 0
    return sum(1 for c in node.children if isinstance(c, Tag) and c.name in _CELL_TAGS)


def _table_width(table: Tag) -> int:
    """Widest row of *table*, nested tables included."""
    widths = [_count_columns(tr) for tr in table.find_all("tr")]
    return max(widths) if widths else 0


# ──────────────────────────────────────────────────────────────────
#  Rows → class entries
# ──────────────────────────────────────────────────────────────────

def _process_row(tr: Tag, column_count: int, entries: List[ClassEntry]) -> None:
    """
    Classify the <td> cells of one row.

    A cell whose colspan is literally the current column count opens a new
    ClassEntry named after the cell's first child. Every other cell is a
    value for the most recent entry, in the slot given by its position among
    the row's value cells. <th> cells are ignored here.
    """
    span_text = str(column_count)
    period = 0

    for cell in tr.children:
        if not _is_element(cell, "td"):
            continue

        if _attr(cell, "colspan") == span_text:
            entries.append(ClassEntry(
                name=_text_of(_first_child(cell)),
                periods=[[] for _ in range(column_count)],
            ))
            continue

        if not entries:
            # value row before any class header
            continue

        entry = entries[-1]
        while len(entry.periods) <= period:
            entry.periods.append([])
        entry.periods[period].append(_text_of(cell))
        period += 1


# ──────────────────────────────────────────────────────────────────
#  Document walk
# ──────────────────────────────────────────────────────────────────

def _walk(root: Tag) -> Tuple[List[ClassEntry], str]:
    """
    Visit every node once, parent before children, siblings left to right.

    Rows are only looked at once a second <table> has been entered. The
    column count only ever grows during one walk, across all tables.
    """
    entries: List[ClassEntry] = []
    title = ""
    table_count = 0
    column_count = 0

    stack = [root]
    while stack:
        node = stack.pop()

        if _is_element(node, "table"):
            table_count += 1
        if _is_element(node, "div") and _attr(node, "class") == TITLE_CLASS:
            title = _text_of(_first_child(node))

        if table_count > 1:
            if _is_element(node, "table"):
                column_count = max(column_count, _table_width(node))
            column_count = max(column_count, _count_columns(node))
            if _is_element(node, "tr"):
                _process_row(node, column_count, entries)

        if isinstance(node, Tag):
            stack.extend(reversed(node.contents))

    return entries, title


def _parse_document(html) -> Tag:
    if isinstance(html, Tag):
        return html
    if not isinstance(html, (str, bytes)):
        raise PlanParseError(
            f"Expected HTML as str or bytes, got {type(html).__name__}."
        )
    try:
        return BeautifulSoup(html, "html5lib")
    except ParserRejectedMarkup as e:
        raise PlanParseError(f"Could not parse plan HTML: {e}") from e


# ──────────────────────────────────────────────────────────────────
#  Public API
# ──────────────────────────────────────────────────────────────────

def extract_class_entries(html) -> Tuple[List[ClassEntry], str]:
    """
    Extract the class entries and the date title from a plan page.

    :param html: Page HTML as str/bytes, or an already parsed BeautifulSoup tree.
    :returns: (entries in document order, title or '').
    :raises PlanParseError: if *html* cannot be parsed at all.
    """
    root = _parse_document(html)
    entries, title = _walk(root)
    logger.debug("Parsed %d class entries (title=%r)", len(entries), title)
    return entries, title
