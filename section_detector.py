#!/usr/bin/env python3
"""
Section/item detection over numbered checklist rows.

Rows are classified by the token in their number column:

    section   "3"    (only when the next numbered row is "3.<n>")
    item      "3.1"  (attaches to the open section)

Anything else is outside the hierarchy. A token that starts like a number
but fits neither pattern is reported as malformed.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from cell_values import Grid
from console import print_status

SECTION = 'section'
ITEM = 'item'

NUMBER_TOKENS = (
    (SECTION, re.compile(r'^(\d+)\.?$')),
    (ITEM, re.compile(r'^(\d+)\.(\d+)(?:\.\d+)*\.?$')),
)
LOOKS_NUMBERED = re.compile(r'^\d')

HEADER_KEYWORDS = (
    's/n', 'sn', 'no', '#', 'item', 'check', 'inspection', 'activity', 'parameter',
    'result', 'pass', 'fail', 'remarks', 'observation', 'description',
)
HEADER_SCAN_ROWS = 30
NUMBER_HEADER_KEYWORDS = ('#', 'no', 'number', 's/n', 'sn')
DESCRIPTION_HEADER_KEYWORDS = ('item', 'description', 'check', 'inspection', 'activity')
VALUE_HEADER_KEYWORDS = ('value', 'result', 'reading', 'measurement')

DEFAULT_NUMBER_COL = 2  # B
DEFAULT_DESCRIPTION_COL = 3  # C
LAYOUT_PROBE_ROWS = 10
LAYOUT_PROBE_COLS = (2, 3, 4, 5)

DEFAULT_MAX_ROWS = 200
IMPLICIT_SECTION_TITLE = 'Inspection Items'


@dataclass(frozen=True)
class NumberToken:
    kind: str
    parts: Tuple[int, ...]
    text: str

    @property
    def major(self) -> int:
        return self.parts[0]


@dataclass(frozen=True)
class ColumnLayout:
    number_col: int = DEFAULT_NUMBER_COL
    description_col: int = DEFAULT_DESCRIPTION_COL
    value_col: Optional[int] = None
    value_header: str = ''


@dataclass(frozen=True)
class DetectedItem:
    row: int
    number: str
    label: str
    value_text: str = ''
    sort_key: int = 0


@dataclass
class DetectedSection:
    title: str
    row: int
    col: int = 0
    items: List[DetectedItem] = field(default_factory=list)
    context: str = ''


@dataclass
class DetectionResult:
    sections: List[DetectedSection] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def classify_number(text: str) -> Optional[NumberToken]:
    text = (text or '').strip()
    for kind, pattern in NUMBER_TOKENS:
        if pattern.match(text):
            parts = tuple(int(p) for p in text.rstrip('.').split('.'))
            return NumberToken(kind, parts, text)
    return None


def is_section_marker(token: Optional[NumberToken], next_token: Optional[NumberToken]) -> bool:
    """A bare integer only opens a section if the following row is one of its items."""
    return (
        token is not None and token.kind == SECTION
        and next_token is not None and next_token.kind == ITEM
        and next_token.major == token.major
    )


def find_header_row(grid: Grid, max_rows: int = HEADER_SCAN_ROWS) -> Optional[int]:
    for row in range(1, min(max_rows, grid.max_row) + 1):
        texts = [text.lower() for _, text in grid.row_texts(row)]
        if not texts:
            continue
        hits = [k for k in HEADER_KEYWORDS if any(_has_keyword(t, k) for t in texts)]
        if len(hits) >= 2:
            return row
    return None


def _has_keyword(text: str, keyword: str) -> bool:
    if keyword.isalpha() and len(keyword) <= 3:
        # Short words ("no", "sn") must stand alone, otherwise "inspection" matches "no"
        return re.search(rf'(?<![a-z]){re.escape(keyword)}(?![a-z])', text) is not None
    return keyword in text


def locate_columns(grid: Grid, header_row: Optional[int]) -> ColumnLayout:
    number_col = description_col = value_col = None
    value_header = ''

    if header_row:
        for col, text in grid.row_texts(header_row):
            if grid.is_merge_follower(header_row, col):
                continue
            lowered = text.lower()
            if number_col is None and any(_has_keyword(lowered, k) for k in NUMBER_HEADER_KEYWORDS):
                number_col = col
            elif description_col is None and any(k in lowered for k in DESCRIPTION_HEADER_KEYWORDS):
                description_col = col
            elif value_col is None and any(k in lowered for k in VALUE_HEADER_KEYWORDS):
                value_col, value_header = col, text

    number_col = number_col or DEFAULT_NUMBER_COL
    description_col = description_col or DEFAULT_DESCRIPTION_COL

    # The header often sits over merged cells; trust the first numbered data rows instead
    start = (header_row or 0) + 1
    for row in range(start, start + LAYOUT_PROBE_ROWS):
        probed = _probe_number_column(grid, row)
        if probed:
            number_col, description_col = probed
            break

    return ColumnLayout(number_col, description_col, value_col, value_header)


def _probe_number_column(grid: Grid, row: int) -> Optional[Tuple[int, int]]:
    for col in LAYOUT_PROBE_COLS:
        if classify_number(grid.text(row, col)) is None:
            continue
        for desc_col in range(col + 1, col + 4):
            text = grid.text(row, desc_col)
            if len(text) > 5 and not LOOKS_NUMBERED.match(text):
                return col, desc_col
        return col, col + 1
    return None


def _value_text(grid: Grid, row: int, layout: ColumnLayout) -> str:
    if layout.value_col:
        return grid.text(row, layout.value_col)
    texts = [
        text for col, text in grid.row_texts(row)
        if col > layout.description_col and not grid.is_merge_follower(row, col)
    ]
    return ' '.join(texts)


def _uses_decimal_numbering(grid: Grid, start_row: int, last_row: int, layout: ColumnLayout) -> bool:
    for row in range(start_row, last_row + 1):
        token = classify_number(grid.text(row, layout.number_col))
        if token and token.kind == ITEM:
            return True
    return False


def detect_sections(grid: Grid, start_row: int, layout: Optional[ColumnLayout] = None,
                    max_rows: int = DEFAULT_MAX_ROWS) -> DetectionResult:
    """Walk rows from ``start_row`` and group numbered rows into sections."""
    layout = layout or ColumnLayout()
    result = DetectionResult()
    last_row = min(grid.max_row, max_rows)

    # (row, number text, description) for rows with any content
    rows = []
    for row in range(max(start_row, 1), last_row + 1):
        number_text = grid.text(row, layout.number_col)
        description = grid.text(row, layout.description_col)
        if number_text or description:
            rows.append((row, number_text, description))

    if not _uses_decimal_numbering(grid, max(start_row, 1), last_row, layout):
        return _detect_sequential(grid, rows, layout, result)

    current: Optional[DetectedSection] = None
    for index, (row, number_text, description) in enumerate(rows):
        token = classify_number(number_text)

        if token is None:
            if number_text and LOOKS_NUMBERED.match(number_text):
                _warn(result, f"Row {row}: malformed numbering token '{number_text}', skipped")
            continue

        if token.kind == SECTION:
            next_token = classify_number(rows[index + 1][1]) if index + 1 < len(rows) else None
            if is_section_marker(token, next_token):
                _close(result, current)
                current = DetectedSection(
                    title=description or f"Section {token.major}",
                    row=row,
                    col=layout.number_col,
                    context=layout.value_header,
                )
            continue

        if current is None:
            _warn(result, f"Row {row}: item {token.text} appears before any section, skipped")
            continue
        if not description:
            _warn(result, f"Row {row}: item {token.text} has no description, skipped")
            continue
        current.items.append(DetectedItem(row, token.text, description, _value_text(grid, row, layout)))

    _close(result, current)
    return result


def _detect_sequential(grid: Grid, rows, layout: ColumnLayout, result: DetectionResult) -> DetectionResult:
    """Sheets numbered 1, 2, 3... with no decimals form one implicit section."""
    section = None
    for row, number_text, description in rows:
        token = classify_number(number_text)
        if token is None or not description:
            continue
        if section is None:
            section = DetectedSection(title=IMPLICIT_SECTION_TITLE, row=row, col=layout.number_col,
                                      context=layout.value_header)
        section.items.append(DetectedItem(row, token.text, description, _value_text(grid, row, layout)))
    _close(result, section)
    return result


def _close(result: DetectionResult, section: Optional[DetectedSection]) -> None:
    if section is not None and section.items:
        result.sections.append(section)


def _warn(result: DetectionResult, message: str) -> None:
    result.warnings.append(message)
    print_status(f"Warning: {message}", 'warning')
