#!/usr/bin/env python3
"""
Cell value resolution for checklist worksheets.

Every raw value read from a workbook is classified once into a tagged
``CellValue``. Downstream detectors only ever see ``Grid.text()`` or
``Grid.resolve()``, never raw openpyxl objects.
"""

import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from openpyxl.cell.rich_text import CellRichText
from openpyxl.utils.cell import range_boundaries
from openpyxl.worksheet.formula import ArrayFormula
from openpyxl.worksheet.worksheet import Worksheet

# Tags
EMPTY = 'empty'
TEXT = 'text'
RICH_TEXT = 'rich_text'
FORMULA = 'formula'
DATE = 'date'
NUMBER = 'number'
BOOLEAN = 'boolean'


@dataclass(frozen=True)
class CellValue:
    """A spreadsheet value with exactly one active tag."""

    tag: str
    value: Any = None

    def text(self) -> str:
        if self.tag == EMPTY:
            return ''
        if self.tag == RICH_TEXT:
            return ''.join(self.value).strip()
        if self.tag == FORMULA:
            return f"={self.value}"
        if self.tag == DATE:
            return self.value.isoformat()
        if self.tag == NUMBER:
            return format_number(self.value)
        return str(self.value).strip()

    @property
    def is_empty(self) -> bool:
        return self.tag == EMPTY


EMPTY_CELL = CellValue(EMPTY)


def format_number(value: Any) -> str:
    """Render numbers the way they display: 3.0 -> '3', 1.25 -> '1.25'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(int(value))
    return str(value)


def classify_value(raw: Any, data_type: Optional[str] = None) -> CellValue:
    """Decide the tag of a raw workbook value."""
    if raw is None:
        return EMPTY_CELL

    if isinstance(raw, CellRichText):
        runs = tuple(run if isinstance(run, str) else (run.text or '') for run in raw)
        return CellValue(RICH_TEXT, runs)

    if isinstance(raw, ArrayFormula):
        return CellValue(FORMULA, (raw.text or '').lstrip('='))

    if isinstance(raw, str):
        if data_type == 'f' or (raw.startswith('=') and len(raw) > 1):
            return CellValue(FORMULA, raw[1:] if raw.startswith('=') else raw)
        if not raw.strip():
            return EMPTY_CELL
        return CellValue(TEXT, raw)

    # bool is an int subclass, check it first
    if isinstance(raw, bool):
        return CellValue(BOOLEAN, raw)

    if isinstance(raw, datetime.datetime):
        return CellValue(DATE, raw.date())
    if isinstance(raw, datetime.date):
        return CellValue(DATE, raw)

    if isinstance(raw, (int, float, Decimal)):
        return CellValue(NUMBER, raw)

    # time, timedelta and anything else openpyxl may hand back
    return CellValue(TEXT, str(raw))


@dataclass(frozen=True)
class MergeRegion:
    """Rectangular merged range, 1-based and inclusive."""

    min_row: int
    min_col: int
    max_row: int
    max_col: int

    @classmethod
    def from_range(cls, ref: str) -> 'MergeRegion':
        min_col, min_row, max_col, max_row = range_boundaries(ref)
        return cls(min_row, min_col, max_row, max_col)

    @property
    def anchor(self) -> Tuple[int, int]:
        return (self.min_row, self.min_col)

    def contains(self, row: int, col: int) -> bool:
        return self.min_row <= row <= self.max_row and self.min_col <= col <= self.max_col


class Grid:
    """Resolved view over one worksheet."""

    def __init__(self, cells: Dict[Tuple[int, int], CellValue],
                 merges: Sequence[MergeRegion] = (),
                 title: str = ''):
        self._cells = dict(cells)
        self.merges = tuple(merges)
        self.title = title
        self.max_row = max((r for r, _ in self._cells), default=0)
        self.max_col = max((c for _, c in self._cells), default=0)
        self._anchors: Dict[Tuple[int, int], Tuple[int, int]] = {}
        for region in self.merges:
            self.max_row = max(self.max_row, region.max_row)
            self.max_col = max(self.max_col, region.max_col)
            for r in range(region.min_row, region.max_row + 1):
                for c in range(region.min_col, region.max_col + 1):
                    if (r, c) != region.anchor:
                        self._anchors[(r, c)] = region.anchor

    @classmethod
    def from_worksheet(cls, sheet: Worksheet) -> 'Grid':
        cells = {}
        for row in sheet.iter_rows():
            for cell in row:
                value = classify_value(cell.value, getattr(cell, 'data_type', None))
                if not value.is_empty:
                    cells[(cell.row, cell.column)] = value
        merges = [
            MergeRegion(rng.min_row, rng.min_col, rng.max_row, rng.max_col)
            for rng in sheet.merged_cells.ranges
        ]
        return cls(cells, merges, title=sheet.title)

    @classmethod
    def from_values(cls, rows: Iterable[Sequence[Any]],
                    merges: Iterable[str] = (), title: str = '') -> 'Grid':
        """Build a grid from row lists (row 1 first) and A1-style merge ranges."""
        cells = {}
        for r, row in enumerate(rows, start=1):
            for c, raw in enumerate(row, start=1):
                value = classify_value(raw)
                if not value.is_empty:
                    cells[(r, c)] = value
        return cls(cells, [MergeRegion.from_range(ref) for ref in merges], title=title)

    def raw(self, row: int, col: int) -> CellValue:
        return self._cells.get((row, col), EMPTY_CELL)

    def resolve(self, row: int, col: int) -> CellValue:
        # Regions never overlap, so one redirect always lands on a stored value
        anchor = self._anchors.get((row, col))
        if anchor is not None:
            return self.raw(*anchor)
        return self.raw(row, col)

    def text(self, row: int, col: int) -> str:
        if row < 1 or col < 1:
            return ''
        return self.resolve(row, col).text()

    def is_merge_follower(self, row: int, col: int) -> bool:
        return (row, col) in self._anchors

    def row_texts(self, row: int) -> List[Tuple[int, str]]:
        """Non-empty resolved texts of a row as (column, text), left to right."""
        texts = []
        for col in range(1, self.max_col + 1):
            text = self.text(row, col)
            if text:
                texts.append((col, text))
        return texts
