#!/usr/bin/env python3
"""
Detection of sub-forms repeated side by side.

Some checklists (battery banks being the usual case) copy the same block of
"Cell <n>" / reading columns horizontally once per physical instrument. Each
copy becomes its own section; numbering restarts or continues per copy and is
never merged across copies.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple, Union

from cell_values import Grid
from section_detector import DetectedItem, DetectedSection

DEFAULT_GROUP_LABEL_PATTERN = r'battery\s+bank'
LEAF_PATTERN = re.compile(r'cell\s*(\d+)', re.IGNORECASE)
GROUP_HEADER_SCAN_ROWS = 30
LEAF_PROBE_ROWS = 5
DEFAULT_ROW_WINDOW = 110


@dataclass(frozen=True)
class ColumnGroup:
    label: str
    col: int
    # (label column, value column) pairs, left to right
    pairs: Tuple[Tuple[int, int], ...]


def _compile(pattern: Union[str, Pattern]) -> Pattern:
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    return pattern


def _label_columns(grid: Grid, row: int, pattern: Pattern) -> List[Tuple[int, str]]:
    return [
        (col, text) for col, text in grid.row_texts(row)
        if not grid.is_merge_follower(row, col) and pattern.search(text)
    ]


def _has_leaves_below(grid: Grid, row: int, col: int) -> bool:
    return any(
        _leaf_number(grid.text(r, c)) is not None
        for r in range(row + 1, row + LEAF_PROBE_ROWS + 1)
        for c in (col, col + 1)
    )


def find_group_header(grid: Grid, pattern: Union[str, Pattern] = DEFAULT_GROUP_LABEL_PATTERN,
                      max_rows: int = GROUP_HEADER_SCAN_ROWS) -> Optional[int]:
    """First row where a group label has "Cell <n>" rows right under it."""
    pattern = _compile(pattern)
    for row in range(1, min(max_rows, grid.max_row) + 1):
        # Titles like "Battery Bank Inspection" match the label but have no leaves
        if any(_has_leaves_below(grid, row, col) for col, _ in _label_columns(grid, row, pattern)):
            return row
    return None


def _merged_width(grid: Grid, row: int, col: int) -> int:
    for region in grid.merges:
        if region.anchor == (row, col):
            return region.max_col - region.min_col + 1
    return 1


def _group_end(grid: Grid, header_row: int, labels: List[Tuple[int, str]], index: int) -> int:
    """Exclusive end column of the group starting at ``labels[index]``."""
    col = labels[index][0]
    if index + 1 < len(labels):
        end = labels[index + 1][0]
    elif _merged_width(grid, header_row, col) > 1:
        end = col + _merged_width(grid, header_row, col)
    elif index > 0:
        end = col + (col - labels[index - 1][0])
    else:
        end = col + 2
    end = min(end, grid.max_col + 1)

    # Another header (e.g. "Remarks") closes the group
    for c in range(col + 1, end):
        if grid.text(header_row, c) and not grid.is_merge_follower(header_row, c):
            return c
    return end


def locate_groups(grid: Grid, header_row: int,
                  pattern: Union[str, Pattern] = DEFAULT_GROUP_LABEL_PATTERN) -> List[ColumnGroup]:
    labels = _label_columns(grid, header_row, _compile(pattern))
    groups = []
    for index, (col, text) in enumerate(labels):
        end = _group_end(grid, header_row, labels, index)
        pairs = tuple((c, c + 1) for c in range(col, end, 2))
        groups.append(ColumnGroup(label=text, col=col, pairs=pairs))
    return groups


def _leaf_number(text: str) -> Optional[int]:
    match = LEAF_PATTERN.search(text)
    return int(match.group(1)) if match else None


def scan_group(grid: Grid, group: ColumnGroup, header_row: int,
               row_window: int = DEFAULT_ROW_WINDOW) -> DetectedSection:
    section = DetectedSection(title=group.label, row=header_row, col=group.col)
    last_row = min(grid.max_row, header_row + row_window)
    items = []
    for row in range(header_row + 1, last_row + 1):
        for label_col, value_col in group.pairs:
            number = _leaf_number(grid.text(row, label_col))
            if number is None:
                continue
            items.append(DetectedItem(
                row=row,
                number=str(number),
                label=f"Cell {number}",
                value_text=grid.text(row, value_col),
                sort_key=number,
            ))
    # sorted() is stable, so equal numbers keep row/column encounter order
    section.items = sorted(items, key=lambda item: item.sort_key)
    section.context = _value_header(grid, group, header_row)
    return section


def _value_header(grid: Grid, group: ColumnGroup, header_row: int) -> str:
    """Text above the first value column, e.g. 'Voltage (V)', used as a unit hint."""
    _, value_col = group.pairs[0]
    for row in range(header_row + 1, min(grid.max_row, header_row + 3) + 1):
        text = grid.text(row, value_col)
        if text and _leaf_number(text) is None:
            return text
    return ''


def detect_groups(grid: Grid, header_row: Optional[int] = None,
                  pattern: Union[str, Pattern] = DEFAULT_GROUP_LABEL_PATTERN,
                  row_window: int = DEFAULT_ROW_WINDOW) -> List[DetectedSection]:
    """One section per repeated column group that has at least one leaf row."""
    if header_row is None:
        header_row = find_group_header(grid, pattern)
        if header_row is None:
            return []
    sections = []
    for group in locate_groups(grid, header_row, pattern):
        section = scan_group(grid, group, header_row, row_window)
        if section.items:
            sections.append(section)
    return sections
