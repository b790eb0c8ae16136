#!/usr/bin/env python3
"""
Locate template identity (code, name, frequency) and free-form header facts.

Checklist workbooks carry their procedure code in row 3 column A and the
display name in row 3 columns F-H, but authors move things around, so every
lookup tolerates missing or misplaced values.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from cell_values import Grid

CODE_PATTERN = re.compile(r'(?<![A-Za-z])(PM|CM)[\s\-_]?(\d{2,4})(?!\d)', re.IGNORECASE)
BARE_CODE_PATTERN = re.compile(r'^(PM|CM)[\s\-_]?\d{2,4}$', re.IGNORECASE)

CODE_ROW = 3
# Checked in order after row 3 has been scanned left to right
EXTRA_CODE_CELLS = ((1, 1), (2, 1))

NAME_CANDIDATE_CELLS = ((3, 6), (3, 7), (3, 8))  # F3, G3, H3
MIN_NAME_LENGTH = 10

DEFAULT_FREQUENCY = 'monthly'

# Case-insensitive substrings in priority order: the first family with a hit
# wins, so "Bi-annual" reads as annual and "Bi-monthly" as monthly
FREQUENCY_KEYWORDS = (
    ('annually', ('annual', 'yearly')),
    ('monthly', ('monthly',)),
    ('weekly', ('weekly',)),
    ('quarterly', ('quarterly', 'quaterly')),
    ('bi-monthly', ('biannual', 'bi-annual')),
)

KNOWN_FACT_LABELS = (
    'plant',
    'procedure',
    'location',
    'checklist made by',
    'last revision approved by',
    'approved by',
    'revision',
    'date of issue',
)
FACT_LABEL_PATTERN = re.compile(r'^([A-Za-z][A-Za-z /&\-]{1,40}?)\s*:\s*(.*)$')


@dataclass(frozen=True)
class TemplateMetadata:
    code: Optional[str]
    name: str
    frequency: str


def canonicalize_code(text: str) -> Optional[str]:
    """Normalize e.g. 'pm 14', 'PM_014', 'SCB-PM-014' to 'PM-014'."""
    if not text:
        return None
    match = CODE_PATTERN.search(text)
    if not match:
        return None
    prefix, digits = match.group(1).upper(), match.group(2)
    # One number, one code: "PM-0014" and "PM-014" are the same template
    return f"{prefix}-{str(int(digits)).zfill(3)}"


def is_bare_code(text: str) -> bool:
    return bool(BARE_CODE_PATTERN.match(text.strip()))


def extract_template_code(grid: Grid) -> Optional[str]:
    candidates = [(CODE_ROW, col) for col in range(1, max(grid.max_col, 1) + 1)]
    candidates.extend(EXTRA_CODE_CELLS)
    for row, col in candidates:
        code = canonicalize_code(grid.text(row, col))
        if code:
            return code
    return None


def extract_template_name(grid: Grid) -> str:
    """Primary name cell with a 'longer text wins' fallback."""
    primary_row, primary_col = NAME_CANDIDATE_CELLS[0]
    name = grid.text(primary_row, primary_col)
    if is_bare_code(name):
        name = ''

    if len(name) < MIN_NAME_LENGTH:
        for row, col in NAME_CANDIDATE_CELLS[1:]:
            candidate = grid.text(row, col)
            # Strictly longer, so equal lengths keep the left-most candidate
            if candidate and not is_bare_code(candidate) and len(candidate) > len(name):
                name = candidate

    if not name:
        for _, text in grid.row_texts(primary_row):
            if is_bare_code(text):
                continue
            if len(text) > MIN_NAME_LENGTH and len(text) > len(name):
                name = text
    return name


def infer_frequency(name: str, file_name: str = '') -> str:
    haystacks = ((name or '').lower(), (file_name or '').lower())
    for frequency, keywords in FREQUENCY_KEYWORDS:
        if any(keyword in text for keyword in keywords for text in haystacks):
            return frequency
    return DEFAULT_FREQUENCY


def _fact_key(label: str) -> str:
    return re.sub(r'[^a-z0-9]+', '_', label.lower()).strip('_')


def extract_metadata_facts(grid: Grid, last_row: int) -> Dict[str, str]:
    """
    Collect labelled facts ("Plant: X", "Checklist made by | Y") from the
    header area above the checklist body.
    """
    facts: Dict[str, str] = {}
    for row in range(1, min(last_row, grid.max_row) + 1):
        cells: List[Tuple[int, str]] = [
            (col, text) for col, text in grid.row_texts(row)
            if not grid.is_merge_follower(row, col)
        ]
        for index, (col, text) in enumerate(cells):
            match = FACT_LABEL_PATTERN.match(text)
            if match:
                label, value = match.group(1).strip(), match.group(2).strip()
            elif text.lower().rstrip(' .') in KNOWN_FACT_LABELS:
                label, value = text.rstrip(' .'), ''
            else:
                continue
            if not value and index + 1 < len(cells):
                value = cells[index + 1][1]
            key = _fact_key(label)
            if value and key not in facts:
                facts[key] = value
    return facts


def locate_metadata(grid: Grid, file_name: str = '') -> TemplateMetadata:
    code = extract_template_code(grid)
    name = extract_template_name(grid)
    return TemplateMetadata(code=code, name=name, frequency=infer_frequency(name, file_name))
