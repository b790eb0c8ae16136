#!/usr/bin/env python3

import re
from dataclasses import dataclass
from typing import Tuple

PASS_FAIL = 'pass_fail'
PASS_FAIL_WITH_MEASUREMENT = 'pass_fail_with_measurement'
NUMBER_FIELD = 'number'

PLACEHOLDER_PATTERN = re.compile(r'\{\s*value\s*\}', re.IGNORECASE)

# Longest spellings first so "kWh" is not read as "kW"
KNOWN_UNITS = (
    'kWh', 'VAC', 'VDC', 'MΩ', 'kV', 'mV', 'mA', 'kW', 'MW', 'Hz', 'Nm', 'mm', 'bar',
    'ohm', '°C', 'Ω', '%', 'V', 'A', 'W',
)
_UNIT_ALTERNATION = '|'.join(re.escape(unit) for unit in KNOWN_UNITS)
UNIT_AFTER_PLACEHOLDER = re.compile(
    r'\{\s*value\s*\}\s*\(?\s*(' + _UNIT_ALTERNATION + r')(?![A-Za-z])', re.IGNORECASE
)
PARENTHESISED_UNIT = re.compile(r'\(\s*(' + _UNIT_ALTERNATION + r')\s*\)', re.IGNORECASE)


@dataclass(frozen=True)
class MeasurementField:
    id: str
    label: str
    unit: str = ''
    type: str = NUMBER_FIELD
    required: bool = True

    def to_dict(self):
        return {
            'id': self.id,
            'label': self.label,
            'type': self.type,
            'unit': self.unit,
            'required': self.required
        }


@dataclass(frozen=True)
class ItemClassification:
    type: str
    measurement_fields: Tuple[MeasurementField, ...] = ()


def has_placeholder(text: str) -> bool:
    return bool(PLACEHOLDER_PATTERN.search(text or ''))


def _canonical_unit(found: str) -> str:
    for unit in KNOWN_UNITS:
        if unit.lower() == found.lower():
            return unit
    return found


def find_unit_hint(value_text: str, label: str = '', context_text: str = '') -> str:
    """First unit mentioned next to the placeholder, then in brackets anywhere nearby."""
    match = UNIT_AFTER_PLACEHOLDER.search(value_text or '')
    if match:
        return _canonical_unit(match.group(1))
    for text in (value_text, label, context_text):
        match = PARENTHESISED_UNIT.search(text or '')
        if match:
            return _canonical_unit(match.group(1))
    return ''


def classify_item(label: str, value_text: str, context_text: str = '') -> ItemClassification:
    if not has_placeholder(value_text):
        return ItemClassification(PASS_FAIL)

    unit = find_unit_hint(value_text, label, context_text)
    field_label = label
    if unit and f"({unit.lower()})" not in label.lower():
        field_label = f"{label} ({unit})"
    measurement = MeasurementField(id='value_1', label=field_label, unit=unit)
    return ItemClassification(PASS_FAIL_WITH_MEASUREMENT, (measurement,))
