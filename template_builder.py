#!/usr/bin/env python3
"""
Assemble the normalized checklist template for one worksheet.

The record produced here is immutable and carries everything persistence
needs; ``to_dict()`` gives the JSON shape stored as ``checklist_structure``.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from cell_values import Grid
from extraction_config import ExtractionConfig
from field_synthesizer import MeasurementField, PASS_FAIL, classify_item
from group_detector import detect_groups
from metadata_locator import extract_metadata_facts, locate_metadata
from section_detector import (
    DetectedSection,
    DetectionResult,
    detect_sections,
    find_header_row,
    locate_columns,
)


class TemplateExtractionError(Exception):
    """A single source file could not be turned into a template."""


@dataclass(frozen=True)
class Item:
    id: str
    label: str
    type: str = PASS_FAIL
    required: bool = True
    measurement_fields: Tuple[MeasurementField, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'label': self.label,
            'type': self.type,
            'required': self.required
        }
        if self.measurement_fields:
            data['measurement_fields'] = [f.to_dict() for f in self.measurement_fields]
        return data


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    items: Tuple[Item, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'items': [item.to_dict() for item in self.items]
        }


@dataclass(frozen=True)
class TemplateRecord:
    template_code: Optional[str]
    template_name: str
    description: str
    asset_type: str
    task_type: str
    frequency: str
    sections: Tuple[Section, ...]
    metadata: Tuple[Tuple[str, Any], ...] = ()
    source_file: str = ''
    warnings: Tuple[str, ...] = ()

    def diagnostics(self) -> Dict[str, int]:
        items = [item for section in self.sections for item in section.items]
        return {
            'sections': len(self.sections),
            'items': len(items),
            'measurement_fields': sum(len(item.measurement_fields) for item in items)
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'template_code': self.template_code,
            'template_name': self.template_name,
            'description': self.description,
            'asset_type': self.asset_type,
            'task_type': self.task_type,
            'frequency': self.frequency,
            'checklist_structure': {
                'sections': [section.to_dict() for section in self.sections],
                'metadata': dict(self.metadata)
            }
        }


def _title_case(asset_type: str) -> str:
    return ' '.join(word.capitalize() for word in asset_type.replace('_', ' ').split())


def _build_section(number: int, detected: DetectedSection) -> Section:
    section_id = f"section_{number}"
    items = []
    for index, detected_item in enumerate(detected.items, start=1):
        classification = classify_item(detected_item.label, detected_item.value_text, detected.context)
        items.append(Item(
            id=f"item_{number}_{index}",
            label=detected_item.label,
            type=classification.type,
            measurement_fields=classification.measurement_fields,
        ))
    return Section(id=section_id, title=detected.title, items=tuple(items))


def detect_all_sections(grid: Grid, config: ExtractionConfig) -> Tuple[List[DetectedSection], DetectionResult, Optional[int]]:
    header_row = find_header_row(grid)
    layout = locate_columns(grid, header_row)
    numbered = detect_sections(grid, (header_row or 0) + 1, layout, max_rows=config.max_rows)
    grouped = detect_groups(grid, pattern=config.group_label_pattern)

    # Stable merge by position in the sheet
    detected = sorted(numbered.sections + grouped, key=lambda s: (s.row, s.col))
    return detected, numbered, header_row


def build_template(grid: Grid, file_name: str, config: Optional[ExtractionConfig] = None,
                   asset_type: Optional[str] = None, source_file: Optional[str] = None) -> TemplateRecord:
    """``source_file`` names the workbook in the record; defaults to its base name."""
    config = config or ExtractionConfig()
    base_name = os.path.basename(file_name)
    source_file = source_file or base_name
    asset_type = asset_type or config.asset_type_for(base_name)

    meta = locate_metadata(grid, base_name)
    detected, numbered, header_row = detect_all_sections(grid, config)
    sections = tuple(_build_section(n, s) for n, s in enumerate(detected, start=1))

    asset_title = _title_case(asset_type)
    name = meta.name or f"{asset_title} Inspection"
    description = meta.name or f"{asset_title} Preventive Maintenance"

    facts_end = (header_row - 1) if header_row else min(grid.max_row, 10)
    facts = extract_metadata_facts(grid, facts_end)
    metadata: Dict[str, Any] = {
        'procedure': meta.code,
        'plant': facts.pop('plant', config.plant),
    }
    for key, value in facts.items():
        metadata.setdefault(key, value)
    metadata['source_file'] = source_file

    return TemplateRecord(
        template_code=meta.code,
        template_name=name,
        description=description,
        asset_type=asset_type,
        task_type=config.task_type,
        frequency=meta.frequency,
        sections=sections,
        metadata=tuple(metadata.items()),
        source_file=source_file,
        warnings=tuple(numbered.warnings),
    )
