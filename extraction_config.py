#!/usr/bin/env python3

import json
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from code_registry import DEFAULT_SHARED_CODE_FAMILIES, SharedCodeFamily, parse_shared_code_families
from group_detector import DEFAULT_GROUP_LABEL_PATTERN
from section_detector import DEFAULT_MAX_ROWS

DEFAULT_TASK_TYPE = 'PM'
DEFAULT_PLANT = 'WITKOP SOLAR PLANT'

# Known checklist workbooks and the asset they cover
ASSET_TYPE_MAPPING = {
    'CCTV-Annual.xlsx': 'cctv',
    'CCTV-Monthly.xlsx': 'cctv',
    'Concentrated-Cabinet.xlsx': 'concentrated_cabinet',
    'CT-MV.xlsx': 'ct_mv',
    'Energy-Meter.xlsx': 'energy_meter',
    'Inverters.xlsx': 'inverter',
    'SCADA-Stings-monitoring.xlsx': 'scada',
    'SCADA-Trackers-monitoring.xlsx': 'scada',
    'String-Combiner-box-Inspection.xlsx': 'string_combiner_box',
    'SUBSTATION-BATTERIES.xlsx': 'substation',
    'Substation.xlsx': 'substation',
    'Tracker.xlsx': 'tracker',
    'Ventilation.xlsx': 'ventilation'
}

CONFIG_KEYS = {
    'asset_types', 'shared_code_families', 'plant', 'task_type',
    'group_label_pattern', 'max_rows'
}


class ConfigurationError(Exception):
    """Raised for problems that must stop a run before any file is processed."""


@dataclass(frozen=True)
class ExtractionConfig:
    asset_types: Dict[str, str] = field(default_factory=lambda: dict(ASSET_TYPE_MAPPING))
    shared_code_families: Tuple[SharedCodeFamily, ...] = DEFAULT_SHARED_CODE_FAMILIES
    plant: str = DEFAULT_PLANT
    task_type: str = DEFAULT_TASK_TYPE
    group_label_pattern: str = DEFAULT_GROUP_LABEL_PATTERN
    max_rows: int = DEFAULT_MAX_ROWS

    def asset_type_for(self, file_name: str) -> str:
        base_name = os.path.basename(file_name)
        if base_name in self.asset_types:
            return self.asset_types[base_name]
        stem = os.path.splitext(base_name)[0]
        return re.sub(r'[^a-z0-9]+', '_', stem.lower()).strip('_') or 'general'


def load_config(path: Optional[str]) -> ExtractionConfig:
    """Read a JSON config file; missing keys keep their defaults."""
    config = ExtractionConfig()
    if not path:
        return config

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw: Dict[str, Any] = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    unknown = set(raw) - CONFIG_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

    changes: Dict[str, Any] = {}
    try:
        if 'asset_types' in raw:
            changes['asset_types'] = {**config.asset_types, **{str(k): str(v) for k, v in raw['asset_types'].items()}}
        if 'shared_code_families' in raw:
            changes['shared_code_families'] = parse_shared_code_families(raw['shared_code_families'])
        for key in ('plant', 'task_type', 'group_label_pattern'):
            if key in raw:
                changes[key] = str(raw[key])
        if 'max_rows' in raw:
            changes['max_rows'] = int(raw['max_rows'])
        if 'group_label_pattern' in changes:
            re.compile(changes['group_label_pattern'])
    except (AttributeError, KeyError, TypeError, ValueError, re.error) as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e

    return replace(config, **changes)
