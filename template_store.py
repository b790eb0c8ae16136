#!/usr/bin/env python3
"""
Persistence boundary for extracted templates.

The extractor only needs two things from storage: the codes already taken
(with the template names behind them) and an upsert keyed by template code.
Templates that share a code on purpose (annual and monthly CCTV) are told
apart by name, so a stored code holds one entry per template name.
``JsonTemplateStore`` keeps everything in a single JSON file.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from code_registry import CodeClaim, normalize_name
from console import print_status
from template_builder import TemplateRecord

INSERTED = 'inserted'
UPDATED = 'updated'
STORE_SOURCE = '<store>'


class TemplateStoreError(Exception):
    pass


class TemplateStore(ABC):
    """Keyed-upsert interface the batch importer writes through."""

    @abstractmethod
    def existing_claims(self) -> List[CodeClaim]:
        """(code, name) claims already persisted, for conflict detection."""

    @abstractmethod
    def upsert(self, record: TemplateRecord) -> str:
        """Insert or replace ``record``; returns INSERTED or UPDATED."""


class JsonTemplateStore(TemplateStore):
    def __init__(self, path: str):
        self.path = path
        self._templates: Dict[str, Dict[str, Dict[str, Any]]] = self._load()

    def _load(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TemplateStoreError(f"Cannot read template store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise TemplateStoreError(f"Template store {self.path} must contain a JSON object")
        return data

    def _flush(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(self._templates, f, indent=2, ensure_ascii=False, sort_keys=True)
        os.replace(tmp_path, self.path)

    def existing_claims(self) -> List[CodeClaim]:
        return [
            CodeClaim(code, STORE_SOURCE, template.get('template_name', ''))
            for code, by_name in sorted(self._templates.items())
            for _, template in sorted(by_name.items())
        ]

    def get(self, code: str) -> List[Dict[str, Any]]:
        return [template for _, template in sorted(self._templates.get(code, {}).items())]

    def upsert(self, record: TemplateRecord) -> str:
        if not record.template_code:
            raise TemplateStoreError("template has no code; resolve it manually before import")

        by_name = self._templates.setdefault(record.template_code, {})
        key = normalize_name(record.template_name)
        action = UPDATED if key in by_name else INSERTED
        by_name[key] = record.to_dict()
        try:
            self._flush()
        except OSError as e:
            raise TemplateStoreError(f"Cannot write template store {self.path}: {e}") from e
        return action


def import_templates(records: Iterable[TemplateRecord], store: TemplateStore) -> Dict[str, Any]:
    """Upsert every record; a failing record is skipped, never fatal."""
    summary: Dict[str, Any] = {'imported': 0, 'updated': 0, 'skipped': 0, 'errors': []}
    for record in records:
        try:
            action = store.upsert(record)
        except TemplateStoreError as e:
            summary['skipped'] += 1
            summary['errors'].append({'source_file': record.source_file, 'error': str(e)})
            print_status(f"✗ Skipped {record.source_file}: {e}", 'error')
            continue

        if action == UPDATED:
            summary['updated'] += 1
            print_status(f"✓ Updated: {record.template_code} - {record.template_name}", 'success')
        else:
            summary['imported'] += 1
            print_status(f"✓ Imported: {record.template_code} - {record.template_name}", 'success')
    return summary
