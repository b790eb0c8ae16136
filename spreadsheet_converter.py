#!/usr/bin/env python3

import datetime
import json
import os
import sys
import zipfile
from typing import Any, Dict, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from cell_values import Grid
from console import print_status
from extraction_config import ExtractionConfig
from template_builder import TemplateExtractionError, TemplateRecord, build_template

# Constants
SUPPORTED_EXTENSIONS = ['.xlsx', '.xls', '.xlsm']
OUTPUT_DIR = 'converted_json'
DEFAULT_ENCODING = 'utf-8'


class ExcelJSONEncoder(json.JSONEncoder):
    """Custom JSON encoder to handle Excel date values in extracted facts."""
    def default(self, obj):
        if isinstance(obj, (datetime.datetime, datetime.date)):
            return obj.isoformat()
        return super().default(obj)


def is_supported_file(file_path: str) -> bool:
    return any(file_path.lower().endswith(ext) for ext in SUPPORTED_EXTENSIONS)


def load_grid(file_path: str) -> Grid:
    """Load the first worksheet of a workbook as a resolved grid."""
    if not os.path.exists(file_path):
        raise TemplateExtractionError(f"File not found: {file_path}")

    if not is_supported_file(file_path):
        raise TemplateExtractionError(
            f"Unsupported file format. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    try:
        workbook = openpyxl.load_workbook(file_path, data_only=False, rich_text=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise TemplateExtractionError(f"Failed to load workbook {os.path.basename(file_path)}: {e}") from e

    try:
        if not workbook.worksheets:
            raise TemplateExtractionError(f"No worksheets found in {os.path.basename(file_path)}")
        return Grid.from_worksheet(workbook.worksheets[0])
    finally:
        workbook.close()


def convert_spreadsheet_to_template(file_path: str, config: Optional[ExtractionConfig] = None,
                                    asset_type: Optional[str] = None,
                                    source_file: Optional[str] = None) -> TemplateRecord:
    """Extract the checklist template from one workbook."""
    print_status(f"Processing file: {file_path}", 'info')
    grid = load_grid(file_path)
    record = build_template(grid, file_path, config, asset_type=asset_type, source_file=source_file)

    stats = record.diagnostics()
    print_status(
        f"Extracted {record.template_code or 'no code'}: {stats['sections']} sections, "
        f"{stats['items']} items, {stats['measurement_fields']} measurement fields",
        'success'
    )
    if record.template_code is None:
        print_status(f"Warning: no template code found in {record.source_file}, needs manual resolution", 'warning')
    return record


def convert_spreadsheet_to_json(file_path: str, config: Optional[ExtractionConfig] = None,
                                asset_type: Optional[str] = None) -> Dict[str, Any]:
    return convert_spreadsheet_to_template(file_path, config, asset_type).to_dict()


def dump_json(data: Any, minify: bool = False) -> str:
    if minify:
        return json.dumps(data, ensure_ascii=False, cls=ExcelJSONEncoder, separators=(',', ':'))
    return json.dumps(data, indent=2, ensure_ascii=False, cls=ExcelJSONEncoder)


def save_json_output(data: Dict[str, Any], original_file_path: str, minify: bool = False,
                     output_dir: str = OUTPUT_DIR, keep_subdirs: bool = False) -> str:
    """
    Save JSON output next to the other converted templates, one file per workbook.
    With ``keep_subdirs`` a relative path such as ``a/Tracker.xlsx`` is written
    to ``<output_dir>/a/Tracker.json`` so equally named workbooks do not clash.
    """
    try:
        relative = original_file_path if keep_subdirs else os.path.basename(original_file_path)
        output_path = os.path.join(output_dir, f"{os.path.splitext(relative)[0]}.json")
        os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)

        with open(output_path, 'w', encoding=DEFAULT_ENCODING) as f:
            f.write(dump_json(data, minify))

        print_status(f"Successfully saved JSON to: {output_path}", 'success')
        return output_path

    except OSError as e:
        print_status(f"Error saving JSON output: {str(e)}", 'error')
        raise


def main():
    if len(sys.argv) < 2:
        print_status("Usage: python spreadsheet_converter.py <path_to_spreadsheet> [--minify]", 'error')
        sys.exit(1)

    file_path = sys.argv[1]
    minify = '--minify' in sys.argv

    try:
        data = convert_spreadsheet_to_json(file_path)
        save_json_output(data, file_path, minify)
    except TemplateExtractionError as e:
        print_status(f"Error: {str(e)}", 'error')
        sys.exit(1)

if __name__ == "__main__":
    main()
