#!/usr/bin/env python3

import os
import sys
import glob
import argparse
import concurrent.futures
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import time

from code_registry import (
    CodeClaim,
    build_code_usage,
    find_conflicts,
    suggest_codes,
)
from console import print_status
from extraction_config import ConfigurationError, ExtractionConfig, load_config
from spreadsheet_converter import (
    SUPPORTED_EXTENSIONS,
    convert_spreadsheet_to_template,
    dump_json,
    is_supported_file,
    save_json_output,
    OUTPUT_DIR
)
from template_builder import TemplateExtractionError
from template_store import JsonTemplateStore, TemplateStore, TemplateStoreError, import_templates

GLOB_CHARS = ('*', '?', '[')
DEFAULT_ALLOCATION_START = 1


@dataclass
class BatchReport:
    records: List[Any] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    unresolved_codes: List[str] = field(default_factory=list)
    conflicts: Dict[str, List[CodeClaim]] = field(default_factory=dict)
    suggestions: List[Dict[str, str]] = field(default_factory=list)
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    import_errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': len(self.records),
            'failed': len(self.failures),
            'imported': self.imported,
            'updated': self.updated,
            'skipped': self.skipped,
            'failures': self.failures,
            'unresolved_codes': self.unresolved_codes,
            'conflicts': {
                code: [claim.to_dict() for claim in claims]
                for code, claims in self.conflicts.items()
            },
            'suggestions': self.suggestions,
            'import_errors': self.import_errors
        }


def process_workbook(file_path: str, config: ExtractionConfig,
                     source_file: Optional[str] = None) -> Dict[str, Any]:
    """Process a single workbook; failures come back as data, never as exceptions."""
    try:
        start_time = time.time()
        record = convert_spreadsheet_to_template(file_path, config, source_file=source_file)
        return {
            'file_path': file_path,
            'record': record,
            'success': True,
            'processing_time': time.time() - start_time,
            'error': None
        }
    except TemplateExtractionError as e:
        return {
            'file_path': file_path,
            'record': None,
            'success': False,
            'processing_time': 0,
            'error': str(e)
        }
    except Exception as e:
        # openpyxl can fail deep inside a corrupt part; keep the batch going
        return {
            'file_path': file_path,
            'record': None,
            'success': False,
            'processing_time': 0,
            'error': f"{type(e).__name__}: {e}"
        }


def find_excel_files(path_patterns: List[str]) -> List[str]:
    """Find all Excel files matching the given patterns."""
    all_files = []

    for pattern in path_patterns:
        # If pattern is a directory, search for Excel files inside
        if os.path.isdir(pattern):
            for ext in SUPPORTED_EXTENSIONS:
                all_files.extend(glob.glob(os.path.join(pattern, f"**/*{ext}"), recursive=True))
        # If pattern is a file, check if it's an Excel file
        elif os.path.isfile(pattern):
            if is_supported_file(pattern):
                all_files.append(pattern)
        # Handle glob patterns
        elif any(ch in pattern for ch in GLOB_CHARS):
            matching_files = glob.glob(pattern, recursive=True)
            all_files.extend(f for f in matching_files if is_supported_file(f))
        else:
            raise ConfigurationError(f"Input path does not exist: {pattern}")

    # Excel lock files ("~$Book.xlsx") are not workbooks
    excel_files = [f for f in all_files if not os.path.basename(f).startswith('~$')]
    return sorted(set(excel_files))


def source_names(files: List[str]) -> Dict[str, str]:
    """Each file's path relative to the deepest directory holding all of them."""
    if not files:
        return {}
    root = os.path.commonpath([os.path.dirname(os.path.abspath(f)) for f in files])
    return {f: os.path.relpath(os.path.abspath(f), root).replace(os.sep, '/') for f in files}


def extract_all(files: List[str], config: ExtractionConfig, jobs: int = 1) -> List[Dict[str, Any]]:
    """Per-file extraction, in parallel when jobs > 1. Results are in file order."""
    names = source_names(files)
    results = []
    if jobs <= 1:
        results = [process_workbook(f, config, names[f]) for f in files]
    else:
        with concurrent.futures.ProcessPoolExecutor(max_workers=jobs) as executor:
            future_to_file = {
                executor.submit(process_workbook, file, config, names[file]): file
                for file in files
            }
            for future in concurrent.futures.as_completed(future_to_file):
                file = future_to_file[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    results.append({
                        'file_path': file,
                        'record': None,
                        'success': False,
                        'processing_time': 0,
                        'error': str(e)
                    })

    for result in results:
        name = os.path.basename(result['file_path'])
        if result['success']:
            print_status(f"✓ {name} ({result['processing_time']:.2f}s)", 'success')
        else:
            print_status(f"✗ {name} - Error: {result['error']}", 'error')
    return sorted(results, key=lambda r: r['file_path'])


def run_batch(files: List[str], config: Optional[ExtractionConfig] = None, jobs: int = 1,
              store: Optional[TemplateStore] = None,
              allocate_from: int = DEFAULT_ALLOCATION_START) -> BatchReport:
    config = config or ExtractionConfig()
    report = BatchReport()

    for result in extract_all(files, config, jobs):
        if result['success']:
            report.records.append(result['record'])
        else:
            report.failures.append({'source_file': result['file_path'], 'error': result['error']})

    report.unresolved_codes = [r.source_file for r in report.records if r.template_code is None]

    # Single writer: the usage map is only ever folded here, in file order
    claims = [
        CodeClaim(r.template_code, r.source_file, r.template_name)
        for r in report.records if r.template_code
    ]
    prior = store.existing_claims() if store is not None else []
    usage = build_code_usage(claims, prior=prior)
    report.conflicts = find_conflicts(usage, config.shared_code_families)
    report.suggestions = suggest_codes(report.conflicts, usage.keys(), start_from=allocate_from)

    if store is not None:
        conflicted = {
            (claim.source_file, claim.name)
            for claims_for_code in report.conflicts.values()
            for claim in claims_for_code
        }
        importable = []
        for record in report.records:
            if (record.source_file, record.template_name) in conflicted:
                report.skipped += 1
                report.import_errors.append({
                    'source_file': record.source_file,
                    'error': f"code {record.template_code} is claimed by another template"
                })
                continue
            importable.append(record)

        summary = import_templates(importable, store)
        report.imported = summary['imported']
        report.updated = summary['updated']
        report.skipped += summary['skipped']
        report.import_errors.extend(summary['errors'])

    return report


def print_summary(report: BatchReport, total_time: float) -> None:
    print_status("\nBatch Extraction Summary:", 'info')
    print_status(f"  Templates extracted: {len(report.records)}", 'success')
    if report.failures:
        print_status(f"  Failed files: {len(report.failures)}", 'error')
    print_status(f"  Imported: {report.imported}, Updated: {report.updated}, Skipped: {report.skipped}", 'info')
    print_status(f"  Total processing time: {total_time:.2f} seconds", 'info')

    for record in report.records:
        stats = record.diagnostics()
        print_status(
            f"  {record.template_code or '(no code)'} - {record.template_name}: "
            f"{stats['sections']} sections, {stats['items']} items, "
            f"{stats['measurement_fields']} measurement fields",
            'info'
        )

    for source_file in report.unresolved_codes:
        print_status(f"⚠ No template code in {source_file}, resolve manually", 'warning')

    for code, claims in report.conflicts.items():
        print_status(f"\n❌ {code} CONFLICT:", 'error')
        for claim in claims:
            print_status(f"  - {claim.source_file}: \"{claim.name}\"", 'error')

    for suggestion in report.suggestions:
        print_status(
            f"💡 Suggest {suggestion['suggested_code']} for \"{suggestion['name']}\" "
            f"({suggestion['source_file']}, currently {suggestion['code']})",
            'info'
        )


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Extract checklist templates from Excel workbooks in parallel',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        'paths',
        nargs='+',
        help='Path(s) to Excel files, directories, or glob patterns'
    )

    parser.add_argument(
        '-j', '--jobs',
        type=int,
        default=os.cpu_count(),
        help='Number of parallel jobs to run'
    )

    parser.add_argument(
        '--config',
        help='JSON config file (asset types, shared code families, plant, ...)'
    )

    parser.add_argument(
        '--store',
        help='JSON template store to upsert the extracted templates into'
    )

    parser.add_argument(
        '-o', '--output-dir',
        default=OUTPUT_DIR,
        help='Directory for the per-workbook JSON files'
    )

    parser.add_argument(
        '--no-save',
        action='store_true',
        help='Do not write per-workbook JSON files'
    )

    parser.add_argument(
        '-m', '--minify',
        action='store_true',
        help='Remove whitespace from JSON output'
    )

    parser.add_argument(
        '--allocate-from',
        type=int,
        default=DEFAULT_ALLOCATION_START,
        help='First code number to consider when suggesting replacement codes'
    )

    parser.add_argument(
        '--report',
        help='Write the batch report as JSON to this path'
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        excel_files = find_excel_files(args.paths)
        store = JsonTemplateStore(args.store) if args.store else None
    except (ConfigurationError, TemplateStoreError) as e:
        print_status(f"Error: {e}", 'error')
        return 1

    if not excel_files:
        print_status("No Excel files found matching the given paths", 'error')
        return 1

    print_status(f"Found {len(excel_files)} Excel files to process", 'info')
    print_status(f"  Parallel jobs: {args.jobs}", 'info')

    start_time = time.time()
    report = run_batch(excel_files, config, args.jobs, store, args.allocate_from)

    if not args.no_save:
        for record in report.records:
            save_json_output(record.to_dict(), record.source_file, args.minify, args.output_dir,
                             keep_subdirs=True)

    if args.report:
        with open(args.report, 'w', encoding='utf-8') as f:
            f.write(dump_json(report.to_dict(), args.minify))
        print_status(f"Report written to: {args.report}", 'success')

    print_summary(report, time.time() - start_time)
    print_status("\nBatch extraction completed!", 'success')
    return 0

if __name__ == "__main__":
    sys.exit(main())
