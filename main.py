#!/usr/bin/env python3

import argparse
import sys
from typing import Optional
from console import print_status
from extraction_config import ConfigurationError, load_config
from spreadsheet_converter import convert_spreadsheet_to_json, dump_json
from template_builder import TemplateExtractionError

def process_excel_file(file_path: str, asset_type: Optional[str] = None,
                       config_path: Optional[str] = None) -> bool:
    """
    Extract the checklist template from a local Excel file and print it as JSON.
    Returns True if successful, False otherwise.
    """
    try:
        config = load_config(config_path)
        data = convert_spreadsheet_to_json(file_path, config, asset_type=asset_type)
    except (ConfigurationError, TemplateExtractionError) as e:
        print_status(f"Error processing Excel file: {str(e)}", 'error')
        return False
    except Exception as e:
        # openpyxl can fail deep inside a corrupt part
        print_status(f"Error processing Excel file: {type(e).__name__}: {e}", 'error')
        return False

    print(dump_json(data))
    print_status("Extraction completed successfully!", 'success')
    return True

def main() -> int:
    """Main function. Returns exit code (0 for success, 1 for failure)."""
    parser = argparse.ArgumentParser(
        description="Extract a checklist template from an Excel inspection sheet and print it as JSON."
    )
    parser.add_argument("--file", type=str, help="Path to a local Excel file.")
    parser.add_argument(
        "--asset-type",
        type=str,
        default=None,
        help="Asset type to record (defaults to a lookup by file name)."
    )
    parser.add_argument("--config", type=str, default=None, help="Optional JSON config file.")

    args = parser.parse_args()

    # If file is not provided, print help
    if not args.file:
        parser.print_help()
        return 1

    success = process_excel_file(args.file, args.asset_type, args.config)
    return 0 if success else 1

if __name__ == "__main__":
    sys.exit(main())
