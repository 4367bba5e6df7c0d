"""
CLI interface.
Provides commands for detecting, previewing and converting tabular files.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from .config_loader import ConverterSettings, load_settings
from .converter import Converter
from .errors import AppError
from .export_pipeline import get_output_filename
from .exporter import render_cell
from .format_detector import FormatDetector
from .logging_setup import setup_logging
from .models import MIME_TYPES, ConvertOptions, InputFormat, OutputFormat
from .utils import read_text, truncate_string

logger = logging.getLogger(__name__)


class CLI:
    """Command-line interface for file conversion."""

    def __init__(self, settings: Optional[ConverterSettings] = None):
        """
        Initialize CLI.

        Args:
            settings: Converter settings (defaults when omitted)
        """
        self.converter = Converter(settings)

    def detect(self, file_path: Path) -> None:
        """
        Show the format detected from a file's name and content.

        Args:
            file_path: Input file
        """
        file_path = Path(file_path)
        by_name = FormatDetector.from_filename(file_path)
        by_content = FormatDetector.detect_bytes(file_path.read_bytes())

        table_data = [
            ['File', file_path.name],
            ['By extension', by_name.value if by_name else '-'],
            ['By content', by_content.value],
        ]
        if by_content in (InputFormat.CSV, InputFormat.TSV):
            delimiter = FormatDetector.detect_delimiter(read_text(file_path)[:65536])
            table_data.append(['Delimiter', repr(delimiter)])

        print(tabulate(table_data, tablefmt='grid'))

    def preview(self, file_path: Path, rows: int = 10, input_format: Optional[str] = None,
                sheet: Optional[str] = None, delimiter: Optional[str] = None) -> None:
        """
        Print the first rows of a file as a table.

        Args:
            file_path: Input file
            rows: Number of rows to display
            input_format: Declared input format
            sheet: Sheet index or name for spreadsheets
            delimiter: CSV delimiter
        """
        table = self.converter.parse_file(
            file_path, input_format, self._parse_options(sheet, delimiter)
        )

        if not table.rows:
            print(f"No rows in {Path(file_path).name}")
            if table.metadata.sheets:
                print(f"Sheets: {', '.join(table.metadata.sheets)}")
            return

        table_data = [
            [truncate_string(render_cell(row.get(h)), 40) for h in table.headers]
            for row in table.rows[:rows]
        ]

        print(f"\n{Path(file_path).name} ({table.format.value}): "
              f"{table.metadata.row_count} rows, {table.metadata.column_count} columns"
              f"{' (truncated)' if table.metadata.truncated else ''}\n")
        print(tabulate(table_data, headers=table.headers, tablefmt='grid'))

    def convert(self, file_path: Path, output_format: str,
                output_path: Optional[Path] = None,
                input_format: Optional[str] = None,
                sheet: Optional[str] = None,
                delimiter: Optional[str] = None,
                **writer_options) -> int:
        """
        Convert a file and write or print the result.

        Args:
            file_path: Input file
            output_format: Target format
            output_path: Destination (text goes to stdout, binary next to the input, if omitted)
            input_format: Declared input format
            sheet: Sheet index or name for spreadsheet input
            delimiter: CSV delimiter of the input
            **writer_options: table_name, include_create, batch_size, compact

        Returns:
            Exit code
        """
        file_path = Path(file_path)
        table = self.converter.parse_file(
            file_path, input_format, self._parse_options(sheet, delimiter)
        )

        options = ConvertOptions.from_dict({
            'output_format': output_format,
            'json': {'pretty_print': not writer_options.get('compact', False)},
            'sql': {k: v for k, v in writer_options.items()
                    if k in ('table_name', 'include_create', 'batch_size') and v is not None},
        })
        result = self.converter.convert(table, options)

        if not result.success:
            print(f"Error [{result.error_code}]: {result.error}", file=sys.stderr)
            return 1

        if output_path is None and result.is_binary:
            output_path = file_path.parent / get_output_filename(file_path.name, output_format)

        if output_path is None:
            print(result.data)
            return 0

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if result.is_binary:
            output_path.write_bytes(result.data)
        else:
            output_path.write_text(result.data, encoding='utf-8')

        print(f"✓ Converted {result.metadata.row_count} rows "
              f"({result.metadata.input_format} -> {result.metadata.output_format}) to {output_path}",
              file=sys.stderr)
        return 0

    def formats(self) -> None:
        """List supported formats."""
        readable = {fmt.value for fmt in InputFormat}
        table_data = [
            [fmt.value, f".{fmt.value}", 'yes' if fmt.value in readable else 'no', 'yes', MIME_TYPES[fmt]]
            for fmt in OutputFormat
        ]
        print(tabulate(table_data,
                       headers=['Format', 'Extension', 'Input', 'Output', 'MIME type'],
                       tablefmt='grid'))

    @staticmethod
    def _parse_options(sheet: Optional[str], delimiter: Optional[str]) -> dict:
        options = {'csv': {}, 'excel': {}}
        if delimiter:
            options['csv']['delimiter'] = '\t' if delimiter in ('\\t', 'tab') else delimiter
        if sheet is not None:
            options['excel']['selected_sheet'] = int(sheet) if sheet.isdigit() else sheet
        return options


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(prog='tabconvert',
                                     description="Convert between CSV, TSV, JSON, XML, Excel and SQL")

    parser.add_argument('--config', type=Path, help='Settings YAML file')
    parser.add_argument('--log-level', type=str, default=None, help='Logging level')
    parser.add_argument('--log-dir', type=Path, default=None, help='Directory for JSON log files')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # detect command
    detect_parser = subparsers.add_parser('detect', help='Detect the format of a file')
    detect_parser.add_argument('file', type=Path, help='Input file')

    # preview command
    preview_parser = subparsers.add_parser('preview', help='Show the first rows of a file')
    preview_parser.add_argument('file', type=Path, help='Input file')
    preview_parser.add_argument('--rows', type=int, default=10, help='Number of rows')
    preview_parser.add_argument('--from', dest='input_format',
                                choices=[f.value for f in InputFormat], help='Input format')
    preview_parser.add_argument('--sheet', type=str, help='Sheet index or name')
    preview_parser.add_argument('--delimiter', type=str, help='Input CSV delimiter')

    # convert command
    convert_parser = subparsers.add_parser('convert', help='Convert a file')
    convert_parser.add_argument('file', type=Path, help='Input file')
    convert_parser.add_argument('--to', dest='output_format', required=True,
                                choices=[f.value for f in OutputFormat], help='Output format')
    convert_parser.add_argument('-o', '--output', type=Path, help='Output path')
    convert_parser.add_argument('--from', dest='input_format',
                                choices=[f.value for f in InputFormat], help='Input format')
    convert_parser.add_argument('--table-name', type=str, help='SQL table name')
    convert_parser.add_argument('--include-create', action='store_true', default=None,
                                help='Emit CREATE TABLE')
    convert_parser.add_argument('--batch-size', type=int, help='Rows per INSERT')
    convert_parser.add_argument('--sheet', type=str, help='Sheet index or name')
    convert_parser.add_argument('--delimiter', type=str, help='Input CSV delimiter')
    convert_parser.add_argument('--compact', action='store_true', help='Compact JSON output')

    # formats command
    subparsers.add_parser('formats', help='List supported formats')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    setup_logging(
        log_dir=args.log_dir or settings.logging.log_dir,
        log_level=args.log_level or settings.logging.level,
        json_format=settings.logging.json_format,
    )

    cli = CLI(settings)

    try:
        if args.command == 'detect':
            cli.detect(args.file)
        elif args.command == 'preview':
            cli.preview(args.file, rows=args.rows, input_format=args.input_format,
                        sheet=args.sheet, delimiter=args.delimiter)
        elif args.command == 'convert':
            return cli.convert(
                args.file, args.output_format,
                output_path=args.output,
                input_format=args.input_format,
                sheet=args.sheet,
                delimiter=args.delimiter,
                table_name=args.table_name,
                include_create=args.include_create,
                batch_size=args.batch_size,
                compact=args.compact,
            )
        elif args.command == 'formats':
            cli.formats()
        else:
            parser.print_help()
    except AppError as e:
        logger.error(f"{e.code.value}: {e.message}")
        print(f"Error [{e.code.value}]: {e.message}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
