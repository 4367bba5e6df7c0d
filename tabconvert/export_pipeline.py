"""
Export pipeline orchestrator.
Dispatches a parsed table to the writer for the requested output format.
"""

import logging
import re
from typing import Any, Dict, Optional, Union

from .csv_exporter import CSVWriter
from .errors import AppError, ErrorCode
from .excel_exporter import ExcelWriter
from .exporter import Writer
from .json_exporter import JSONWriter
from .models import (
    MIME_TYPES,
    ConversionMetadata,
    ConversionResult,
    ConvertOptions,
    OutputFormat,
    TabularData,
)
from .sql_exporter import SQLWriter
from .xlsx_parser import SpreadsheetCodec
from .xml_exporter import XMLWriter

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r'\.[^/.]+$')


def get_output_filename(input_name: Optional[str], output_format: Union[OutputFormat, str]) -> str:
    """
    Name for a converted file: the input's last extension swapped for the output format.

    Example:
        >>> get_output_filename('data.csv', 'json')
        'data.json'
        >>> get_output_filename(None, 'xlsx')
        'converted.xlsx'
    """
    base = _EXTENSION_RE.sub('', input_name) if input_name else 'converted'
    return f"{base}.{OutputFormat(output_format).value}"


class ExportPipeline:
    """Orchestrates conversion across all output formats."""

    # ConvertOptions attribute holding each format's writer options
    OPTION_KEYS = {
        OutputFormat.CSV: 'csv',
        OutputFormat.TSV: 'csv',
        OutputFormat.JSON: 'json',
        OutputFormat.XML: 'xml',
        OutputFormat.SQL: 'sql',
        OutputFormat.XLSX: 'excel',
        OutputFormat.XLS: 'excel',
    }

    def __init__(self, codec: Optional[SpreadsheetCodec] = None):
        """
        Initialize export pipeline.

        Args:
            codec: Shared SpreadsheetCodec for the spreadsheet writers
        """
        self.codec = codec or SpreadsheetCodec()
        self.writers: Dict[OutputFormat, Writer] = {
            OutputFormat.CSV: CSVWriter(delimiter=','),
            OutputFormat.TSV: CSVWriter(delimiter='\t'),
            OutputFormat.JSON: JSONWriter(),
            OutputFormat.XML: XMLWriter(),
            OutputFormat.SQL: SQLWriter(),
            OutputFormat.XLSX: ExcelWriter(self.codec, 'xlsx'),
            OutputFormat.XLS: ExcelWriter(self.codec, 'xls'),
        }

    def convert_data(self, data: TabularData, options: Union[ConvertOptions, Dict[str, Any]]) -> ConversionResult:
        """
        Convert a parsed table to the requested output format.
        Never raises: failures are reported on the result.

        Args:
            data: Parsed table
            options: ConvertOptions or dict (output_format required)

        Returns:
            ConversionResult; on success data is str, or bytes for spreadsheets
        """
        requested = options.get('output_format', options.get('outputFormat')) \
            if isinstance(options, dict) else getattr(options, 'output_format', None)
        requested = getattr(requested, 'value', requested)

        try:
            if not isinstance(options, ConvertOptions):
                options = ConvertOptions.from_dict(options)
            fmt = options.output_format
            writer = self.writers[fmt]
            writer_options = getattr(options, self.OPTION_KEYS[fmt])
            writer_options.validate()

            logger.info(f"Converting {len(data.rows)} rows to {fmt.value}")
            output = writer.write(data.headers, data.rows, writer_options)

        except AppError as e:
            logger.error(f"Conversion to {requested} failed: {e.message}")
            return self._failure(requested, e.message, e.code)
        except Exception as e:
            logger.error(f"Conversion to {requested} failed: {e}")
            return self._failure(requested, str(e) or "Conversion failed", ErrorCode.CONVERSION_FAILED)

        return ConversionResult(
            success=True,
            format=fmt.value,
            data=output,
            mime_type=MIME_TYPES[fmt],
            metadata=ConversionMetadata(
                input_format=data.format.value if data.format else 'csv',
                output_format=fmt.value,
                row_count=len(data.rows),
                column_count=len(data.headers),
            ),
        )

    @staticmethod
    def _failure(fmt: Any, message: str, code: ErrorCode) -> ConversionResult:
        return ConversionResult(
            success=False,
            format=str(fmt) if fmt is not None else '',
            error=message,
            error_code=ErrorCode(code).value,
        )
