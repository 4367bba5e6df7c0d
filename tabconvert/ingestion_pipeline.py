"""
Ingestion pipeline orchestrator.
Resolves the input format and dispatches to the matching parser.
"""

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .config_loader import ConverterSettings
from .errors import ErrorCode, ParseError, create_file_too_large_error
from .models import CsvOptions, InputFormat, ParseOptions, SPREADSHEET_FORMATS, TabularData
from .parsers_init import CSVParser, ExcelParser, FormatDetector, JSONParser, XMLParser
from .utils import decode_bytes, read_text
from .xlsx_parser import SpreadsheetCodec

logger = logging.getLogger(__name__)

# Leading text inspected for the CSV delimiter
DELIMITER_SAMPLE_BYTES = 65536


class IngestionPipeline:
    """Orchestrates format detection and parsing."""

    def __init__(self, settings: Optional[ConverterSettings] = None,
                 codec: Optional[SpreadsheetCodec] = None):
        """
        Initialize ingestion pipeline.

        Args:
            settings: Converter settings (limits, streaming)
            codec: Shared SpreadsheetCodec
        """
        self.settings = settings or ConverterSettings.default()
        self.codec = codec or SpreadsheetCodec()

        streaming = self.settings.streaming
        self.csv_parser = CSVParser(
            chunk_size=streaming.chunk_size,
            max_rows=streaming.max_rows,
            streaming_threshold=streaming.threshold_bytes,
        )
        self.json_parser = JSONParser(chunk_size=streaming.chunk_size, max_rows=streaming.max_rows)
        self.xml_parser = XMLParser(max_bytes=self.settings.limits.max_xml_bytes)
        self.excel_parser = ExcelParser(self.codec)

        self.parsers: Dict[InputFormat, Callable[[Any, ParseOptions], TabularData]] = {
            InputFormat.CSV: self._parse_csv,
            InputFormat.TSV: self._parse_tsv,
            InputFormat.JSON: lambda text, opts: self.json_parser.parse(text, opts.json),
            InputFormat.XML: lambda text, opts: self.xml_parser.parse(text),
            InputFormat.XLSX: lambda buffer, opts: self.excel_parser.parse(buffer, opts.excel),
            InputFormat.XLS: lambda buffer, opts: self.excel_parser.parse(buffer, opts.excel),
        }

    def parse_data(self, data: Union[str, bytes],
                   format: Optional[Union[InputFormat, str]] = None,
                   options: Any = None) -> TabularData:
        """
        Parse text or workbook bytes into a table.

        Args:
            data: Text content, or bytes (spreadsheets, or encoded text)
            format: Declared input format (detected when omitted)
            options: ParseOptions, ConvertOptions or dict with csv/json/excel keys

        Returns:
            TabularData tagged with the resolved format

        Raises:
            ParseError: Malformed CSV/JSON/spreadsheet input (XML never raises)
            FileError: Input larger than limits.max_input_bytes
        """
        options = ParseOptions.from_dict(options)
        fmt = self._resolve_format(format)

        if isinstance(data, (bytes, bytearray)):
            data = bytes(data)
            self._check_size(len(data))
            if fmt is None:
                fmt = FormatDetector.detect_bytes(data)
            if fmt.value not in SPREADSHEET_FORMATS:
                data = decode_bytes(data)
        else:
            self._check_size(len(data.encode('utf-8', 'surrogatepass')))
            if fmt is None:
                fmt = FormatDetector.detect(data)
            elif fmt.value in SPREADSHEET_FORMATS:
                raise ParseError(
                    f"{fmt.value} input must be bytes, not text",
                    ErrorCode.INVALID_EXCEL,
                    format=fmt.value,
                )

        logger.info(f"Parsing input as {fmt.value}")
        table = self.parsers[fmt](data, options)
        if table.format != fmt and fmt.value not in SPREADSHEET_FORMATS:
            table = table.with_format(fmt)

        return self._apply_limits(table)

    def parse_file(self, file_path: Path,
                   format: Optional[Union[InputFormat, str]] = None,
                   options: Any = None) -> TabularData:
        """
        Parse a file, streaming large CSV/TSV and JSON files.

        Args:
            file_path: Input file
            format: Declared input format (extension, then content when omitted)
            options: ParseOptions or dict

        Returns:
            TabularData carrying file_name and file_size metadata
        """
        file_path = Path(file_path)
        options = ParseOptions.from_dict(options)
        file_size = file_path.stat().st_size
        logger.info(f"Parsing file: {file_path.name} ({file_size} bytes)")

        fmt = self._resolve_format(format) or FormatDetector.from_filename(file_path)
        streaming = self.settings.streaming

        if fmt in (InputFormat.CSV, InputFormat.TSV, InputFormat.JSON) \
                and file_size > streaming.threshold_bytes:
            logger.info(f"Streaming {file_path.name} (over {streaming.threshold_bytes} bytes)")
            if fmt == InputFormat.JSON:
                coro = self.json_parser.parse_stream(file_path, options.json)
            else:
                if fmt == InputFormat.TSV:
                    csv_options = dataclasses.replace(options.csv, delimiter='\t')
                else:
                    with open(file_path, 'rb') as f:
                        sample = decode_bytes(f.read(DELIMITER_SAMPLE_BYTES))
                    csv_options = self._csv_options(options, sample)
                coro = self.csv_parser.parse_stream(file_path, csv_options)
            table = asyncio.run(coro).with_format(fmt)
            return self._apply_limits(table)

        self._check_size(file_size, file_path.name)
        if fmt is None:
            fmt = FormatDetector.detect_bytes(file_path.read_bytes())

        if fmt.value in SPREADSHEET_FORMATS:
            data = file_path.read_bytes()
        else:
            data = read_text(file_path)

        table = self.parse_data(data, fmt, options)
        table.metadata.file_name = file_path.name
        table.metadata.file_size = file_size
        return table

    def _parse_csv(self, text: str, options: ParseOptions) -> TabularData:
        return self.csv_parser.parse(text, self._csv_options(options, text))

    def _parse_tsv(self, text: str, options: ParseOptions) -> TabularData:
        csv_options = dataclasses.replace(options.csv, delimiter='\t')
        return self.csv_parser.parse(text, csv_options)

    @staticmethod
    def _csv_options(options: ParseOptions, sample: str) -> CsvOptions:
        """CSV options with the delimiter detected from the sample when none was given."""
        if options.csv.delimiter:
            return options.csv
        delimiter = FormatDetector.detect_delimiter(sample[:DELIMITER_SAMPLE_BYTES])
        logger.debug(f"Detected CSV delimiter {delimiter!r}")
        return dataclasses.replace(options.csv, delimiter=delimiter)

    @staticmethod
    def _resolve_format(format: Optional[Union[InputFormat, str]]) -> Optional[InputFormat]:
        if format is None or format == '':
            return None
        try:
            return InputFormat(format)
        except ValueError:
            raise ParseError(
                f"Unsupported input format: {format}",
                ErrorCode.UNSUPPORTED_FORMAT,
                format=str(format),
            )

    def _check_size(self, size: int, file_name: Optional[str] = None):
        limit = self.settings.limits.max_input_bytes
        if limit and size > limit:
            logger.error(f"Input of {size} bytes exceeds limit of {limit} bytes")
            raise create_file_too_large_error(size, limit, file_name)

    def _apply_limits(self, table: TabularData) -> TabularData:
        """Cap rows/columns per configuration, marking the table truncated."""
        limits = self.settings.limits
        headers, rows = table.headers, table.rows
        changed = False

        if limits.max_columns is not None and len(headers) > limits.max_columns:
            headers = headers[:limits.max_columns]
            rows = [{h: row[h] for h in headers if h in row} for row in rows]
            changed = True

        if limits.max_rows is not None and len(rows) > limits.max_rows:
            rows = rows[:limits.max_rows]
            changed = True

        if not changed:
            return table

        logger.warning(f"Input truncated to {len(rows)} rows, {len(headers)} columns")
        return TabularData.build(
            headers, rows, table.format,
            raw_data=table.raw_data,
            truncated=True,
            file_name=table.metadata.file_name,
            file_size=table.metadata.file_size,
            sheets=table.metadata.sheets,
        )
