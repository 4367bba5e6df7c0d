"""
Converter facade.
Wires settings, the spreadsheet codec and the conversion cache into the parse and export pipelines.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .cache import ConversionCache
from .config_loader import ConverterSettings
from .errors import ValidationError, handle_error
from .export_pipeline import ExportPipeline, get_output_filename
from .ingestion_pipeline import IngestionPipeline
from .models import ConversionResult, ConvertOptions, InputFormat, TabularData
from .xlsx_parser import SpreadsheetCodec

logger = logging.getLogger(__name__)

__all__ = ['Converter', 'parse_data', 'convert_data', 'get_output_filename']


class Converter:
    """Parse and convert tabular data with shared settings, codec and cache."""

    def __init__(self,
                 settings: Optional[ConverterSettings] = None,
                 cache: Optional[ConversionCache] = None,
                 codec: Optional[SpreadsheetCodec] = None):
        """
        Initialize converter.

        Args:
            settings: Converter settings (defaults when omitted)
            cache: Conversion cache (built from settings.cache when omitted and enabled)
            codec: Spreadsheet library handle shared by parser and writer
        """
        self.settings = settings or ConverterSettings.default()
        self.codec = codec or SpreadsheetCodec()

        if cache is None and self.settings.cache.enabled:
            cache = ConversionCache(
                max_size=self.settings.cache.max_size_bytes,
                max_age=self.settings.cache.max_age_seconds,
            )
        self.cache = cache

        self.ingestion = IngestionPipeline(self.settings, self.codec)
        self.export = ExportPipeline(self.codec)

    def parse(self, data: Union[str, bytes],
              format: Optional[Union[InputFormat, str]] = None,
              options: Any = None) -> TabularData:
        """Parse text or workbook bytes (see IngestionPipeline.parse_data)."""
        return self.ingestion.parse_data(data, format, options)

    def parse_file(self, file_path: Path,
                   format: Optional[Union[InputFormat, str]] = None,
                   options: Any = None) -> TabularData:
        """Parse a file, streaming large delimited/JSON files."""
        return self.ingestion.parse_file(file_path, format, options)

    def convert(self, data: TabularData,
                options: Union[ConvertOptions, Dict[str, Any]]) -> ConversionResult:
        """Convert a parsed table (see ExportPipeline.convert_data)."""
        return self.export.convert_data(data, options)

    def convert_text(self, text: str,
                     options: Union[ConvertOptions, Dict[str, Any]],
                     input_format: Optional[Union[InputFormat, str]] = None) -> ConversionResult:
        """
        Parse and convert text in one step, consulting the cache.

        Args:
            text: Input text
            options: ConvertOptions or dict
            input_format: Declared input format (falls back to options.input_format, then detection)

        Returns:
            ConversionResult; parse failures are reported on the result
        """
        if not isinstance(options, ConvertOptions):
            try:
                options = ConvertOptions.from_dict(options)
            except ValidationError:
                # Reported on the result by convert_data
                return self.export.convert_data(TabularData.empty(InputFormat.CSV), options)

        input_format = input_format or options.input_format
        fingerprint = {**options.to_dict(),
                       'input_format': getattr(input_format, 'value', input_format)}

        if self.cache is not None:
            cached = self.cache.get(text, fingerprint)
            if cached is not None:
                logger.debug("Returning cached conversion")
                return cached

        try:
            table = self.parse(text, input_format, options)
        except Exception as e:
            error = handle_error(e)
            logger.error(f"Parse failed: {error.message}")
            return ConversionResult(
                success=False,
                format=options.output_format.value,
                error=error.message,
                error_code=error.code.value,
            )

        result = self.convert(table, options)
        if result.success and self.cache is not None:
            self.cache.set(text, fingerprint, result)
        return result


def parse_data(data: Union[str, bytes],
               format: Optional[Union[InputFormat, str]] = None,
               options: Any = None) -> TabularData:
    """Parse text or workbook bytes with default settings."""
    return IngestionPipeline().parse_data(data, format, options)


def convert_data(data: TabularData,
                 options: Union[ConvertOptions, Dict[str, Any]]) -> ConversionResult:
    """Convert a parsed table with default settings. Never raises."""
    return ExportPipeline().convert_data(data, options)
