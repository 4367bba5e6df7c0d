"""
Tabular data converter package.
"""

__version__ = "0.1.0"
__author__ = "Data Tools Team"

from .models import (
    InputFormat,
    OutputFormat,
    TabularData,
    TabularMetadata,
    ConversionResult,
    ConversionMetadata,
    ParseOutcome,
    CsvOptions,
    JsonOptions,
    ExcelOptions,
    SqlOptions,
    XmlOptions,
    ConvertOptions,
    ParseOptions,
)
from .errors import (
    ErrorCode,
    AppError,
    ParseError,
    ConversionError,
    ValidationError,
    FileError,
    OperationTimeoutError,
)
from .config_loader import ConfigLoader, ConverterSettings, load_settings
from .logging_setup import setup_logging
from .format_detector import (
    detect_format,
    detect_delimiter,
    detect_format_from_filename,
    detect_format_from_mime_type,
)
from .flattener import flatten, unflatten
from .cache import ConversionCache
from .converter import Converter, parse_data, convert_data, get_output_filename

__all__ = [
    'InputFormat',
    'OutputFormat',
    'TabularData',
    'TabularMetadata',
    'ConversionResult',
    'ConversionMetadata',
    'ParseOutcome',
    'CsvOptions',
    'JsonOptions',
    'ExcelOptions',
    'SqlOptions',
    'XmlOptions',
    'ConvertOptions',
    'ParseOptions',
    'ErrorCode',
    'AppError',
    'ParseError',
    'ConversionError',
    'ValidationError',
    'FileError',
    'OperationTimeoutError',
    'ConfigLoader',
    'ConverterSettings',
    'load_settings',
    'setup_logging',
    'detect_format',
    'detect_delimiter',
    'detect_format_from_filename',
    'detect_format_from_mime_type',
    'flatten',
    'unflatten',
    'ConversionCache',
    'Converter',
    'parse_data',
    'convert_data',
    'get_output_filename',
]
