"""
Format parsers and detection.
"""

from .format_detector import FormatDetector
from .csv_parser import CSVParser
from .xlsx_parser import ExcelParser, SpreadsheetCodec
from .json_parser import JSONParser
from .xml_parser import XMLParser

__all__ = [
    'FormatDetector',
    'CSVParser',
    'ExcelParser',
    'SpreadsheetCodec',
    'JSONParser',
    'XMLParser',
]
