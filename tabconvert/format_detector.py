"""
Detect input format from content, magic bytes, filename or MIME type.
Heuristic detection that never raises: unknown text falls back to csv.
"""

import json
import logging
import re
from pathlib import PurePath
from typing import Optional, Union

from .models import InputFormat

logger = logging.getLogger(__name__)


class FormatDetector:
    """Detect data formats deterministically."""

    # Magic bytes (file signatures) of binary workbooks
    MAGIC_BYTES = {
        b'PK\x03\x04': InputFormat.XLSX,  # ZIP container
        b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1': InputFormat.XLS,  # OLE2 compound file
    }

    EXTENSION_MAP = {
        '.csv': InputFormat.CSV,
        '.tsv': InputFormat.TSV,
        '.json': InputFormat.JSON,
        '.xlsx': InputFormat.XLSX,
        '.xls': InputFormat.XLS,
        '.xml': InputFormat.XML,
    }

    MIME_MAP = {
        'text/csv': InputFormat.CSV,
        'text/tab-separated-values': InputFormat.TSV,
        'application/json': InputFormat.JSON,
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': InputFormat.XLSX,
        'application/vnd.ms-excel': InputFormat.XLS,
        'application/xml': InputFormat.XML,
        'text/xml': InputFormat.XML,
    }

    # (delimiter, prior weight); tabs weighted up to favor TSV
    DELIMITERS = [
        (',', 1.0),
        (';', 1.0),
        ('\t', 1.5),
        ('|', 1.0),
    ]

    # Lines inspected by the delimiter detector
    SAMPLE_LINES = 5

    CLOSING_TAG = re.compile(r'</\w+>')

    @staticmethod
    def detect(text: str) -> InputFormat:
        """
        Detect the format of text content.

        Checked in priority order: JSON, XML, TSV (tab wins delimiter
        detection), then CSV as the fallback.

        Args:
            text: Raw text content

        Returns:
            Detected InputFormat
        """
        trimmed = text.strip()

        # Method 1: JSON, bracket-matched and actually parseable
        if (trimmed.startswith('[') and trimmed.endswith(']')) or \
                (trimmed.startswith('{') and trimmed.endswith('}')):
            try:
                json.loads(trimmed)
                logger.debug("Detected format: json")
                return InputFormat.JSON
            except ValueError:
                logger.debug("Bracketed content is not valid JSON, continuing")

        # Method 2: XML, a tag-like start with at least one closing tag
        if trimmed.startswith('<') and FormatDetector.CLOSING_TAG.search(trimmed):
            logger.debug("Detected format: xml")
            return InputFormat.XML

        # Method 3: Delimiter inspection
        if FormatDetector.detect_delimiter(trimmed) == '\t':
            logger.debug("Detected format: tsv")
            return InputFormat.TSV

        logger.debug("Detected format: csv")
        return InputFormat.CSV

    @staticmethod
    def detect_bytes(data: bytes) -> InputFormat:
        """
        Detect the format of binary content.
        Workbook signatures are checked first, then the text heuristic.
        """
        for signature, fmt in FormatDetector.MAGIC_BYTES.items():
            if data.startswith(signature):
                logger.debug(f"Detected format by magic bytes: {fmt.value}")
                return fmt

        try:
            text = data.decode('utf-8-sig')
        except UnicodeDecodeError:
            text = data.decode('latin-1')
        return FormatDetector.detect(text)

    @staticmethod
    def detect_delimiter(text: str) -> str:
        """
        Detect the most likely delimiter of delimited text.

        Each candidate scores total occurrences over the first non-blank lines,
        times its weight, times 1.5 when every inspected line has the same count.

        Args:
            text: Delimited text

        Returns:
            Delimiter character (comma when nothing scores)
        """
        lines = [line for line in text.split('\n')[:FormatDetector.SAMPLE_LINES]
                 if line.strip()]

        best_delimiter = ','
        best_score = 0.0

        for char, weight in FormatDetector.DELIMITERS:
            counts = [line.count(char) for line in lines]
            total = sum(counts)
            consistent = len(set(counts)) <= 1
            score = total * weight * (1.5 if consistent else 1.0)

            if score > best_score:
                best_score = score
                best_delimiter = char

        logger.debug(f"Detected delimiter {best_delimiter!r} (score {best_score})")
        return best_delimiter

    @staticmethod
    def from_filename(filename: Union[str, PurePath]) -> Optional[InputFormat]:
        """Map a filename extension to a format, None when unmapped."""
        ext = PurePath(str(filename)).suffix.lower()
        return FormatDetector.EXTENSION_MAP.get(ext)

    @staticmethod
    def from_mime_type(mime_type: str) -> Optional[InputFormat]:
        """Map a MIME type to a format, None when unmapped."""
        if not mime_type:
            return None
        # Drop parameters such as "; charset=utf-8"
        base = mime_type.split(';', 1)[0].strip().lower()
        return FormatDetector.MIME_MAP.get(base)


detect_format = FormatDetector.detect
detect_delimiter = FormatDetector.detect_delimiter
detect_format_from_filename = FormatDetector.from_filename
detect_format_from_mime_type = FormatDetector.from_mime_type
