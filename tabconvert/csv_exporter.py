"""
CSV/TSV writer.
Minimal quoting: a field is quoted only when it holds the delimiter, a quote or a newline.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Union

from .exporter import Writer, render_cell
from .models import CsvOptions, OutputFormat

logger = logging.getLogger(__name__)


class CSVWriter(Writer):
    """Write tables as delimited text."""

    format = OutputFormat.CSV

    def __init__(self, delimiter: Optional[str] = None):
        """
        Initialize CSV writer.

        Args:
            delimiter: Fixed delimiter overriding the options (tab for TSV)
        """
        self.delimiter = delimiter
        if delimiter == '\t':
            self.format = OutputFormat.TSV

    def write(self, headers: List[str], rows: List[Dict[str, Any]],
              options: Optional[Union[CsvOptions, dict]] = None) -> str:
        """
        Write rows as CSV text.

        Args:
            headers: Column names
            rows: Row dicts
            options: CsvOptions (delimiter)

        Returns:
            Header line then one line per row, joined with newlines
        """
        options = CsvOptions.from_dict(options)
        delimiter = self.delimiter or options.delimiter or ','

        if not headers:
            return ''

        buffer = io.StringIO()
        writer = csv.writer(
            buffer,
            delimiter=delimiter,
            quotechar='"',
            doublequote=True,
            quoting=csv.QUOTE_MINIMAL,
            lineterminator='\n',
        )

        self._write_row(writer, buffer, [str(h) for h in headers])
        for row in rows:
            self._write_row(writer, buffer, [render_cell(v) for v in self._project(row, headers)])

        text = buffer.getvalue()
        self._log_write(len(rows))
        return text[:-1] if text.endswith('\n') else text

    @staticmethod
    def _write_row(writer, buffer: io.StringIO, values: List[str]) -> None:
        # csv.writer renders a lone empty field as ""
        if values == ['']:
            buffer.write('\n')
        else:
            writer.writerow(values)
