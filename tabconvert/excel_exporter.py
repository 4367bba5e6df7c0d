"""
Spreadsheet writer.
Builds an openpyxl workbook with optional column fitting, frozen header and header styling,
and serializes it as xlsx, or as legacy xls through xlwt.
"""

import base64
import datetime
import io
import logging
from typing import Any, Dict, List, Optional, Union

from .errors import ConversionError, ErrorCode
from .exporter import Writer, render_cell
from .models import ExcelOptions, OutputFormat
from .xlsx_parser import SpreadsheetCodec

logger = logging.getLogger(__name__)

MAX_COLUMN_WIDTH = 50
WIDTH_SAMPLE_ROWS = 100
HEADER_FILL = "EEEEEE"

# Legacy format limits
XLS_MAX_ROWS = 65536
XLS_MAX_COLUMNS = 256


def column_widths(headers: List[str], rows: List[Dict[str, Any]],
                  max_width: int = MAX_COLUMN_WIDTH,
                  sample_size: int = WIDTH_SAMPLE_ROWS) -> List[int]:
    """
    Character widths per column from the header and the first rows.

    Args:
        headers: Column names
        rows: Row dicts (only the first sample_size are inspected)
        max_width: Width cap
        sample_size: Rows to sample

    Returns:
        One width per header, min(longest + 2, max_width)
    """
    sample = rows[:sample_size]
    widths = []
    for header in headers:
        longest = len(header)
        for row in sample:
            length = len(render_cell(row.get(header)))
            if length > longest:
                longest = length
                if longest >= max_width:
                    break
        widths.append(min(longest + 2, max_width))
    return widths


class ExcelWriter(Writer):
    """Write tables as spreadsheets."""

    format = OutputFormat.XLSX

    def __init__(self, codec: Optional[SpreadsheetCodec] = None, book_type: str = 'xlsx'):
        """
        Initialize spreadsheet writer.

        Args:
            codec: Shared SpreadsheetCodec
            book_type: 'xlsx' or 'xls', used by write()
        """
        self.codec = codec or SpreadsheetCodec()
        self.book_type = book_type
        self.format = OutputFormat(book_type)

    def write(self, headers: List[str], rows: List[Dict[str, Any]],
              options: Optional[Union[ExcelOptions, dict]] = None) -> bytes:
        """Build the workbook and serialize it as this writer's book type."""
        workbook = self.build_workbook(headers, rows, options)
        data = self.workbook_to_bytes(workbook, self.book_type)
        self._log_write(len(rows))
        return data

    def build_workbook(self, headers: List[str], rows: List[Dict[str, Any]],
                       options: Optional[Union[ExcelOptions, dict]] = None):
        """
        Build a single-sheet workbook.

        Args:
            headers: Column names
            rows: Row dicts
            options: ExcelOptions (sheet_name, auto_fit_columns, freeze_header, header_style)

        Returns:
            openpyxl Workbook
        """
        options = ExcelOptions.from_dict(options)
        options.validate()
        openpyxl = self.codec.openpyxl

        workbook = openpyxl.Workbook()
        ws = workbook.active
        ws.title = options.sheet_name

        if headers:
            self._append(ws, [self._cell_value(h) for h in headers])
        for row in rows:
            self._append(ws, [self._cell_value(v) for v in self._project(row, headers)])

        if options.auto_fit_columns and headers:
            for idx, width in enumerate(column_widths(headers, rows), 1):
                ws.column_dimensions[openpyxl.utils.get_column_letter(idx)].width = width

        if options.freeze_header:
            ws.freeze_panes = 'A2'

        if options.header_style and headers:
            header_font = openpyxl.styles.Font(bold=True)
            header_fill = openpyxl.styles.PatternFill(
                start_color=HEADER_FILL, end_color=HEADER_FILL, fill_type="solid"
            )
            for cell in ws[1]:
                cell.font = header_font
                cell.fill = header_fill

        logger.debug(f"Built workbook sheet {ws.title!r}: {len(rows)} rows, {len(headers)} columns")
        return workbook

    def workbook_to_bytes(self, workbook, book_type: str = 'xlsx') -> bytes:
        """
        Serialize a workbook.

        Args:
            workbook: openpyxl Workbook
            book_type: 'xlsx' or 'xls'

        Returns:
            File bytes
        """
        if book_type == 'xls':
            return self._to_xls(workbook)
        if book_type != 'xlsx':
            raise ConversionError(
                f"Unsupported workbook type: {book_type}",
                ErrorCode.UNSUPPORTED_FORMAT,
                output_format=book_type,
            )

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def workbook_to_base64(self, workbook, book_type: str = 'xlsx') -> str:
        """Serialize a workbook as base64 text."""
        return base64.b64encode(self.workbook_to_bytes(workbook, book_type)).decode('ascii')

    @staticmethod
    def _append(ws, values: List[Any]) -> None:
        """Append a row, storing text that starts with "=" as a string, not a formula."""
        ws.append(values)
        for idx, value in enumerate(values, 1):
            if isinstance(value, str) and value.startswith('='):
                ws.cell(row=ws.max_row, column=idx).data_type = 's'

    def _cell_value(self, value: Any) -> Any:
        """Values openpyxl can store; anything else as text."""
        if value is None or isinstance(value, (bool, int, float,
                                                datetime.date, datetime.time)):
            return value
        text = render_cell(value)
        # Control characters are rejected by openpyxl
        return self.codec.openpyxl.cell.cell.ILLEGAL_CHARACTERS_RE.sub('', text)

    def _to_xls(self, workbook) -> bytes:
        """Re-encode an openpyxl workbook as BIFF8 through xlwt."""
        xlwt = self.codec.xlwt
        openpyxl = self.codec.openpyxl

        book = xlwt.Workbook(encoding='utf-8')
        header_style = xlwt.easyxf(
            'font: bold on; pattern: pattern solid, fore_colour gray25'
        )
        date_style = xlwt.easyxf(num_format_str='YYYY-MM-DD')
        datetime_style = xlwt.easyxf(num_format_str='YYYY-MM-DD HH:MM:SS')
        plain_style = xlwt.XFStyle()

        for ws in workbook.worksheets:
            if ws.max_row > XLS_MAX_ROWS or ws.max_column > XLS_MAX_COLUMNS:
                raise ConversionError(
                    f"Sheet {ws.title!r} exceeds the xls limit of "
                    f"{XLS_MAX_ROWS} rows and {XLS_MAX_COLUMNS} columns",
                    ErrorCode.OUTPUT_TOO_LARGE,
                    output_format='xls',
                    suggestion="Use xlsx output for large tables",
                )

            sheet = book.add_sheet(ws.title)

            for r, cells in enumerate(ws.iter_rows()):
                for c, cell in enumerate(cells):
                    value = cell.value
                    if value is None:
                        continue
                    if cell.font is not None and cell.font.bold:
                        style = header_style
                    elif isinstance(value, datetime.datetime):
                        style = datetime_style
                    elif isinstance(value, datetime.date):
                        style = date_style
                    else:
                        style = plain_style
                    sheet.write(r, c, value, style)

            for letter, dimension in ws.column_dimensions.items():
                if dimension.width:
                    index = openpyxl.utils.column_index_from_string(letter) - 1
                    sheet.col(index).width = int(dimension.width * 256)

            if ws.freeze_panes:
                sheet.set_panes_frozen(True)
                sheet.set_horz_split_pos(1)
                sheet.set_remove_splits(True)

        buffer = io.BytesIO()
        book.save(buffer)
        return buffer.getvalue()
