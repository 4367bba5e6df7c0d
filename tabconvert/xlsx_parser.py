"""
Spreadsheet (XLSX/XLS) parser.
Reads one sheet of a workbook into a table; the first row holds the headers.
"""

import datetime
import importlib
import io
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .errors import ErrorCode, ParseError
from .models import ExcelOptions, InputFormat, TabularData

logger = logging.getLogger(__name__)

OLE_MAGIC = b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1'


class SpreadsheetCodec:
    """
    Lazily imported spreadsheet libraries.

    openpyxl reads and writes xlsx, xlrd reads xls, xlwt writes xls. Each is
    imported on first use and memoized on the instance.
    """

    LIBRARIES = ('openpyxl', 'xlrd', 'xlwt')

    def __init__(self):
        self._modules: Dict[str, Any] = {}

    def load(self, name: str):
        """Import a spreadsheet library once and return the module."""
        if name not in self.LIBRARIES:
            raise ValueError(f"Unknown spreadsheet library: {name}")
        if name not in self._modules:
            logger.debug(f"Loading spreadsheet library: {name}")
            self._modules[name] = importlib.import_module(name)
        return self._modules[name]

    def is_loaded(self, name: str) -> bool:
        return name in self._modules

    @property
    def openpyxl(self):
        return self.load('openpyxl')

    @property
    def xlrd(self):
        return self.load('xlrd')

    @property
    def xlwt(self):
        return self.load('xlwt')


class ExcelParser:
    """Parse XLSX/XLS workbooks into tables."""

    def __init__(self, codec: Optional[SpreadsheetCodec] = None):
        """
        Initialize spreadsheet parser.

        Args:
            codec: Shared SpreadsheetCodec (a private one is created if omitted)
        """
        self.codec = codec or SpreadsheetCodec()

    def parse(self, buffer: bytes, options: Optional[Union[ExcelOptions, dict]] = None) -> TabularData:
        """
        Parse a workbook into a table.

        Args:
            buffer: Workbook bytes (xlsx or xls)
            options: ExcelOptions (selected_sheet by index or name)

        Returns:
            TabularData; an empty table listing the sheets when the
            selected sheet does not exist

        Raises:
            ParseError: INVALID_EXCEL when the bytes are not a readable workbook
        """
        options = ExcelOptions.from_dict(options)
        fmt = self.sniff(buffer)

        if not buffer:
            return TabularData.empty(fmt)

        try:
            if fmt == InputFormat.XLS:
                sheet_names, grid = self._read_xls(buffer, options.selected_sheet)
            else:
                sheet_names, grid = self._read_xlsx(buffer, options.selected_sheet)
        except Exception as e:
            logger.error(f"Error parsing spreadsheet: {e}")
            raise ParseError(
                f"Failed to parse Excel file: {e}", ErrorCode.INVALID_EXCEL, format=fmt.value
            ) from e

        if grid is None:
            logger.warning(f"Sheet {options.selected_sheet!r} not found in {sheet_names}")
            return TabularData.empty(fmt, sheets=sheet_names)

        return self.parse_grid(grid, sheet_names, fmt)

    def parse_grid(self, grid: Sequence[Sequence[Any]],
                   sheet_names: Optional[List[str]] = None,
                   format: Union[InputFormat, str] = InputFormat.XLSX) -> TabularData:
        """
        Build a table from a 2-D cell grid whose first row is the header.

        Blank header cells are named "Column N"; short rows are padded with
        None; rows with no values at all are skipped.
        """
        if not grid:
            return TabularData.empty(format, sheets=sheet_names)

        width = max(len(row) for row in grid)
        headers = self._make_headers(list(grid[0]) + [None] * (width - len(grid[0])))

        rows = []
        for cells in grid[1:]:
            if all(v is None or v == '' for v in cells):
                continue
            rows.append({
                header: cells[i] if i < len(cells) else None
                for i, header in enumerate(headers)
            })

        logger.info(f"Parsed sheet: {len(rows)} rows, {len(headers)} columns")
        return TabularData.build(headers, rows, format, sheets=sheet_names)

    def get_sheet_names(self, buffer: bytes) -> List[str]:
        """List the sheet names of a workbook."""
        fmt = self.sniff(buffer)
        try:
            if fmt == InputFormat.XLS:
                book = self.codec.xlrd.open_workbook(file_contents=buffer, on_demand=True)
                names = book.sheet_names()
                book.release_resources()
                return names
            workbook = self.codec.openpyxl.load_workbook(io.BytesIO(buffer), read_only=True)
            names = list(workbook.sheetnames)
            workbook.close()
            return names
        except Exception as e:
            logger.error(f"Error reading sheet names: {e}")
            raise ParseError(
                f"Failed to parse Excel file: {e}", ErrorCode.INVALID_EXCEL, format=fmt.value
            ) from e

    @staticmethod
    def sniff(buffer: bytes) -> InputFormat:
        """xls for OLE2 compound files, otherwise xlsx."""
        return InputFormat.XLS if buffer[:8] == OLE_MAGIC else InputFormat.XLSX

    @staticmethod
    def _select(sheet_names: List[str], selected: Union[int, str]) -> Optional[int]:
        if isinstance(selected, int) and not isinstance(selected, bool):
            return selected if 0 <= selected < len(sheet_names) else None
        if selected in sheet_names:
            return sheet_names.index(selected)
        return None

    def _read_xlsx(self, buffer: bytes, selected: Union[int, str]):
        workbook = self.codec.openpyxl.load_workbook(
            io.BytesIO(buffer), read_only=True, data_only=True
        )
        try:
            sheet_names = list(workbook.sheetnames)
            index = self._select(sheet_names, selected)
            if index is None:
                return sheet_names, None

            worksheet = workbook[sheet_names[index]]
            logger.info(f"Reading sheet: {worksheet.title}")
            grid = [list(row) for row in worksheet.iter_rows(values_only=True)]
            return sheet_names, grid
        finally:
            workbook.close()

    def _read_xls(self, buffer: bytes, selected: Union[int, str]):
        xlrd = self.codec.xlrd
        book = xlrd.open_workbook(file_contents=buffer)
        sheet_names = book.sheet_names()
        index = self._select(sheet_names, selected)
        if index is None:
            return sheet_names, None

        sheet = book.sheet_by_index(index)
        logger.info(f"Reading sheet: {sheet.name}")
        grid = [
            [self._xls_value(cell, book.datemode, xlrd) for cell in sheet.row(r)]
            for r in range(sheet.nrows)
        ]
        return sheet_names, grid

    @staticmethod
    def _xls_value(cell, datemode: int, xlrd) -> Any:
        """Convert an xlrd cell to a Python value."""
        if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
            return None
        if cell.ctype == xlrd.XL_CELL_BOOLEAN:
            return bool(cell.value)
        if cell.ctype == xlrd.XL_CELL_DATE:
            value = xlrd.xldate_as_datetime(cell.value, datemode)
            if value.time() == datetime.time(0):
                return value.date()
            return value
        if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
            return int(cell.value)
        if cell.ctype == xlrd.XL_CELL_ERROR:
            return None
        return cell.value

    @staticmethod
    def _make_headers(cells: List[Any]) -> List[str]:
        headers = []
        seen = set()
        for i, cell in enumerate(cells):
            name = str(cell).strip() if cell is not None else ''
            if not name:
                name = f"Column {i + 1}"
            base, n = name, 2
            while name in seen:
                name = f"{base}_{n}"
                n += 1
            seen.add(name)
            headers.append(name)
        return headers
