import base64
import datetime
import io

import openpyxl
import pytest

from tabconvert.errors import ConversionError, ErrorCode, ParseError, ValidationError
from tabconvert.excel_exporter import ExcelWriter, column_widths
from tabconvert.models import InputFormat, OutputFormat
from tabconvert.xlsx_parser import OLE_MAGIC, ExcelParser, SpreadsheetCodec


ROWS = [
    {'name': 'Alice', 'age': 30, 'score': 1.5, 'active': True},
    {'name': 'Bob', 'age': 25, 'score': None, 'active': False},
]
HEADERS = ['name', 'age', 'score', 'active']


class TestCodec:

    def test_loads_lazily(self):
        codec = SpreadsheetCodec()
        assert not codec.is_loaded('xlrd')
        assert codec.xlrd is codec.load('xlrd')
        assert codec.is_loaded('xlrd')

    def test_unknown_library(self):
        with pytest.raises(ValueError):
            SpreadsheetCodec().load('pandas')

    def test_parser_only_loads_what_it_reads(self, xlsx_bytes):
        codec = SpreadsheetCodec()
        ExcelParser(codec).parse(xlsx_bytes)
        assert codec.is_loaded('openpyxl')
        assert not codec.is_loaded('xlrd')
        assert not codec.is_loaded('xlwt')


class TestParse:

    def test_first_sheet(self, xlsx_bytes):
        table = ExcelParser().parse(xlsx_bytes)
        assert table.format == InputFormat.XLSX
        assert table.headers == ['name', 'age', 'joined']
        assert len(table.rows) == 2
        assert table.rows[0]['name'] == 'Alice'
        assert table.rows[0]['age'] == 30
        assert table.rows[0]['joined'].date() == datetime.date(2020, 1, 2)
        assert table.rows[1] == {'name': 'Bob', 'age': 25.5, 'joined': None}
        assert table.metadata.sheets == ['Data', 'Other']

    @pytest.mark.parametrize("selected", ['Other', 1])
    def test_selected_sheet(self, xlsx_bytes, selected):
        table = ExcelParser().parse(xlsx_bytes, {'selected_sheet': selected})
        assert table.headers == ['x']
        assert table.rows == [{'x': 1}]

    @pytest.mark.parametrize("selected", ['Missing', 5])
    def test_missing_sheet_gives_empty_table(self, xlsx_bytes, selected):
        table = ExcelParser().parse(xlsx_bytes, {'selectedSheet': selected})
        assert table.rows == []
        assert table.headers == []
        assert table.metadata.sheets == ['Data', 'Other']

    def test_sheet_names(self, xlsx_bytes):
        assert ExcelParser().get_sheet_names(xlsx_bytes) == ['Data', 'Other']

    def test_not_a_workbook(self):
        with pytest.raises(ParseError) as exc_info:
            ExcelParser().parse(b'definitely not a workbook')
        assert exc_info.value.code == ErrorCode.INVALID_EXCEL

    def test_sheet_names_of_garbage(self):
        with pytest.raises(ParseError):
            ExcelParser().get_sheet_names(OLE_MAGIC + b'garbage')

    def test_empty_buffer(self):
        table = ExcelParser().parse(b'')
        assert table.rows == []

    def test_sniff(self):
        assert ExcelParser.sniff(OLE_MAGIC + b'...') == InputFormat.XLS
        assert ExcelParser.sniff(b'PK\x03\x04') == InputFormat.XLSX


class TestParseGrid:

    def test_headers_and_padding(self):
        grid = [
            ['a', None, 'a'],
            [1, 2, 3],
            [],
            ['', None],
            [4],
        ]
        table = ExcelParser().parse_grid(grid)
        assert table.headers == ['a', 'Column 2', 'a_2']
        assert table.rows == [
            {'a': 1, 'Column 2': 2, 'a_2': 3},
            {'a': 4, 'Column 2': None, 'a_2': None},
        ]

    def test_wider_data_rows_get_named_columns(self):
        table = ExcelParser().parse_grid([['a'], [1, 2]])
        assert table.headers == ['a', 'Column 2']
        assert table.rows == [{'a': 1, 'Column 2': 2}]

    def test_empty_grid(self):
        table = ExcelParser().parse_grid([], ['Sheet1'])
        assert table.rows == []
        assert table.metadata.sheets == ['Sheet1']


class TestWriter:

    def test_xlsx_round_trip(self):
        data = ExcelWriter().write(HEADERS, ROWS)
        assert data[:4] == b'PK\x03\x04'
        table = ExcelParser().parse(data)
        assert table.headers == HEADERS
        assert table.rows == ROWS

    def test_xls_round_trip(self):
        writer = ExcelWriter(book_type='xls')
        assert writer.format == OutputFormat.XLS
        data = writer.write(HEADERS, ROWS)
        assert data[:8] == OLE_MAGIC
        table = ExcelParser().parse(data)
        assert table.format == InputFormat.XLS
        assert table.headers == HEADERS
        assert table.rows == ROWS

    def test_formula_text_stays_text(self):
        rows = [{'f': '=1+2'}, {'f': '=HYPERLINK("http://x","y")'}]
        data = ExcelWriter().write(['f'], rows)

        sheet = openpyxl.load_workbook(io.BytesIO(data)).active
        assert [cell.data_type for cell in sheet['A']] == ['s', 's', 's']
        assert ExcelParser().parse(data).rows == rows

    def test_xls_dates(self):
        rows = [{'day': datetime.date(2021, 5, 6), 'at': datetime.datetime(2021, 5, 6, 7, 8, 9)}]
        data = ExcelWriter(book_type='xls').write(['day', 'at'], rows)
        table = ExcelParser().parse(data)
        assert table.rows == rows

    def test_sheet_name(self):
        data = ExcelWriter().write(['a'], [{'a': 1}], {'sheet_name': 'People'})
        assert ExcelParser().get_sheet_names(data) == ['People']

    def test_invalid_sheet_name(self):
        with pytest.raises(ValidationError):
            ExcelWriter().write(['a'], [], {'sheet_name': 'a/b'})

    def test_formatting_options(self):
        rows = [{'name': 'x' * 80, 'id': 1}]
        workbook = ExcelWriter().build_workbook(
            ['name', 'id'], rows,
            {'freeze_header': True, 'header_style': True},
        )
        ws = workbook.active
        assert ws.freeze_panes == 'A2'
        assert ws['A1'].font.bold
        assert ws.column_dimensions['A'].width == 50
        assert ws.column_dimensions['B'].width == 4

    def test_no_formatting_by_default(self):
        ws = ExcelWriter().build_workbook(['a'], [{'a': 1}], {'auto_fit_columns': False}).active
        assert ws.freeze_panes is None
        assert not ws['A1'].font.bold

    def test_frozen_header_survives_xls(self):
        data = ExcelWriter(book_type='xls').write(['a'], [{'a': 1}], {'freeze_header': True})
        assert ExcelParser().parse(data).rows == [{'a': 1}]

    def test_unsupported_values_become_text(self):
        rows = [{'a': {'k': 1}, 'b': 'bad\x01char'}]
        table = ExcelParser().parse(ExcelWriter().write(['a', 'b'], rows))
        assert table.rows == [{'a': '{"k": 1}', 'b': 'badchar'}]

    def test_xls_size_limit(self):
        headers = [f'c{i}' for i in range(257)]
        writer = ExcelWriter(book_type='xls')
        with pytest.raises(ConversionError) as exc_info:
            writer.write(headers, [])
        assert exc_info.value.code == ErrorCode.OUTPUT_TOO_LARGE

    def test_unknown_book_type(self):
        writer = ExcelWriter()
        with pytest.raises(ConversionError) as exc_info:
            writer.workbook_to_bytes(writer.build_workbook(['a'], []), 'ods')
        assert exc_info.value.code == ErrorCode.UNSUPPORTED_FORMAT

    def test_base64(self):
        writer = ExcelWriter()
        encoded = writer.workbook_to_base64(writer.build_workbook(['a'], [{'a': 1}]))
        workbook = openpyxl.load_workbook(io.BytesIO(base64.b64decode(encoded)))
        assert workbook.active['A2'].value == 1


def test_column_widths():
    rows = [{'name': 'ab', 'long': 'x' * 200}]
    assert column_widths(['name', 'long'], rows) == [6, 50]
    assert column_widths(['a'], [{'a': 'xyz'}] + [{'a': 'x' * 30}], sample_size=1) == [5]
