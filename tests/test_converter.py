import base64
import json

import pytest

from tabconvert import convert_data, get_output_filename, parse_data
from tabconvert.cache import ConversionCache
from tabconvert.config_loader import ConverterSettings, LimitSettings, StreamingSettings
from tabconvert.converter import Converter
from tabconvert.errors import ErrorCode, FileError, ParseError
from tabconvert.export_pipeline import ExportPipeline
from tabconvert.ingestion_pipeline import IngestionPipeline
from tabconvert.models import InputFormat, OutputFormat, TabularData


class TestParseData:

    def test_detects_csv(self, sample_csv):
        table = parse_data(sample_csv)
        assert table.format == InputFormat.CSV
        assert table.metadata.row_count == 3

    def test_detects_tsv(self):
        table = parse_data('a\tb\n1\t2')
        assert table.format == InputFormat.TSV
        assert table.rows == [{'a': '1', 'b': '2'}]

    def test_detects_json(self, sample_json):
        assert parse_data(sample_json).format == InputFormat.JSON

    def test_detects_xml(self, sample_xml):
        table = parse_data(sample_xml)
        assert table.format == InputFormat.XML
        assert table.metadata.row_count == 2

    def test_declared_tsv_overrides_delimiter(self):
        table = parse_data('a,b\tc', format='tsv')
        assert table.format == InputFormat.TSV
        assert table.headers == ['a,b', 'c']

    def test_workbook_bytes(self, xlsx_bytes):
        table = parse_data(xlsx_bytes)
        assert table.format == InputFormat.XLSX
        assert table.headers == ['name', 'age', 'joined']

    def test_text_bytes(self):
        table = parse_data('name\ncaf\xe9'.encode('utf-8'))
        assert table.format == InputFormat.CSV
        assert table.rows == [{'name': 'caf\xe9'}]

    def test_declared_format_for_bytes(self):
        table = parse_data(b'[{"a": 1}]', format='json')
        assert table.rows == [{'a': 1}]

    def test_spreadsheet_format_requires_bytes(self):
        with pytest.raises(ParseError):
            parse_data('a,b', format='xlsx')

    def test_unknown_format(self):
        with pytest.raises(ParseError) as exc_info:
            parse_data('a,b', format='yaml')
        assert exc_info.value.code == ErrorCode.UNSUPPORTED_FORMAT

    def test_malformed_json_raises(self):
        with pytest.raises(ParseError) as exc_info:
            parse_data('[{"a": 1,]', format='json')
        assert exc_info.value.code == ErrorCode.INVALID_JSON

    def test_malformed_xml_gives_empty_table(self):
        table = parse_data('<root><a></b></root>', format='xml')
        assert table.rows == []

    def test_detects_semicolon_delimiter(self):
        table = parse_data('a;b\n1;2')
        assert table.format == InputFormat.CSV
        assert table.rows == [{'a': '1', 'b': '2'}]

    def test_declared_delimiter_is_kept(self):
        table = parse_data('a\nx;y;z', options={'csv': {'delimiter': ','}})
        assert table.rows == [{'a': 'x;y;z'}]

    def test_options(self):
        table = parse_data('x;y\n1;2', options={'csv': {'hasHeader': False}})
        assert table.headers == ['Column 1', 'Column 2']

    def test_empty_input(self):
        table = parse_data('')
        assert table.rows == []
        assert table.headers == []


class TestLimits:

    def make(self, **limits):
        return IngestionPipeline(ConverterSettings(limits=LimitSettings(**limits)))

    def test_input_size(self):
        with pytest.raises(FileError) as exc_info:
            self.make(max_input_bytes=10).parse_data('a,b\n1,2\n3,4\n')
        assert exc_info.value.code == ErrorCode.FILE_TOO_LARGE

    def test_row_limit(self, sample_csv):
        table = self.make(max_rows=2).parse_data(sample_csv)
        assert table.metadata.row_count == 2
        assert table.metadata.truncated

    def test_column_limit(self, sample_csv):
        table = self.make(max_columns=1).parse_data(sample_csv)
        assert table.headers == ['name']
        assert table.rows[0] == {'name': 'Alice'}
        assert table.metadata.truncated

    def test_within_limits(self, sample_csv):
        assert not self.make(max_rows=3, max_columns=3).parse_data(sample_csv).metadata.truncated


class TestParseFile:

    def test_csv_file(self, csv_file):
        table = IngestionPipeline().parse_file(csv_file)
        assert table.format == InputFormat.CSV
        assert table.metadata.file_name == 'people.csv'
        assert table.metadata.file_size == csv_file.stat().st_size
        assert table.metadata.row_count == 3

    def test_unknown_extension_uses_content(self, tmp_path, sample_json):
        path = tmp_path / 'data.txt'
        path.write_text(sample_json)
        assert IngestionPipeline().parse_file(path).format == InputFormat.JSON

    def test_xlsx_file(self, tmp_path, xlsx_bytes):
        path = tmp_path / 'book.xlsx'
        path.write_bytes(xlsx_bytes)
        table = IngestionPipeline().parse_file(path, options={'excel': {'selected_sheet': 'Other'}})
        assert table.rows == [{'x': 1}]
        assert table.metadata.file_name == 'book.xlsx'

    def streaming_pipeline(self, max_rows=100000):
        streaming = StreamingSettings(chunk_size=2, max_rows=max_rows, threshold_bytes=10)
        return IngestionPipeline(ConverterSettings(streaming=streaming))

    def test_large_csv_is_streamed(self, csv_file, sample_csv):
        table = self.streaming_pipeline().parse_file(csv_file)
        assert table.format == InputFormat.CSV
        assert table.rows == parse_data(sample_csv).rows
        assert table.metadata.file_name == 'people.csv'

    def test_large_csv_delimiter_is_detected(self, tmp_path):
        path = tmp_path / 'data.csv'
        path.write_text('a;b\n1;2\n3;4\n')
        table = self.streaming_pipeline().parse_file(path)
        assert table.headers == ['a', 'b']
        assert table.rows == [{'a': '1', 'b': '2'}, {'a': '3', 'b': '4'}]

    def test_large_tsv_is_streamed(self, tmp_path):
        path = tmp_path / 'data.tsv'
        path.write_text('a\tb\n1\t2\n3\t4\n')
        table = self.streaming_pipeline().parse_file(path)
        assert table.format == InputFormat.TSV
        assert table.rows == [{'a': '1', 'b': '2'}, {'a': '3', 'b': '4'}]

    def test_large_json_is_streamed(self, tmp_path):
        path = tmp_path / 'data.json'
        path.write_text(json.dumps([{'i': i} for i in range(5)]))
        table = self.streaming_pipeline(max_rows=3).parse_file(path)
        assert table.format == InputFormat.JSON
        assert table.rows == [{'i': 0}, {'i': 1}, {'i': 2}]
        assert table.metadata.truncated

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            IngestionPipeline().parse_file(tmp_path / 'missing.csv')


class TestConvertData:

    def test_csv_to_json(self, sample_csv):
        result = convert_data(parse_data(sample_csv), {'output_format': 'json'})
        assert result.success
        assert result.format == 'json'
        assert result.mime_type == 'application/json'
        assert json.loads(result.data)[1] == {'name': 'Bob', 'age': '25', 'city': 'New York, NY'}
        assert result.metadata.input_format == 'csv'
        assert result.metadata.output_format == 'json'
        assert result.metadata.row_count == 3
        assert result.metadata.column_count == 3

    def test_csv_json_csv_round_trip(self, sample_csv):
        as_json = convert_data(parse_data(sample_csv), {'outputFormat': 'json'})
        back = convert_data(parse_data(as_json.data), {'output_format': 'csv'})
        assert back.data == sample_csv

    def test_tsv_output_ignores_csv_delimiter(self):
        table = parse_data('a,b\n1,2')
        result = convert_data(table, {'output_format': 'tsv', 'csv': {'delimiter': ';'}})
        assert result.data == 'a\tb\n1\t2'
        assert result.mime_type == 'text/tab-separated-values'

    def test_csv_output_is_comma_separated(self):
        table = parse_data('a;b\n1;2')
        assert convert_data(table, {'output_format': 'csv'}).data == 'a,b\n1,2'

    def test_sql(self, sample_csv):
        result = convert_data(parse_data(sample_csv),
                              {'output_format': 'sql', 'sql': {'table_name': 'people', 'batch_size': 2}})
        assert result.success
        assert result.data.count('INSERT INTO people') == 2

    def test_binary_output(self, sample_csv):
        result = convert_data(parse_data(sample_csv), {'output_format': 'xlsx'})
        assert result.is_binary
        assert result.data[:2] == b'PK'
        d = result.to_dict()
        assert d['encoding'] == 'base64'
        assert base64.b64decode(d['data']) == result.data

    def test_xls_output(self, sample_csv):
        result = convert_data(parse_data(sample_csv), {'output_format': 'xls'})
        assert result.success
        assert parse_data(result.data).rows == parse_data(sample_csv).rows

    def test_empty_table(self):
        result = convert_data(TabularData.empty(InputFormat.CSV), {'output_format': 'csv'})
        assert result.success
        assert result.data == ''

    def test_unsupported_format(self, sample_csv):
        result = convert_data(parse_data(sample_csv), {'output_format': 'yaml'})
        assert not result.success
        assert result.format == 'yaml'
        assert result.error_code == 'UNSUPPORTED_FORMAT'
        assert result.to_dict() == {
            'success': False,
            'format': 'yaml',
            'error': result.error,
            'error_code': 'UNSUPPORTED_FORMAT',
        }

    def test_missing_format(self, sample_csv):
        result = convert_data(parse_data(sample_csv), {})
        assert not result.success
        assert result.error_code == 'VALIDATION_ERROR'

    def test_invalid_writer_options(self, sample_csv):
        result = convert_data(parse_data(sample_csv),
                              {'output_format': 'sql', 'sql': {'table_name': 'drop table;'}})
        assert not result.success
        assert result.error_code == 'VALIDATION_ERROR'

    def test_writer_crash_is_reported(self, sample_csv):
        pipeline = ExportPipeline()

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        pipeline.writers[OutputFormat.JSON].write = explode
        result = pipeline.convert_data(parse_data(sample_csv), {'output_format': 'json'})
        assert not result.success
        assert result.error == 'boom'
        assert result.error_code == 'CONVERSION_FAILED'

    def test_xml_to_xml_is_stable(self, sample_xml):
        first = convert_data(parse_data(sample_xml), {'output_format': 'xml'})
        second = convert_data(parse_data(first.data), {'output_format': 'xml'})
        assert first.data == second.data


class TestConverter:

    def test_convert_text_uses_cache(self, sample_csv, clock):
        converter = Converter(cache=ConversionCache(clock=clock))
        first = converter.convert_text(sample_csv, {'output_format': 'json'})
        second = converter.convert_text(sample_csv, {'output_format': 'json'})
        assert first.success
        assert second is first
        assert converter.cache.stats()['entries'] == 1

    def test_different_options_miss_the_cache(self, sample_csv):
        converter = Converter()
        pretty = converter.convert_text(sample_csv, {'output_format': 'json'})
        compact = converter.convert_text(sample_csv, {'output_format': 'json', 'json': {'pretty_print': False}})
        assert pretty.data != compact.data
        assert converter.cache.stats()['entries'] == 2

    def test_declared_input_format_is_part_of_the_key(self):
        converter = Converter()
        as_csv = converter.convert_text('a\tb\n1\t2', {'output_format': 'json'}, input_format='csv')
        as_tsv = converter.convert_text('a\tb\n1\t2', {'output_format': 'json'}, input_format='tsv')
        assert json.loads(as_tsv.data) == [{'a': '1', 'b': '2'}]
        assert converter.cache.stats()['entries'] == 2
        assert as_csv.success

    def test_cache_disabled(self, sample_csv):
        settings = ConverterSettings.from_dict({'cache': {'enabled': False}})
        converter = Converter(settings)
        assert converter.cache is None
        assert converter.convert_text(sample_csv, {'output_format': 'csv'}).data == sample_csv

    def test_parse_failure_is_reported(self):
        result = Converter().convert_text('[{"a": ', {'output_format': 'csv', 'input_format': 'json'})
        assert not result.success
        assert result.error_code == 'INVALID_JSON'

    def test_failures_are_not_cached(self):
        converter = Converter()
        converter.convert_text('[{"a": ', {'output_format': 'csv', 'input_format': 'json'})
        assert converter.cache.stats()['entries'] == 0

    def test_invalid_options(self, sample_csv):
        result = Converter().convert_text(sample_csv, {'output_format': 'pdf'})
        assert not result.success
        assert result.error_code == 'UNSUPPORTED_FORMAT'

    def test_shared_codec(self, xlsx_bytes):
        converter = Converter()
        table = converter.parse(xlsx_bytes)
        result = converter.convert(table, {'output_format': 'xlsx'})
        assert converter.ingestion.codec is converter.export.codec
        assert converter.parse(result.data).rows == table.rows


@pytest.mark.parametrize("name, fmt, expected", [
    ('data.csv', 'json', 'data.json'),
    ('archive.tar.gz', 'csv', 'archive.tar.csv'),
    ('noext', 'sql', 'noext.sql'),
    (None, 'xlsx', 'converted.xlsx'),
    ('', OutputFormat.XML, 'converted.xml'),
])
def test_get_output_filename(name, fmt, expected):
    assert get_output_filename(name, fmt) == expected
