"""
Data models for the conversion pipeline.
Defines the tabular intermediate form, results and per-format options using dataclasses.
"""

import base64
import re
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Optional, Union
from enum import Enum

from .errors import ErrorCode, ParseError, ValidationError


class InputFormat(str, Enum):
    """Formats that can be parsed."""
    CSV = "csv"
    TSV = "tsv"
    JSON = "json"
    XLSX = "xlsx"
    XLS = "xls"
    XML = "xml"


class OutputFormat(str, Enum):
    """Formats that can be written."""
    CSV = "csv"
    TSV = "tsv"
    JSON = "json"
    XLSX = "xlsx"
    XLS = "xls"
    XML = "xml"
    SQL = "sql"


SPREADSHEET_FORMATS = frozenset({'xlsx', 'xls'})

MIME_TYPES = {
    OutputFormat.CSV: 'text/csv',
    OutputFormat.TSV: 'text/tab-separated-values',
    OutputFormat.JSON: 'application/json',
    OutputFormat.XLSX: 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    OutputFormat.XLS: 'application/vnd.ms-excel',
    OutputFormat.XML: 'application/xml',
    OutputFormat.SQL: 'application/sql',
}


@dataclass
class TabularMetadata:
    """Counts and provenance attached to a parsed table."""
    row_count: int = 0
    column_count: int = 0
    truncated: bool = False
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    sheets: Optional[list[str]] = None


@dataclass
class TabularData:
    """Canonical headers + rows form produced by parsers and consumed by writers."""
    headers: list[str]
    rows: list[dict[str, Any]]
    format: InputFormat
    raw_data: Any = None  # Pre-flattening structure (JSON/XML)
    metadata: TabularMetadata = field(default_factory=TabularMetadata)

    @classmethod
    def build(cls, headers: list[str], rows: list[dict[str, Any]],
              format: Union[InputFormat, str], raw_data: Any = None,
              **metadata) -> 'TabularData':
        """Build a table whose counts match its headers and rows."""
        return cls(
            headers=headers,
            rows=rows,
            format=InputFormat(format),
            raw_data=raw_data,
            metadata=TabularMetadata(
                row_count=len(rows),
                column_count=len(headers),
                **metadata,
            ),
        )

    @classmethod
    def empty(cls, format: Union[InputFormat, str], **metadata) -> 'TabularData':
        """Build an empty table (no headers, no rows)."""
        return cls.build([], [], format, **metadata)

    def with_format(self, format: Union[InputFormat, str]) -> 'TabularData':
        """Return a copy tagged with another format."""
        return TabularData(
            headers=self.headers,
            rows=self.rows,
            format=InputFormat(format),
            raw_data=self.raw_data,
            metadata=self.metadata,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'headers': list(self.headers),
            'rows': [dict(r) for r in self.rows],
            'format': self.format.value,
            'metadata': asdict(self.metadata),
        }


def collect_headers(rows: list[dict[str, Any]]) -> list[str]:
    """Union of row keys in first-seen order."""
    seen = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


@dataclass
class ParseOutcome:
    """Result of a parser that never raises: data is always usable."""
    data: TabularData
    error: Optional[ParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConversionMetadata:
    """Metadata attached to a successful conversion."""
    input_format: str
    output_format: str
    row_count: int
    column_count: int


@dataclass
class ConversionResult:
    """Uniform envelope returned by convert_data."""
    success: bool
    format: str
    data: Optional[Union[str, bytes]] = None
    mime_type: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[ConversionMetadata] = None

    @property
    def is_binary(self) -> bool:
        return isinstance(self.data, bytes)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (binary data as base64)."""
        d = {
            'success': self.success,
            'format': self.format,
        }
        if self.success:
            if self.is_binary:
                d['data'] = base64.b64encode(self.data).decode('ascii')
                d['encoding'] = 'base64'
            else:
                d['data'] = self.data
            d['mime_type'] = self.mime_type
            d['metadata'] = asdict(self.metadata) if self.metadata else None
        else:
            d['error'] = self.error
            d['error_code'] = self.error_code
        return d


# Option models

_CAMEL_RE = re.compile(r'(?<!^)(?=[A-Z])')


def _snake(key: str) -> str:
    return _CAMEL_RE.sub('_', key).lower()


class _Options:
    """Shared dict loading for option dataclasses: unknown keys are ignored."""

    @classmethod
    def from_dict(cls, data: Optional[dict]):
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _snake(key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    def validate(self) -> None:
        pass


@dataclass
class CsvOptions(_Options):
    """CSV/TSV parsing and writing options."""
    delimiter: Optional[str] = None  # None: comma; parse_data detects it
    has_header: bool = True
    skip_empty_lines: bool = False
    trim_values: bool = False

    def validate(self) -> None:
        if self.delimiter is not None and \
                (not isinstance(self.delimiter, str) or len(self.delimiter) != 1):
            raise ValidationError(
                "Delimiter must be exactly one character",
                field='delimiter', value=self.delimiter,
                constraints={'length': 'Delimiter must be exactly one character'},
            )


@dataclass
class JsonOptions(_Options):
    """JSON parsing and writing options."""
    pretty_print: bool = True
    indentation: int = 2
    flatten_nested: bool = False

    def validate(self) -> None:
        if not isinstance(self.indentation, int) or not 0 <= self.indentation <= 8:
            raise ValidationError(
                "Indentation must be between 0 and 8",
                field='indentation', value=self.indentation,
                constraints={'range': 'Indentation must be between 0 and 8'},
            )


_SHEET_NAME_INVALID = re.compile(r'[*?:/\\\[\]]')


@dataclass
class ExcelOptions(_Options):
    """Spreadsheet parsing (selected_sheet) and writing options."""
    sheet_name: str = 'Sheet1'
    selected_sheet: Union[int, str] = 0
    auto_fit_columns: bool = True
    freeze_header: bool = False
    header_style: bool = False

    def validate(self) -> None:
        name = self.sheet_name
        if not isinstance(name, str) or not 1 <= len(name) <= 31:
            raise ValidationError(
                "Sheet name must be 1-31 characters",
                field='sheet_name', value=name,
                constraints={'length': 'Sheet name must be 1-31 characters'},
            )
        if _SHEET_NAME_INVALID.search(name):
            raise ValidationError(
                "Sheet name contains invalid characters (*?:/\\[])",
                field='sheet_name', value=name,
                constraints={'pattern': 'Sheet name contains invalid characters'},
            )


_TABLE_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


@dataclass
class SqlOptions(_Options):
    """SQL INSERT writer options."""
    table_name: str = 'my_table'
    include_create: bool = False
    batch_size: int = 100

    def validate(self) -> None:
        name = self.table_name
        if not isinstance(name, str) or not 1 <= len(name) <= 128:
            raise ValidationError(
                "Table name must be 1-128 characters",
                field='table_name', value=name,
                constraints={'length': 'Table name must be 1-128 characters'},
            )
        if not _TABLE_NAME_RE.match(name):
            raise ValidationError(
                "Table name must start with a letter or underscore and contain "
                "only letters, numbers, and underscores",
                field='table_name', value=name,
                constraints={'pattern': '^[A-Za-z_][A-Za-z0-9_]*$'},
            )
        if not isinstance(self.batch_size, int) or not 1 <= self.batch_size <= 10000:
            raise ValidationError(
                "Batch size must be between 1 and 10000",
                field='batch_size', value=self.batch_size,
                constraints={'range': 'Batch size must be between 1 and 10000'},
            )


_XML_NAME_RE = re.compile(r'^[A-Za-z_][\w.\-]*$')


@dataclass
class XmlOptions(_Options):
    """XML writer options."""
    root_name: str = 'root'
    item_name: str = 'item'

    def validate(self) -> None:
        for name in ('root_name', 'item_name'):
            value = getattr(self, name)
            if not isinstance(value, str) or not _XML_NAME_RE.match(value) \
                    or value.lower().startswith('xml'):
                raise ValidationError(
                    f"{name} must be a valid XML element name",
                    field=name, value=value,
                    constraints={'pattern': 'Valid XML element name'},
                )


@dataclass
class ConvertOptions:
    """Options for one convert_data call."""
    output_format: OutputFormat
    input_format: Optional[InputFormat] = None
    csv: CsvOptions = field(default_factory=CsvOptions)
    json: JsonOptions = field(default_factory=JsonOptions)
    excel: ExcelOptions = field(default_factory=ExcelOptions)
    sql: SqlOptions = field(default_factory=SqlOptions)
    xml: XmlOptions = field(default_factory=XmlOptions)

    def __post_init__(self):
        self.output_format = OutputFormat(self.output_format)
        if self.input_format is not None:
            self.input_format = InputFormat(self.input_format)
        self.csv = CsvOptions.from_dict(self.csv)
        self.json = JsonOptions.from_dict(self.json)
        self.excel = ExcelOptions.from_dict(self.excel)
        self.sql = SqlOptions.from_dict(self.sql)
        self.xml = XmlOptions.from_dict(self.xml)

    @classmethod
    def from_dict(cls, data: dict) -> 'ConvertOptions':
        """Build options from a plain dict (snake_case or camelCase keys)."""
        normalized = {_snake(k): v for k, v in data.items()}
        try:
            output_format = OutputFormat(normalized['output_format'])
        except KeyError:
            raise ValidationError("output_format is required", field='output_format')
        except ValueError:
            raise ValidationError(
                f"Unsupported output format: {normalized['output_format']}",
                ErrorCode.UNSUPPORTED_FORMAT,
                field='output_format', value=normalized['output_format'],
            )
        input_format = normalized.get('input_format')
        if input_format:
            try:
                input_format = InputFormat(input_format)
            except ValueError:
                raise ValidationError(
                    f"Unsupported input format: {input_format}",
                    ErrorCode.UNSUPPORTED_FORMAT,
                    field='input_format', value=input_format,
                )
        return cls(
            output_format=output_format,
            input_format=input_format or None,
            csv=CsvOptions.from_dict(normalized.get('csv')),
            json=JsonOptions.from_dict(normalized.get('json')),
            excel=ExcelOptions.from_dict(normalized.get('excel')),
            sql=SqlOptions.from_dict(normalized.get('sql')),
            xml=XmlOptions.from_dict(normalized.get('xml')),
        )

    def to_dict(self) -> dict:
        """Plain dict form, used for cache fingerprints."""
        d = asdict(self)
        d['output_format'] = self.output_format.value
        d['input_format'] = self.input_format.value if self.input_format else None
        return d


@dataclass
class ParseOptions:
    """Per-format options for one parse_data call."""
    csv: CsvOptions = field(default_factory=CsvOptions)
    json: JsonOptions = field(default_factory=JsonOptions)
    excel: ExcelOptions = field(default_factory=ExcelOptions)

    def __post_init__(self):
        self.csv = CsvOptions.from_dict(self.csv)
        self.json = JsonOptions.from_dict(self.json)
        self.excel = ExcelOptions.from_dict(self.excel)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'ParseOptions':
        """Accepts None, a ParseOptions, a ConvertOptions or a plain dict."""
        if data is None:
            return cls()
        if isinstance(data, cls):
            return data
        if isinstance(data, ConvertOptions):
            return cls(csv=data.csv, json=data.json, excel=data.excel)
        normalized = {_snake(k): v for k, v in data.items()}
        return cls(
            csv=normalized.get('csv'),
            json=normalized.get('json'),
            excel=normalized.get('excel'),
        )
