"""
Error taxonomy for parsing and conversion.
Every error carries a stable code and an HTTP-style status for callers.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes exposed to callers."""
    # Parse errors
    INVALID_CSV = "INVALID_CSV"
    INVALID_JSON = "INVALID_JSON"
    INVALID_XML = "INVALID_XML"
    INVALID_EXCEL = "INVALID_EXCEL"
    EMPTY_DATA = "EMPTY_DATA"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"

    # Conversion errors
    CONVERSION_FAILED = "CONVERSION_FAILED"
    OUTPUT_TOO_LARGE = "OUTPUT_TOO_LARGE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED = "MISSING_REQUIRED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"

    # System errors
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for all converter errors."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INTERNAL_ERROR,
                 status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': type(self).__name__,
            'message': self.message,
            'code': self.code.value,
            'status_code': self.status_code,
        }


class ParseError(AppError):
    """Malformed input for a declared or detected format."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_INPUT,
                 line: Optional[int] = None, column: Optional[int] = None,
                 format: Optional[str] = None):
        super().__init__(message, code, 400)
        self.line = line
        self.column = column
        self.format = format

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({'line': self.line, 'column': self.column, 'format': self.format})
        return d


class ConversionError(AppError):
    """Writer-stage failure, e.g. an unsupported output format."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONVERSION_FAILED,
                 input_format: Optional[str] = None, output_format: Optional[str] = None,
                 recoverable: bool = False, suggestion: Optional[str] = None):
        super().__init__(message, code, 500)
        self.input_format = input_format
        self.output_format = output_format
        self.recoverable = recoverable
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            'input_format': self.input_format,
            'output_format': self.output_format,
            'recoverable': self.recoverable,
            'suggestion': self.suggestion,
        })
        return d


class ValidationError(AppError):
    """Caller-supplied options fail their constraints."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.VALIDATION_ERROR,
                 field: Optional[str] = None, value: Any = None,
                 constraints: Optional[Dict[str, str]] = None):
        super().__init__(message, code, 400)
        self.field = field
        self.value = value
        self.constraints = constraints or {}

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({'field': self.field, 'constraints': self.constraints})
        return d


class FileError(AppError):
    """Size or type constraints on an input file are violated."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_FILE_TYPE,
                 file_name: Optional[str] = None, file_size: Optional[int] = None,
                 max_size: Optional[int] = None):
        super().__init__(message, code, 400)
        self.file_name = file_name
        self.file_size = file_size
        self.max_size = max_size

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            'file_name': self.file_name,
            'file_size': self.file_size,
            'max_size': self.max_size,
        })
        return d


class OperationTimeoutError(AppError):
    """A bounded operation exceeded its budget or was cancelled."""

    def __init__(self, message: str, timeout: Optional[float] = None,
                 operation: str = "Operation"):
        super().__init__(message, ErrorCode.TIMEOUT, 408)
        self.timeout = timeout
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({'timeout': self.timeout, 'operation': self.operation})
        return d


_PARSE_CODES = {
    'csv': ErrorCode.INVALID_CSV,
    'tsv': ErrorCode.INVALID_CSV,
    'json': ErrorCode.INVALID_JSON,
    'xml': ErrorCode.INVALID_XML,
    'xlsx': ErrorCode.INVALID_EXCEL,
    'xls': ErrorCode.INVALID_EXCEL,
}


def create_parse_error(format: str, details: Optional[str] = None) -> ParseError:
    """Build a ParseError with the code matching the format."""
    if details:
        message = f"Failed to parse {format.upper()}: {details}"
    else:
        message = f"Failed to parse {format.upper()} data"
    code = _PARSE_CODES.get(format.lower(), ErrorCode.INVALID_INPUT)
    return ParseError(message, code, format=format)


def create_file_too_large_error(file_size: int, max_size: int,
                                file_name: Optional[str] = None) -> FileError:
    """Build a FileError for an input over the size limit."""
    max_mb = round(max_size / (1024 * 1024))
    size_mb = round(file_size / (1024 * 1024))
    return FileError(
        f"File size ({size_mb}MB) exceeds maximum allowed size ({max_mb}MB)",
        ErrorCode.FILE_TOO_LARGE,
        file_name=file_name,
        file_size=file_size,
        max_size=max_size,
    )


def create_timeout_error(operation: str, timeout: float) -> OperationTimeoutError:
    """Build a timeout error with a uniform message."""
    return OperationTimeoutError(
        f"{operation} timed out after {timeout}s", timeout=timeout, operation=operation
    )


def handle_error(error: BaseException) -> AppError:
    """Coerce any exception into an AppError for the caller."""
    if isinstance(error, AppError):
        return error
    if isinstance(error, Exception) and str(error):
        return AppError(str(error), ErrorCode.INTERNAL_ERROR, 500)
    return AppError("An unexpected error occurred", ErrorCode.INTERNAL_ERROR, 500)
