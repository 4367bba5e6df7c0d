"""
CSV/TSV parser with streaming support.
Parses whole strings into tables, or reads large inputs in chunks with progress and cancellation.
"""

import asyncio
import codecs
import io
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pandas as pd

from .errors import ErrorCode, OperationTimeoutError, ParseError
from .models import CsvOptions, InputFormat, TabularData

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r'line (\d+)')

ProgressCallback = Callable[[float], None]
ChunkCallback = Callable[[List[Dict[str, Any]]], None]


class CSVParser:
    """Parse CSV/TSV text with pandas."""

    def __init__(self, chunk_size: int = 1000, max_rows: int = 100000,
                 streaming_threshold: int = 10 * 1024 * 1024):
        """
        Initialize CSV parser.

        Args:
            chunk_size: Number of rows per chunk when streaming
            max_rows: Default row cap when streaming
            streaming_threshold: File size in bytes above which streaming is advised
        """
        self.chunk_size = chunk_size
        self.max_rows = max_rows
        self.streaming_threshold = streaming_threshold

    def parse(self, text: str, options: Optional[Union[CsvOptions, dict]] = None) -> TabularData:
        """
        Parse CSV text into a table.

        Args:
            text: CSV/TSV content
            options: CsvOptions (delimiter defaults to a comma, has_header,
                skip_empty_lines, trim_values)

        Returns:
            TabularData with string cell values

        Raises:
            ParseError: INVALID_CSV when the text cannot be parsed, or a row has more
                fields than the header
        """
        options = CsvOptions.from_dict(options)

        if not text or not text.strip():
            return TabularData.empty(InputFormat.CSV)

        try:
            df = pd.read_csv(io.StringIO(text), **self._read_kwargs(options))
        except Exception as e:
            logger.error(f"Error parsing CSV: {e}")
            raise self._wrap_error(e) from e

        headers, rows = self._frame_to_records(df, options)
        logger.info(f"Parsed CSV: {len(rows)} rows, {len(headers)} columns")
        return TabularData.build(headers, rows, InputFormat.CSV)

    async def parse_stream(self,
                           source: Union[str, Path],
                           options: Optional[Union[CsvOptions, dict]] = None,
                           chunk_size: Optional[int] = None,
                           max_rows: Optional[int] = None,
                           on_progress: Optional[ProgressCallback] = None,
                           on_chunk: Optional[ChunkCallback] = None,
                           cancel_event: Any = None) -> TabularData:
        """
        Parse large CSV input chunk by chunk, yielding to the event loop between chunks.

        Args:
            source: CSV text, or a Path to a CSV file
            options: CsvOptions
            chunk_size: Rows per chunk (default: parser chunk_size)
            max_rows: Stop after this many rows and mark the result truncated
            on_progress: Called with progress 0-100
            on_chunk: Called with each chunk of row dicts
            cancel_event: Object with is_set() (threading.Event or asyncio.Event)

        Returns:
            TabularData, metadata.truncated set when max_rows cut the input short

        Raises:
            OperationTimeoutError: Parsing was cancelled
            ParseError: INVALID_CSV when a chunk cannot be parsed
        """
        options = CsvOptions.from_dict(options)
        chunk_size = chunk_size or self.chunk_size
        max_rows = self.max_rows if max_rows is None else max_rows

        file_name = None
        file_size = None
        if isinstance(source, Path):
            file_name = source.name
            file_size = source.stat().st_size
            encoding = self._sniff_encoding(source)
            handle = open(source, 'r', encoding=encoding, newline='')
            expected_rows = estimate_row_count(source)
            logger.info(f"Streaming CSV: {file_name} ({file_size} bytes, {encoding})")
        else:
            if not source or not source.strip():
                return TabularData.empty(InputFormat.CSV)
            handle = io.StringIO(source)
            expected_rows = source.count('\n')
            logger.info(f"Streaming CSV text ({len(source)} chars)")

        headers: List[str] = []
        rows: List[Dict[str, Any]] = []
        truncated = False

        try:
            with handle:
                self._check_cancelled(cancel_event)
                header_df = pd.read_csv(handle, nrows=0, **self._read_kwargs(options))
                headers = self._frame_to_records(header_df, options)[0]
                handle.seek(0)

                reader = pd.read_csv(handle, chunksize=chunk_size, **self._read_kwargs(options))
                with reader:
                    for chunk_df in reader:
                        self._check_cancelled(cancel_event)

                        chunk_headers, chunk_rows = self._frame_to_records(chunk_df, options)
                        if not headers:
                            headers = chunk_headers

                        remaining = max_rows - len(rows)
                        if len(chunk_rows) > remaining:
                            chunk_rows = chunk_rows[:remaining]
                            truncated = True

                        rows.extend(chunk_rows)
                        logger.debug(f"Read chunk with {len(chunk_rows)} rows")

                        if on_chunk and chunk_rows:
                            on_chunk(chunk_rows)

                        if truncated:
                            logger.warning(f"Row limit {max_rows} reached, stopping")
                            break

                        if on_progress and expected_rows:
                            on_progress(min(100.0, len(rows) / expected_rows * 100))

                        await asyncio.sleep(0)
        except (OperationTimeoutError, ParseError):
            raise
        except Exception as e:
            logger.error(f"Error streaming CSV: {e}")
            error = self._wrap_error(e)
            error.message = f"CSV streaming failed: {error.message}"
            error.args = (error.message,)
            raise error from e

        if on_progress:
            on_progress(100.0)

        return TabularData.build(
            headers, rows, InputFormat.CSV,
            truncated=truncated,
            file_name=file_name,
            file_size=file_size,
        )

    def needs_streaming(self, file_path: Path) -> bool:
        """Check whether a file is large enough to warrant parse_stream."""
        return Path(file_path).stat().st_size > self.streaming_threshold

    @staticmethod
    def _read_kwargs(options: CsvOptions) -> Dict[str, Any]:
        return dict(
            sep=options.delimiter or ',',
            header=0 if options.has_header else None,
            dtype=str,  # CSV is untyped; keep strings
            keep_default_na=False,
            skip_blank_lines=options.skip_empty_lines,
            index_col=False,
            quotechar='"',
            doublequote=True,
            on_bad_lines='error',
            engine='python',
        )

    @staticmethod
    def _frame_to_records(df: pd.DataFrame, options: CsvOptions):
        """Convert a frame to (headers, row dicts); missing cells become None."""
        if options.has_header:
            headers = [str(c) for c in df.columns]
        else:
            headers = [f"Column {i + 1}" for i in range(len(df.columns))]

        if options.trim_values:
            headers = [h.strip() for h in headers]
        df.columns = headers

        rows = df.astype(object).where(pd.notna(df), None).to_dict('records')

        if options.trim_values:
            rows = [
                {k: v.strip() if isinstance(v, str) else v for k, v in row.items()}
                for row in rows
            ]

        return headers, rows

    @staticmethod
    def _wrap_error(error: Exception) -> ParseError:
        message = str(error) or 'Failed to parse CSV data'
        match = _LINE_RE.search(message)
        line = int(match.group(1)) if match else None
        return ParseError(message, ErrorCode.INVALID_CSV, line=line, format='csv')

    @staticmethod
    def _check_cancelled(cancel_event: Any) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("CSV parsing cancelled")
            raise OperationTimeoutError("Parsing cancelled", operation='CSV parsing')

    @staticmethod
    def _sniff_encoding(file_path: Path, sample_size: int = 65536) -> str:
        """Pick utf-8 when the leading sample decodes, else latin-1."""
        with open(file_path, 'rb') as f:
            sample = f.read(sample_size)
        try:
            codecs.getincrementaldecoder('utf-8-sig')().decode(sample, final=False)
            return 'utf-8-sig'
        except UnicodeDecodeError:
            logger.warning(f"UTF-8 decode failed for {file_path.name}, using latin-1")
            return 'latin-1'


def estimate_row_count(file_path: Path, sample_size: int = 10000) -> int:
    """
    Estimate the number of lines in a file without reading all of it.

    Args:
        file_path: Path to file
        sample_size: Bytes to sample from the start

    Returns:
        Estimated line count (0 when the file cannot be read)
    """
    file_path = Path(file_path)
    try:
        file_size = file_path.stat().st_size
        with open(file_path, 'rb') as f:
            sample = f.read(sample_size)
    except OSError as e:
        logger.warning(f"Could not sample {file_path}: {e}")
        return 0

    line_breaks = sample.count(b'\n')
    if len(sample) >= sample_size:
        return round(line_breaks / len(sample) * file_size)
    return line_breaks
