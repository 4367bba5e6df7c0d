"""
JSON parser with streaming support.
Handles a top-level array of records or a single object.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Union

import ijson

from .errors import ErrorCode, ParseError
from .flattener import JSON_POLICY, flatten
from .models import InputFormat, JsonOptions, TabularData, collect_headers

logger = logging.getLogger(__name__)


class JSONParser:
    """Parse JSON documents into tables."""

    def __init__(self, chunk_size: int = 1000, max_rows: int = 100000):
        """
        Initialize JSON parser.

        Args:
            chunk_size: Number of rows per chunk when streaming
            max_rows: Default row cap when streaming
        """
        self.chunk_size = chunk_size
        self.max_rows = max_rows

    def parse(self, text: str, options: Optional[Union[JsonOptions, dict]] = None) -> TabularData:
        """
        Parse JSON text into a table.
        An array gives one row per element, a bare object gives one row.

        Args:
            text: JSON content
            options: JsonOptions (flatten_nested)

        Returns:
            TabularData, raw_data holding the decoded document

        Raises:
            ParseError: INVALID_JSON for malformed JSON or a top-level scalar
        """
        options = JsonOptions.from_dict(options)

        if not text or not text.strip():
            return TabularData.empty(InputFormat.JSON)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing JSON: {e}")
            raise ParseError(
                f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
                ErrorCode.INVALID_JSON,
                line=e.lineno,
                column=e.colno,
                format='json',
            ) from e

        table = self.from_object(data, options)
        logger.info(f"Parsed JSON: {table.metadata.row_count} rows, "
                    f"{table.metadata.column_count} columns")
        return table

    def from_object(self, data: Any, options: Optional[Union[JsonOptions, dict]] = None) -> TabularData:
        """Build a table from an already decoded JSON value."""
        options = JsonOptions.from_dict(options)

        if isinstance(data, list):
            items = data
        elif isinstance(data, dict):
            items = [data]
        else:
            raise ParseError(
                "JSON must be an array of objects or a single object",
                ErrorCode.INVALID_JSON,
                format='json',
            )

        rows = self._to_rows(items, options)
        return TabularData.build(collect_headers(rows), rows, InputFormat.JSON, raw_data=data)

    async def parse_stream(self,
                           source: Union[Path, BinaryIO],
                           options: Optional[Union[JsonOptions, dict]] = None,
                           chunk_size: Optional[int] = None,
                           max_rows: Optional[int] = None) -> TabularData:
        """
        Stream the elements of a top-level JSON array with ijson.

        Args:
            source: Path to a JSON file, or a binary file object
            options: JsonOptions (flatten_nested)
            chunk_size: Rows between event-loop yields
            max_rows: Stop after this many rows and mark the result truncated

        Returns:
            TabularData (raw_data is not kept when streaming)

        Raises:
            ParseError: INVALID_JSON when the stream is malformed
        """
        options = JsonOptions.from_dict(options)
        chunk_size = chunk_size or self.chunk_size
        max_rows = self.max_rows if max_rows is None else max_rows

        file_name = None
        file_size = None
        if isinstance(source, (str, Path)):
            source = Path(source)
            file_name = source.name
            file_size = source.stat().st_size
            handle = open(source, 'rb')
            logger.info(f"Streaming JSON: {file_name} ({file_size} bytes)")
        else:
            handle = source

        rows: List[Dict[str, Any]] = []
        truncated = False
        chunk: List[Any] = []

        try:
            for item in ijson.items(handle, 'item', use_float=True):
                if len(rows) + len(chunk) >= max_rows:
                    truncated = True
                    logger.warning(f"Row limit {max_rows} reached, stopping")
                    break
                chunk.append(item)

                if len(chunk) >= chunk_size:
                    rows.extend(self._to_rows(chunk, options))
                    logger.debug(f"Read chunk with {len(chunk)} rows")
                    chunk = []
                    await asyncio.sleep(0)
        except ijson.JSONError as e:
            logger.error(f"Error streaming JSON: {e}")
            raise ParseError(f"Invalid JSON: {e}", ErrorCode.INVALID_JSON, format='json') from e
        finally:
            if file_name is not None:
                handle.close()

        if chunk:
            rows.extend(self._to_rows(chunk, options))

        return TabularData.build(
            collect_headers(rows), rows, InputFormat.JSON,
            truncated=truncated,
            file_name=file_name,
            file_size=file_size,
        )

    @staticmethod
    def _to_rows(items: List[Any], options: JsonOptions) -> List[Dict[str, Any]]:
        rows = []
        for item in items:
            row = item if isinstance(item, dict) else {'value': item}
            if options.flatten_nested:
                row = flatten(row, policy=JSON_POLICY)
            rows.append(row)
        return rows
