"""
Base writer interface and common functionality.
Abstract base for all format-specific writers.
"""

import datetime
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import OutputFormat
from .utils import safe_write_file

logger = logging.getLogger(__name__)


def render_cell(value: Any) -> str:
    """Render a cell value as text (None is empty)."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value)) if abs(value) < 1e16 else repr(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


class Writer(ABC):
    """Abstract base writer class."""

    format: OutputFormat

    @abstractmethod
    def write(self, headers: List[str], rows: List[Dict[str, Any]],
              options: Any = None) -> Union[str, bytes]:
        """
        Serialize a table.

        Args:
            headers: Column names, in output order
            rows: Row dicts keyed by header
            options: Format-specific options (dataclass or dict)

        Returns:
            Serialized text, or bytes for binary formats
        """
        pass

    def export(self, headers: List[str], rows: List[Dict[str, Any]],
               output_path: Path, options: Any = None) -> Path:
        """
        Serialize a table and write it to a file.

        Args:
            headers: Column names
            rows: Row dicts
            output_path: Destination file
            options: Format-specific options

        Returns:
            Path to the written file
        """
        output_path = Path(output_path)
        content = self.write(headers, rows, options)

        if isinstance(content, bytes):
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(content)
        else:
            safe_write_file(output_path, content)

        self._log_write(len(rows), output_path.name)
        return output_path

    @staticmethod
    def _project(row: Dict[str, Any], headers: List[str]) -> List[Any]:
        """Row values in header order; absent keys are None."""
        return [row.get(h) for h in headers]

    def _log_write(self, row_count: int, target: Optional[str] = None):
        """Log write completion."""
        target_str = f" to {target}" if target else ""
        logger.info(f"Wrote {row_count} rows as {self.format.value}{target_str}")
