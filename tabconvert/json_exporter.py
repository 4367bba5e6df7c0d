"""
JSON writer.
Emits an array of row objects restricted to the given headers.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from .exporter import Writer
from .models import JsonOptions, OutputFormat

logger = logging.getLogger(__name__)


class JSONWriter(Writer):
    """Write tables as a JSON array."""

    format = OutputFormat.JSON

    def write(self, headers: List[str], rows: List[Dict[str, Any]],
              options: Optional[Union[JsonOptions, dict]] = None) -> str:
        """
        Write rows as JSON text.

        Each row is projected onto headers; keys the row lacks are left out.
        With no headers the rows are written whole.

        Args:
            headers: Column names
            rows: Row dicts
            options: JsonOptions (pretty_print, indentation)

        Returns:
            JSON array text
        """
        options = JsonOptions.from_dict(options)

        if headers:
            data = [{h: row[h] for h in headers if h in row} for row in rows]
        else:
            data = [dict(row) for row in rows]

        if options.pretty_print and options.indentation > 0:
            text = json.dumps(data, indent=options.indentation, ensure_ascii=False, default=str)
        else:
            text = json.dumps(data, separators=(',', ':'), ensure_ascii=False, default=str)

        self._log_write(len(rows))
        return text
