"""
SQL writer.
Generates batched INSERT statements (and optionally CREATE TABLE) with escaped identifiers and literals.
"""

import logging
import math
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from .exporter import Writer
from .models import OutputFormat, SqlOptions

logger = logging.getLogger(__name__)

RESERVED_WORDS = frozenset({
    'SELECT', 'FROM', 'WHERE', 'INSERT', 'UPDATE', 'DELETE', 'CREATE', 'DROP',
    'TABLE', 'INDEX', 'VIEW', 'AND', 'OR', 'NOT', 'NULL', 'TRUE', 'FALSE',
    'ORDER', 'BY', 'GROUP', 'HAVING', 'JOIN', 'LEFT', 'RIGHT', 'INNER', 'OUTER',
    'ON', 'AS', 'INTO', 'VALUES', 'SET', 'LIKE', 'IN', 'BETWEEN', 'IS',
})

_IDENTIFIER_INVALID = re.compile(r'[^A-Za-z0-9_]')


def escape_identifier(name: str) -> str:
    """
    Make a safe SQL identifier.

    Every character outside [A-Za-z0-9_] becomes "_"; the result is
    double-quoted when it starts with a digit or is a reserved word.

    Example:
        >>> escape_identifier('first name')
        'first_name'
        >>> escape_identifier('order')
        '"order"'
    """
    cleaned = _IDENTIFIER_INVALID.sub('_', str(name)) or '_'
    if cleaned[0].isdigit() or cleaned.upper() in RESERVED_WORDS:
        return f'"{cleaned}"'
    return cleaned


def escape_value(value: Any) -> str:
    """
    Render a value as a SQL literal.

    None -> NULL, booleans -> TRUE/FALSE, finite numbers unquoted (NaN and
    infinities -> NULL), anything else a single-quoted string with quotes
    doubled and NUL characters removed.
    """
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value) if math.isfinite(value) else 'NULL'
    if isinstance(value, Decimal):
        return str(value) if value.is_finite() else 'NULL'

    text = str(value).replace('\x00', '')
    return "'" + text.replace("'", "''") + "'"


class SQLWriter(Writer):
    """Write tables as SQL INSERT statements."""

    format = OutputFormat.SQL

    def write(self, headers: List[str], rows: List[Dict[str, Any]],
              options: Optional[Union[SqlOptions, dict]] = None) -> str:
        """
        Write rows as SQL.

        Args:
            headers: Column names
            rows: Row dicts
            options: SqlOptions (table_name, include_create, batch_size)

        Returns:
            Statements separated by blank lines ('' when there is nothing to emit)
        """
        options = SqlOptions.from_dict(options)
        options.validate()

        table = escape_identifier(options.table_name)
        columns = [escape_identifier(h) for h in headers]
        statements = []

        if options.include_create:
            column_defs = ',\n'.join(f"  {c} TEXT" for c in columns)
            statements.append(f"CREATE TABLE {table} (\n{column_defs}\n);")
            statements.append('')

        column_list = ', '.join(columns)
        for start in range(0, len(rows), options.batch_size):
            batch = rows[start:start + options.batch_size]
            values = ',\n'.join(
                '(' + ', '.join(escape_value(v) for v in self._project(row, headers)) + ')'
                for row in batch
            )
            statements.append(f"INSERT INTO {table} ({column_list})\nVALUES\n{values};")

        logger.debug(f"Generated {len(statements)} SQL statements for {table}")
        self._log_write(len(rows))
        return '\n\n'.join(statements)
