"""
XML parser.
Auto-detects the repeating record elements and flattens each into a row.
Malformed or rejected documents produce an empty table instead of raising.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import xmltodict

from .errors import ErrorCode, ParseError
from .flattener import XML_POLICY, flatten
from .models import InputFormat, ParseOutcome, TabularData, collect_headers

logger = logging.getLogger(__name__)

ATTR_PREFIX = '@_'
TEXT_KEY = '#text'

_NUMBER_RE = re.compile(r'^-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?$')
_DECLARATION_RE = re.compile(r'<!\s*(DOCTYPE|ENTITY)', re.IGNORECASE)


def coerce_text(value: str) -> Any:
    """Turn numeric and boolean element text into int/float/bool."""
    stripped = value.strip()
    if stripped == 'true':
        return True
    if stripped == 'false':
        return False
    if _NUMBER_RE.match(stripped):
        if any(c in stripped for c in '.eE'):
            return float(stripped)
        return int(stripped)
    return value


class XMLParser:
    """Parse XML documents into tables."""

    def __init__(self, max_bytes: int = 50 * 1024 * 1024, coerce_values: bool = True):
        """
        Initialize XML parser.

        Args:
            max_bytes: Documents larger than this are rejected
            coerce_values: Convert numeric/boolean element text
        """
        self.max_bytes = max_bytes
        self.coerce_values = coerce_values

    def parse(self, text: str) -> TabularData:
        """Parse XML text; failures give an empty xml table."""
        return self.try_parse(text).data

    def try_parse(self, text: str) -> ParseOutcome:
        """
        Parse XML text into a table, reporting failures without raising.

        Args:
            text: XML content

        Returns:
            ParseOutcome with the table and, on failure, the ParseError
        """
        if not text or not text.strip():
            return ParseOutcome(TabularData.empty(InputFormat.XML))

        rejection = self._check_document(text)
        if rejection:
            logger.warning(f"XML rejected: {rejection}")
            return self._failed(rejection)

        try:
            document = xmltodict.parse(
                text,
                attr_prefix=ATTR_PREFIX,
                cdata_key=TEXT_KEY,
                postprocessor=self._postprocess if self.coerce_values else None,
                disable_entities=True,
            )
        except Exception as e:
            logger.warning(f"Error parsing XML: {e}")
            return self._failed(f"Failed to parse XML: {e}")

        items = self._extract_items(document)
        rows = [self._to_row(item) for item in items]
        headers = collect_headers(rows)

        logger.info(f"Parsed XML: {len(rows)} rows, {len(headers)} columns")
        return ParseOutcome(TabularData.build(headers, rows, InputFormat.XML, raw_data=document))

    def _check_document(self, text: str) -> Optional[str]:
        size = len(text.encode('utf-8'))
        if size > self.max_bytes:
            return f"Document size ({size} bytes) exceeds limit ({self.max_bytes} bytes)"
        if _DECLARATION_RE.search(text):
            return "DOCTYPE and ENTITY declarations are not allowed"
        return None

    @staticmethod
    def _failed(message: str) -> ParseOutcome:
        error = ParseError(message, ErrorCode.INVALID_XML, format='xml')
        return ParseOutcome(TabularData.empty(InputFormat.XML), error)

    @staticmethod
    def _postprocess(path, key, value):
        # Attributes stay strings
        if isinstance(value, str) and not key.startswith(ATTR_PREFIX):
            return key, coerce_text(value)
        return key, value

    @staticmethod
    def _extract_items(document: Dict[str, Any]) -> List[Any]:
        """
        Find the repeating records below the document element.

        Order: a list; the first list-valued child; the first list one level
        further down; else the (unwrapped) document element as a single record.
        """
        if not document:
            return []
        body = next(iter(document.values()))

        if body is None:
            return []
        if isinstance(body, list):
            return body
        if not isinstance(body, dict):
            return [body]

        for value in body.values():
            if isinstance(value, list):
                return value

        for value in body.values():
            if isinstance(value, dict):
                for nested in value.values():
                    if isinstance(nested, list):
                        return nested

        # Unwrap single-child wrappers: <root><item>...</item></root>
        while len(body) == 1:
            key, value = next(iter(body.items()))
            if key.startswith(ATTR_PREFIX) or not isinstance(value, dict):
                break
            body = value

        return [body]

    @staticmethod
    def _to_row(item: Any) -> Dict[str, Any]:
        if isinstance(item, dict):
            return flatten(item, policy=XML_POLICY)
        return {'value': XML_POLICY.null_value if item is None else item}
