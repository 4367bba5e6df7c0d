"""
XML writer.
Generates a pretty-printed document with one element per row and one child per column.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Union
from xml.dom import minidom

from .exporter import Writer, render_cell
from .models import OutputFormat, XmlOptions
from .xml_parser import ATTR_PREFIX, TEXT_KEY

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r'[^\w.\-]')
_NAME_START = re.compile(r'[A-Za-z_]')
# Characters XML 1.0 does not allow in documents
_ILLEGAL_XML_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')


def xml_name(name: str) -> str:
    """Make a valid XML element/attribute name from a header."""
    tag = _INVALID_NAME_CHARS.sub('_', str(name).strip()) or '_'
    if not _NAME_START.match(tag) or tag.lower().startswith('xml'):
        tag = '_' + tag
    return tag


class XMLWriter(Writer):
    """Write tables as XML."""

    format = OutputFormat.XML

    def write(self, headers: List[str], rows: List[Dict[str, Any]],
              options: Optional[Union[XmlOptions, dict]] = None) -> str:
        """
        Write rows as an XML document.

        Headers starting with "@_" become attributes of the item element and
        "#text" becomes its text, so parsed XML writes back in the same shape.

        Args:
            headers: Column names
            rows: Row dicts
            options: XmlOptions (root_name, item_name)

        Returns:
            XML text with a UTF-8 declaration
        """
        options = XmlOptions.from_dict(options)

        doc = minidom.Document()
        root = doc.createElement(options.root_name)
        doc.appendChild(root)

        for row in rows:
            item = doc.createElement(options.item_name)

            for header, value in zip(headers, self._project(row, headers)):
                text = _ILLEGAL_XML_CHARS.sub('', render_cell(value))
                if header.startswith(ATTR_PREFIX):
                    item.setAttribute(xml_name(header[len(ATTR_PREFIX):]), text)
                elif header == TEXT_KEY:
                    item.appendChild(doc.createTextNode(text))
                else:
                    child = doc.createElement(xml_name(header))
                    # Empty text node keeps <tag></tag> instead of <tag/>
                    child.appendChild(doc.createTextNode(text))
                    item.appendChild(child)

            if not item.hasChildNodes():
                item.appendChild(doc.createTextNode(''))
            root.appendChild(item)

        if not rows:
            root.appendChild(doc.createTextNode(''))

        xml_string = doc.toprettyxml(indent="  ", encoding="UTF-8").decode('utf-8')
        self._log_write(len(rows))
        return xml_string.rstrip('\n')
