# app/utils/xml_parser.py
"""
Namespace-agnostic helpers for reading SOAP responses.
The admin service mixes several xsd namespaces, so lookups go by local name.
"""

import xml.etree.ElementTree as ET
from typing import Optional


def local_name(tag: str) -> str:
    """'{http://ns}return' -> 'return'."""
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def find_child(parent: ET.Element, name: str) -> Optional[ET.Element]:
    """First direct child with the given local name."""
    return next((el for el in parent if local_name(el.tag) == name), None)


def find_children(parent: ET.Element, name: str) -> list:
    return [el for el in parent if local_name(el.tag) == name]


def child_text(parent: ET.Element, name: str) -> Optional[str]:
    el = find_child(parent, name)
    return el.text if el is not None else None


def safe_parse_xml(raw_body: bytes) -> Optional[ET.Element]:
    """Parse XML bytes safely. Returns None on error."""
    try:
        return ET.fromstring(raw_body)
    except ET.ParseError:
        return None
