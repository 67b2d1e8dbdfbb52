# app/utils/json_parser.py
"""
Helpers for the alert parseData payload.
The UI sends a flat JSON object whose values end up as template strings.
"""

import json
from typing import Optional

from app.exceptions import PayloadParseError


def safe_parse_json(raw: str) -> Optional[dict]:
    """Parse a JSON object safely. Returns None on error or when it is not an object."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _as_text(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise TypeError(type(value).__name__)


def parse_payload(raw: Optional[str], alert_type: Optional[str] = None) -> dict:
    """
    Parse parseData into a str -> str mapping.
    Numbers and booleans become their JSON text; nested values are rejected.
    """
    if raw is None or not raw.strip():
        return {}
    data = safe_parse_json(raw)
    if data is None:
        raise PayloadParseError("Alert parseData is not a JSON object", alert_type)
    try:
        return {key: _as_text(value) for key, value in data.items()}
    except TypeError as e:
        raise PayloadParseError(f"Alert parseData holds a nested {e} value", alert_type)
