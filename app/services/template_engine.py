# app/services/template_engine.py
"""
Execution plan templates.

Templates are SiddhiQL files with $key placeholders:
    alerts/Geo-ExecutionPlan-<type>_alert.siddhiql                  (device scoped)
    alerts/Geo-ExecutionPlan-<type>_alert_for_GeoClusters.siddhiql  (tenant global)

Substitution is literal. Values are never interpreted, so geo JSON containing
'$' or '\\' reaches the engine unchanged.
"""

import os
import re
from typing import Optional

from app.config import settings
from app.exceptions import TemplateNotFoundError, TemplateRenderError
from app.services.alert_types import AlertType
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")
PLACEHOLDER = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


def template_name(alert_type, for_geo_clusters: bool = False) -> str:
    alert_type = AlertType.parse(alert_type)
    suffix = "_alert_for_GeoClusters" if for_geo_clusters else "_alert"
    return f"alerts/Geo-ExecutionPlan-{alert_type.value}{suffix}.siddhiql"


def render(template: str, values: dict, alert_type: Optional[str] = None) -> str:
    """
    Replace every $key in template with values[key] in a single pass.
    Keys the template never mentions are ignored; a placeholder with no value
    (missing key or None) raises TemplateRenderError.
    """
    missing = sorted({k for k in PLACEHOLDER.findall(template) if _key_for(values, k) is None})
    if missing:
        raise TemplateRenderError(
            f"No value for template placeholders: {', '.join('$' + k for k in missing)}", alert_type
        )

    def _substitute(match):
        name = match.group(1)
        key = _key_for(values, name)
        return str(values[key]) + name[len(key):]

    return PLACEHOLDER.sub(_substitute, template)


def _key_for(values: dict, placeholder: str) -> Optional[str]:
    """Longest key with a value that the placeholder starts with, e.g. areaName for $areaName_label."""
    if values.get(placeholder) is not None:
        return placeholder
    for key in sorted(values, key=len, reverse=True):
        if placeholder.startswith(key) and values[key] is not None:
            return key
    return None


class TemplateEngine:
    def __init__(self, template_dir: Optional[str] = None):
        self.template_dir = template_dir or settings.TEMPLATE_DIR or DEFAULT_TEMPLATE_DIR
        self._cache: dict = {}

    def load(self, name: str, alert_type: Optional[str] = None) -> str:
        if name in self._cache:
            return self._cache[name]
        path = os.path.join(self.template_dir, *name.split("/"))
        if not os.path.isfile(path):
            logger.error(f"[TEMPLATE] Missing execution plan template {path}")
            raise TemplateNotFoundError(name, alert_type)
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        self._cache[name] = text
        return text

    def render_for(self, alert_type, values: dict, for_geo_clusters: bool = False) -> str:
        alert_type = AlertType.parse(alert_type)
        text = self.load(template_name(alert_type, for_geo_clusters), alert_type.value)
        return render(text, values, alert_type.value)
