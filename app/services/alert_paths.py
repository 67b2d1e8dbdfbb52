# app/services/alert_paths.py
"""
Registry paths and execution plan names for geo alerts.

Device scoped:  <root>/<type>/<owner>/<deviceId>/<queryName>
Tenant global:  <root>/<type>/<queryName>
Speed alerts have one value per scope, so they never carry a query name.
Every other type requires one. Query name, owner and device id must each be a
single non-blank path segment.
"""

from typing import Optional

from app.config import settings
from app.exceptions import InvalidAlertError
from app.services.alert_types import AlertType, spec_for
from app.services.registry_store import normalize_path

PLAN_PREFIX = "Geo-ExecutionPlan-"


def _root(alerts_root: Optional[str]) -> str:
    return alerts_root or settings.REGISTRY_ALERTS_ROOT


def _segment(value, field: str, alert_type: AlertType, device_id=None) -> str:
    """A blank or slash carrying segment would address a parent collection or another alert."""
    if value is None or not str(value).strip():
        raise InvalidAlertError(f"{field} is required for {alert_type.value} alerts",
                                alert_type.value, device_id)
    value = str(value)
    if "/" in value:
        raise InvalidAlertError(f"{field} must not contain '/': {value}", alert_type.value, device_id)
    return value


def _device_segments(alert_type: AlertType, device_id, owner) -> list:
    device_id = _segment(device_id, "device id", alert_type)
    return [_segment(owner, "owner", alert_type, device_id), device_id]


def _query_segment(alert_type: AlertType, query_name, device_id=None) -> list:
    if not spec_for(alert_type).path_uses_query:
        return []
    return [_segment(query_name, "queryName", alert_type, device_id)]


def alert_collection_path(alert_type, device_id: Optional[str] = None, owner: Optional[str] = None,
                          alerts_root: Optional[str] = None) -> str:
    """Parent path holding every alert of a type, for one device or tenant wide."""
    alert_type = AlertType.parse(alert_type)
    parts = [_root(alerts_root), alert_type.value]
    if device_id is not None:
        parts += _device_segments(alert_type, device_id, owner)
    return normalize_path("/".join(parts))


def alert_path(alert_type, query_name: Optional[str] = None, alerts_root: Optional[str] = None) -> str:
    alert_type = AlertType.parse(alert_type)
    parts = [alert_collection_path(alert_type, alerts_root=alerts_root)]
    parts += _query_segment(alert_type, query_name)
    return normalize_path("/".join(parts))


def device_alert_path(alert_type, device_id: str, owner: str, query_name: Optional[str] = None,
                      alerts_root: Optional[str] = None) -> str:
    alert_type = AlertType.parse(alert_type)
    parts = [_root(alerts_root), alert_type.value] + _device_segments(alert_type, device_id, owner)
    parts += _query_segment(alert_type, query_name, device_id)
    return normalize_path("/".join(parts))


def execution_plan_name(alert_type, query_name: Optional[str] = None,
                        device_id: Optional[str] = None, owner: Optional[str] = None) -> str:
    alert_type = AlertType.parse(alert_type)
    if spec_for(alert_type).path_uses_query:
        query_name = _segment(query_name, "queryName", alert_type, device_id)
    if device_id is None:
        if alert_type is AlertType.TRAFFIC:
            return f"{PLAN_PREFIX}Traffic_{query_name}_alert"
        if alert_type is AlertType.SPEED:
            return f"{PLAN_PREFIX}Speed---_alert"
        return f"{PLAN_PREFIX}{alert_type.value}_{query_name}---_alert"

    owner, device_id = _device_segments(alert_type, device_id, owner)
    if alert_type is AlertType.SPEED:
        return f"{PLAN_PREFIX}Speed---_{owner}_{device_id}_alert"
    return f"{PLAN_PREFIX}{alert_type.value}_{query_name}---_{owner}_{device_id}_alert"
