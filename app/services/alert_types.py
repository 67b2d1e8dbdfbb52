# app/services/alert_types.py
"""
Alert types and their dispatch table.

Each AlertType maps to one AlertTypeSpec describing how an alert of that type
is stored: what goes into the resource content, which alert fields become
resource properties, whether the query name is part of the store path, and
which properties a GeoFence read pulls back out.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from app.exceptions import UnrecognizedAlertTypeError

# Payload / property keys shared with the execution plan templates
GEO_FENCE_GEO_JSON = "geoFenceGeoJSON"
SPEED_ALERT_VALUE = "speedAlertValue"
EXECUTION_PLAN_NAME = "executionPlanName"
DEVICE_OWNER = "deviceOwner"
QUERY_NAME = "queryName"
AREA_NAME = "areaName"
PROXIMITY_DISTANCE = "proximityDistance"
PROXIMITY_TIME = "proximityTime"
STATIONARY_NAME = "stationeryName"
STATIONARY_TIME = "stationeryTime"
FLUCTUATION_RADIUS = "fluctuationRadius"


class AlertType(str, Enum):
    WITHIN = "Within"
    EXIT = "Exit"
    SPEED = "Speed"
    PROXIMITY = "Proximity"
    STATIONARY = "Stationary"
    TRAFFIC = "Traffic"

    @classmethod
    def parse(cls, value) -> "AlertType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnrecognizedAlertTypeError(f"Unrecognized execution plan type: {value}", str(value))


def _geo_json(alert, payload: dict) -> Optional[str]:
    return payload.get(GEO_FENCE_GEO_JSON)


def _speed_value(alert, payload: dict) -> Optional[str]:
    return payload.get(SPEED_ALERT_VALUE)


def _raw_payload(alert, payload: dict) -> Optional[str]:
    return alert.parse_data


def _area_properties(alert) -> dict:
    return {QUERY_NAME: alert.query_name, AREA_NAME: alert.custom_name}


def _proximity_properties(alert) -> dict:
    return {PROXIMITY_DISTANCE: alert.proximity_distance, PROXIMITY_TIME: alert.proximity_time}


def _stationary_properties(alert) -> dict:
    props = _area_properties(alert)
    props[STATIONARY_TIME] = alert.stationery_time
    props[FLUCTUATION_RADIUS] = alert.fluctuation_radius
    return props


def _no_properties(alert) -> dict:
    return {}


@dataclass(frozen=True)
class AlertTypeSpec:
    path_uses_query: bool
    content: Callable
    properties: Callable
    # GeoFence field -> resource property names tried in order
    fence_properties: tuple = ()


_AREA_FENCE = (
    ("query_name", (QUERY_NAME,)),
    ("area_name", (AREA_NAME,)),
)

ALERT_TYPE_SPECS = {
    AlertType.WITHIN: AlertTypeSpec(True, _geo_json, _area_properties, _AREA_FENCE),
    AlertType.EXIT: AlertTypeSpec(True, _geo_json, _area_properties, _AREA_FENCE),
    AlertType.SPEED: AlertTypeSpec(False, _speed_value, _no_properties),
    AlertType.PROXIMITY: AlertTypeSpec(True, _raw_payload, _proximity_properties),
    AlertType.STATIONARY: AlertTypeSpec(True, _raw_payload, _stationary_properties, _AREA_FENCE + (
        ("stationary_time", (STATIONARY_TIME,)),
        ("fluctuation_radius", (FLUCTUATION_RADIUS,)),
    )),
    # Older traffic alerts carry their area name as stationeryName
    AlertType.TRAFFIC: AlertTypeSpec(True, _geo_json, _area_properties, (
        ("query_name", (QUERY_NAME,)),
        ("area_name", (AREA_NAME, STATIONARY_NAME)),
    )),
}


def spec_for(alert_type) -> AlertTypeSpec:
    return ALERT_TYPE_SPECS[AlertType.parse(alert_type)]
