# app/routers/geo_alerts.py
"""
Geo alert endpoints — tenant wide and per device.

GET    /geo/alerts/{alert_type}                             — tenant wide alerts
GET    /geo/alerts/{alert_type}/{device_type}/{device_id}   — one device's alerts
POST   same paths                                           — create
PUT    same paths                                           — update (deploys if not active)
DELETE same paths ?queryName=                               — remove
Speed and Proximity reads return the legacy string body, the rest a GeoFence list.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from app.schemas.geo_alert import DeviceIdentifier, GeoAlertIn, GeoFenceOut
from app.services.alert_types import AlertType
from app.services.geo_alert_service import GeoAlertService, get_geo_alert_service

router = APIRouter()

_FENCE_READERS = {
    AlertType.WITHIN: "get_within_alerts",
    AlertType.EXIT: "get_exit_alerts",
    AlertType.STATIONARY: "get_stationary_alerts",
    AlertType.TRAFFIC: "get_traffic_alerts",
}
_SCALAR_READERS = {
    AlertType.SPEED: "get_speed_alerts",
    AlertType.PROXIMITY: "get_proximity_alerts",
}


def _read(service: GeoAlertService, alert_type: str, identifier=None, owner=None):
    kind = AlertType.parse(alert_type)
    if kind in _SCALAR_READERS:
        return PlainTextResponse(getattr(service, _SCALAR_READERS[kind])(identifier, owner))
    return getattr(service, _FENCE_READERS[kind])(identifier, owner)


@router.get("/geo/alerts/{alert_type}", response_model=list[GeoFenceOut], summary="Tenant wide geo alerts")
def get_alerts(alert_type: str, service: GeoAlertService = Depends(get_geo_alert_service)):
    return _read(service, alert_type)


@router.get("/geo/alerts/{alert_type}/{device_type}/{device_id}", response_model=list[GeoFenceOut],
            summary="Geo alerts of one device")
def get_device_alerts(alert_type: str, device_type: str, device_id: str, owner: str = Query(...),
                      service: GeoAlertService = Depends(get_geo_alert_service)):
    return _read(service, alert_type, DeviceIdentifier(device_id, device_type), owner)


@router.post("/geo/alerts/{alert_type}", status_code=201, summary="Create a tenant wide geo alert")
def create_alert(alert_type: str, alert: GeoAlertIn, service: GeoAlertService = Depends(get_geo_alert_service)):
    service.create_geo_alert(alert, alert_type)
    return {"alert_type": alert_type, "query_name": alert.query_name, "status": "created"}


@router.post("/geo/alerts/{alert_type}/{device_type}/{device_id}", status_code=201,
             summary="Create a geo alert for one device")
def create_device_alert(alert_type: str, device_type: str, device_id: str, alert: GeoAlertIn,
                        owner: str = Query(...), service: GeoAlertService = Depends(get_geo_alert_service)):
    service.create_geo_alert(alert, alert_type, DeviceIdentifier(device_id, device_type), owner)
    return {"alert_type": alert_type, "device_id": device_id, "query_name": alert.query_name, "status": "created"}


@router.put("/geo/alerts/{alert_type}", summary="Update a tenant wide geo alert")
def update_alert(alert_type: str, alert: GeoAlertIn, service: GeoAlertService = Depends(get_geo_alert_service)):
    service.update_geo_alert(alert, alert_type)
    return {"alert_type": alert_type, "query_name": alert.query_name, "status": "updated"}


@router.put("/geo/alerts/{alert_type}/{device_type}/{device_id}", summary="Update a geo alert for one device")
def update_device_alert(alert_type: str, device_type: str, device_id: str, alert: GeoAlertIn,
                        owner: str = Query(...), service: GeoAlertService = Depends(get_geo_alert_service)):
    service.update_geo_alert(alert, alert_type, DeviceIdentifier(device_id, device_type), owner)
    return {"alert_type": alert_type, "device_id": device_id, "query_name": alert.query_name, "status": "updated"}


@router.delete("/geo/alerts/{alert_type}", summary="Remove a tenant wide geo alert")
def remove_alert(alert_type: str, query_name: Optional[str] = Query(None, alias="queryName"),
                 service: GeoAlertService = Depends(get_geo_alert_service)):
    service.remove_geo_alert(alert_type, query_name)
    return {"alert_type": alert_type, "query_name": query_name, "status": "removed"}


@router.delete("/geo/alerts/{alert_type}/{device_type}/{device_id}", summary="Remove a geo alert of one device")
def remove_device_alert(alert_type: str, device_type: str, device_id: str, owner: str = Query(...),
                        query_name: Optional[str] = Query(None, alias="queryName"),
                        service: GeoAlertService = Depends(get_geo_alert_service)):
    service.remove_geo_alert(alert_type, query_name, DeviceIdentifier(device_id, device_type), owner)
    return {"alert_type": alert_type, "device_id": device_id, "query_name": query_name, "status": "removed"}
