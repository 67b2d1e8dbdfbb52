# app/schemas/geo_alert.py
from dataclasses import dataclass
from pydantic import BaseModel, Field
from typing import Optional


@dataclass(frozen=True)
class DeviceIdentifier:
    id: str
    type: str


class GeoAlertIn(BaseModel):
    """Alert definition as sent by the device management UI (camelCase on the wire)."""
    query_name: Optional[str] = Field(None, alias="queryName")
    custom_name: Optional[str] = Field(None, alias="customName")
    parse_data: Optional[str] = Field(None, alias="parseData")
    proximity_distance: Optional[str] = Field(None, alias="proximityDistance")
    proximity_time: Optional[str] = Field(None, alias="proximityTime")
    stationery_time: Optional[str] = Field(None, alias="stationeryTime")
    fluctuation_radius: Optional[str] = Field(None, alias="fluctuationRadius")

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True   # proximityDistance etc. arrive as numbers from some clients


class GeoFenceOut(BaseModel):
    geo_json: Optional[str] = Field(None, alias="geoJson")
    query_name: Optional[str] = Field(None, alias="queryName")
    area_name: Optional[str] = Field(None, alias="areaName")
    created_time: Optional[int] = Field(None, alias="createdTime")
    stationary_time: Optional[str] = Field(None, alias="stationaryTime")
    fluctuation_radius: Optional[str] = Field(None, alias="fluctuationRadius")

    class Config:
        populate_by_name = True
