"""Send test geo alerts to the backend. Creates, lists and optionally removes one alert."""

import argparse
import requests
import json

BACKEND_URL = "http://localhost:9443/api/v1/geo/alerts"

SAMPLE_FENCE = {
    "type": "Polygon",
    "coordinates": [[[79.8512, 6.9101], [79.8623, 6.9101], [79.8623, 6.9188], [79.8512, 6.9188], [79.8512, 6.9101]]],
}


def build_alert(alert_type, query, area, speed):
    if alert_type == "Speed":
        return {"parseData": json.dumps({"speedAlertValue": speed})}
    if alert_type == "Proximity":
        return {"queryName": query, "parseData": "{}", "proximityDistance": "100", "proximityTime": "30"}
    alert = {"queryName": query, "customName": area,
             "parseData": json.dumps({"geoFenceGeoJSON": json.dumps(SAMPLE_FENCE)})}
    if alert_type == "Stationary":
        alert.update({"stationeryTime": "120", "fluctuationRadius": "15"})
    return alert


def alert_url(alert_type, device, device_type):
    if device:
        return f"{BACKEND_URL}/{alert_type}/{device_type}/{device}"
    return f"{BACKEND_URL}/{alert_type}"


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate geo alert requests for testing")
    parser.add_argument("--type", default="Within",
                        choices=["Within", "Exit", "Speed", "Proximity", "Stationary", "Traffic"])
    parser.add_argument("--query", default="TestFence")
    parser.add_argument("--area", default="Test Area")
    parser.add_argument("--speed", default="80")
    parser.add_argument("--device", help="Device id; omit for a tenant wide alert")
    parser.add_argument("--device-type", default="android_sense")
    parser.add_argument("--owner", default="admin")
    parser.add_argument("--api-key")
    parser.add_argument("--remove", action="store_true", help="Remove the alert after listing it")
    args = parser.parse_args()

    url = alert_url(args.type, args.device, args.device_type)
    params = {"owner": args.owner} if args.device else {}
    headers = {"X-API-Key": args.api_key} if args.api_key else {}

    resp = requests.post(url, json=build_alert(args.type, args.query, args.area, args.speed),
                         params=params, headers=headers, timeout=30)
    print(f"✅ create {args.type} → HTTP {resp.status_code}: {resp.text}")

    resp = requests.get(url, params=params, headers=headers, timeout=30)
    print(f"✅ list {args.type} → HTTP {resp.status_code}: {resp.text}")

    if args.remove:
        resp = requests.delete(url, params={**params, "queryName": args.query}, headers=headers, timeout=30)
        print(f"✅ remove {args.type} → HTTP {resp.status_code}: {resp.text}")
