# app/services/geo_alert_service.py
"""
Geo alert lifecycle: store alert definitions in the registry and keep the
matching execution plans deployed on the CEP engine.

Create:  parse payload → render plan → validate → reject if active → registry put → deploy
Update:  parse payload → render plan → validate → edit if active, otherwise deploy
Remove:  registry delete → undeploy (not reconciled if the second step fails)
Reads never raise on a top-level store failure: list reads return [] and the
scalar speed/proximity reads return NO_CONTENT.
"""

import threading
from contextlib import contextmanager
from functools import partial
from typing import Callable, Optional

from app.config import Settings, settings as default_settings
from app.exceptions import (
    AdminServiceError,
    AlertAlreadyExistsError,
    AuthenticationError,
    GeoAlertError,
    StoreAccessError,
)
from app.schemas.geo_alert import DeviceIdentifier, GeoAlertIn, GeoFenceOut
from app.services import alert_types as keys
from app.services.alert_paths import (
    alert_collection_path,
    alert_path,
    device_alert_path,
    execution_plan_name,
)
from app.services.alert_types import AlertType, spec_for
from app.services.event_processor_client import open_admin_client
from app.services.registry_store import RegistryStore
from app.services.template_engine import TemplateEngine
from app.services.token_service import TokenProvider
from app.utils.json_parser import parse_payload
from app.utils.logger import get_logger

logger = get_logger(__name__)

NO_CONTENT = "{'content': false}"
VALIDATION_SUCCESS = "success"
MISSING_GEO_EXTENSION = "'within' is neither a function extension nor an aggregated attribute extension"
MEDIA_TYPE = "application/json"


class GeoAlertService:
    def __init__(self, store: RegistryStore, admin_client_factory: Callable,
                 templates: Optional[TemplateEngine] = None, config: Optional[Settings] = None):
        self.store = store
        self.admin_client_factory = admin_client_factory
        self.templates = templates or TemplateEngine()
        self.config = config or default_settings
        # plan name -> [lock, number of callers holding or waiting on it]
        self._plan_locks: dict = {}
        self._plan_locks_guard = threading.Lock()

    # ── Create / update ───────────────────────────────────────────────────
    def create_geo_alert(self, alert: GeoAlertIn, alert_type, identifier: Optional[DeviceIdentifier] = None,
                         owner: Optional[str] = None) -> bool:
        return self._save_geo_alert(alert, alert_type, False, identifier, owner)

    def update_geo_alert(self, alert: GeoAlertIn, alert_type, identifier: Optional[DeviceIdentifier] = None,
                         owner: Optional[str] = None) -> bool:
        return self._save_geo_alert(alert, alert_type, True, identifier, owner)

    def _save_geo_alert(self, alert, alert_type, is_update, identifier, owner) -> bool:
        alert_type = AlertType.parse(alert_type)
        device_id = identifier.id if identifier else None
        spec = spec_for(alert_type)

        payload = parse_payload(alert.parse_data, alert_type.value)
        content = spec.content(alert, payload)
        options = {k: v for k, v in spec.properties(alert).items() if v is not None}

        plan_name = execution_plan_name(alert_type, alert.query_name, device_id, owner)
        values = self._template_values(payload, alert, identifier)
        values[keys.EXECUTION_PLAN_NAME] = plan_name
        if identifier is not None:
            values[keys.DEVICE_OWNER] = owner
            path = device_alert_path(alert_type, device_id, owner, alert.query_name, self.config.REGISTRY_ALERTS_ROOT)
        else:
            path = alert_path(alert_type, alert.query_name, self.config.REGISTRY_ALERTS_ROOT)

        try:
            execution_plan = self.templates.render_for(alert_type, values, for_geo_clusters=identifier is None)
        except GeoAlertError as e:
            raise _with_context(e, alert_type, device_id)

        action = "updating" if is_update else "creating"
        with self._plan_lock(plan_name):
            client = self._open_client(alert_type, device_id, action)
            try:
                self._validate(client, execution_plan, alert_type, device_id, action)
                active = client.get_all_active_execution_plan_configurations()
                is_active = any(plan_name in cfg.execution_plan for cfg in active)

                if is_update:
                    if is_active:
                        client.edit_active_execution_plan(execution_plan, plan_name)
                        logger.info(f"[GEO] Edited execution plan {plan_name}")
                        return True
                    logger.info(f"[GEO] {plan_name} is not active, deploying it as new")
                    client.deploy_execution_plan(execution_plan)
                else:
                    if is_active:
                        raise AlertAlreadyExistsError(plan_name, alert_type.value, device_id)
                    self._put_resource(path, content, options, alert_type, device_id)
                    client.deploy_execution_plan(execution_plan)
                logger.info(f"[GEO] Deployed execution plan {plan_name}")
                return True
            except (AdminServiceError, AuthenticationError) as e:
                logger.error(f"[GEO] Admin service failed while {action} geo alert {alert_type.value}: {e}")
                raise _with_context(e, alert_type, device_id)
            finally:
                client.close()

    @staticmethod
    def _template_values(payload: dict, alert: GeoAlertIn, identifier: Optional[DeviceIdentifier]) -> dict:
        """Payload entries plus the alert's own fields for any key the payload lacks."""
        values = dict(payload)
        defaults = {
            keys.QUERY_NAME: alert.query_name,
            keys.AREA_NAME: alert.custom_name,
            keys.PROXIMITY_DISTANCE: alert.proximity_distance,
            keys.PROXIMITY_TIME: alert.proximity_time,
            keys.STATIONARY_TIME: alert.stationery_time,
            keys.FLUCTUATION_RADIUS: alert.fluctuation_radius,
        }
        if identifier is not None:
            defaults["deviceId"] = identifier.id
        for key, value in defaults.items():
            if value is not None and values.get(key) is None:
                values[key] = value
        return values

    def _validate(self, client, execution_plan: str, alert_type: AlertType, device_id, action: str):
        response = client.validate_execution_plan(execution_plan)
        if response == VALIDATION_SUCCESS:
            return
        if response.startswith(MISSING_GEO_EXTENSION):
            logger.error("[GEO] Siddhi geo extension is not installed on the analytics server. "
                         "Deploy the siddhi-geo extension and restart the server.")
        else:
            logger.error(f"[GEO] Execution plan validation failed: {response}")
        raise AdminServiceError(f"Error occurred while {action} geo {alert_type.value} alert: {response}",
                                alert_type.value, device_id)

    def _put_resource(self, path: str, content, options: dict, alert_type: AlertType, device_id):
        resource = self.store.new_resource()
        resource.set_content(content)
        resource.media_type = MEDIA_TYPE
        for name, value in options.items():
            resource.add_property(name, str(value))
        try:
            self.store.put(path, resource)
        except StoreAccessError as e:
            logger.error(f"[GEO] Could not store {alert_type.value} alert at {path}: {e}")
            raise _with_context(e, alert_type, device_id)

    # ── Remove ────────────────────────────────────────────────────────────
    def remove_geo_alert(self, alert_type, query_name: Optional[str], identifier: Optional[DeviceIdentifier] = None,
                         owner: Optional[str] = None) -> bool:
        alert_type = AlertType.parse(alert_type)
        device_id = identifier.id if identifier else None
        if identifier is not None:
            path = device_alert_path(alert_type, device_id, owner, query_name, self.config.REGISTRY_ALERTS_ROOT)
        else:
            path = alert_path(alert_type, query_name, self.config.REGISTRY_ALERTS_ROOT)

        try:
            self.store.delete(path)
        except StoreAccessError as e:
            logger.error(f"[GEO] Error occurred while removing {alert_type.value} alert from the path: {path}")
            raise StoreAccessError(f"Error occurred while removing {alert_type.value} alert from the path: {path}",
                                   path, alert_type.value, device_id) from e

        plan_name = execution_plan_name(alert_type, query_name, device_id, owner)
        client = self._open_client(alert_type, device_id, "removing")
        try:
            client.undeploy_active_execution_plan(plan_name)
            logger.info(f"[GEO] Undeployed execution plan {plan_name}")
            return True
        except (AdminServiceError, AuthenticationError) as e:
            # Registry entry is already gone at this point
            logger.error(f"[GEO] Registry entry {path} removed but undeploy of {plan_name} failed: {e}")
            raise _with_context(e, alert_type, device_id)
        finally:
            client.close()

    # ── Geo fence reads ───────────────────────────────────────────────────
    def get_within_alerts(self, identifier: Optional[DeviceIdentifier] = None, owner: Optional[str] = None) -> list:
        return self._read_fences(AlertType.WITHIN, identifier, owner)

    def get_exit_alerts(self, identifier: Optional[DeviceIdentifier] = None, owner: Optional[str] = None) -> list:
        return self._read_fences(AlertType.EXIT, identifier, owner)

    def get_stationary_alerts(self, identifier: Optional[DeviceIdentifier] = None,
                              owner: Optional[str] = None) -> list:
        return self._read_fences(AlertType.STATIONARY, identifier, owner)

    def get_traffic_alerts(self, identifier: Optional[DeviceIdentifier] = None, owner: Optional[str] = None) -> list:
        root_type = AlertType.STATIONARY if self.config.TRAFFIC_READS_USE_STATIONARY_ROOT else AlertType.TRAFFIC
        return self._read_fences(AlertType.TRAFFIC, identifier, owner, root_type)

    def _read_fences(self, alert_type: AlertType, identifier, owner, root_type: Optional[AlertType] = None) -> list:
        device_id = identifier.id if identifier else None
        parent = alert_collection_path(root_type or alert_type, device_id, owner, self.config.REGISTRY_ALERTS_ROOT)
        try:
            child_paths = self.store.children(parent)
        except StoreAccessError as e:
            logger.error(f"[GEO] Error while reading the registry path: {parent}. Error: {e}")
            return []

        spec = spec_for(alert_type)
        fences = []
        for child in child_paths:
            try:
                resource = self.store.get(child)
            except StoreAccessError as e:
                raise _with_context(e, alert_type, device_id)
            if resource is None or resource.is_collection:
                continue

            fields = {"geo_json": resource.content_text(), "created_time": resource.created_millis}
            for field_name, property_names in spec.fence_properties:
                fields[field_name] = next(
                    (v for v in (resource.get_property(n) for n in property_names) if v is not None), None
                )
            fences.append(GeoFenceOut(**fields))
        return fences

    # ── Scalar reads ──────────────────────────────────────────────────────
    def get_speed_alerts(self, identifier: Optional[DeviceIdentifier] = None, owner: Optional[str] = None) -> str:
        if identifier is not None:
            path = device_alert_path(AlertType.SPEED, identifier.id, owner, alerts_root=self.config.REGISTRY_ALERTS_ROOT)
        else:
            path = alert_path(AlertType.SPEED, alerts_root=self.config.REGISTRY_ALERTS_ROOT)
        try:
            resource = self.store.get(path)
        except StoreAccessError as e:
            logger.error(f"[GEO] Could not read speed alert at {path}: {e}")
            return NO_CONTENT
        if resource is None or resource.is_collection:
            return NO_CONTENT
        return "{'speedLimit':" + resource.content_text() + "}"

    def get_proximity_alerts(self, identifier: Optional[DeviceIdentifier] = None,
                             owner: Optional[str] = None) -> str:
        device_id = identifier.id if identifier else None
        path = alert_collection_path(AlertType.PROXIMITY, device_id, owner, self.config.REGISTRY_ALERTS_ROOT)
        try:
            resource = self._latest_resource(path)
        except StoreAccessError as e:
            logger.error(f"[GEO] Could not read proximity alert at {path}: {e}")
            return NO_CONTENT
        if resource is None:
            return NO_CONTENT
        return '{proximityDistance:"%s", proximityTime:"%s"}' % (
            resource.get_property(keys.PROXIMITY_DISTANCE) or "",
            resource.get_property(keys.PROXIMITY_TIME) or "",
        )

    def _latest_resource(self, path: str):
        """The resource at path, or the newest resource directly under it."""
        resource = self.store.get(path)
        if resource is None or not resource.is_collection:
            return resource
        latest = None
        for child in resource.content:
            candidate = self.store.get(child)
            if candidate is None or candidate.is_collection:
                continue
            if latest is None or (candidate.created_millis or 0) >= (latest.created_millis or 0):
                latest = candidate
        return latest

    # ── Helpers ───────────────────────────────────────────────────────────
    @contextmanager
    def _plan_lock(self, plan_name: str):
        """Serialise saves of one execution plan. The entry is dropped when the last caller leaves."""
        with self._plan_locks_guard:
            entry = self._plan_locks.setdefault(plan_name, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._plan_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._plan_locks[plan_name]

    def _open_client(self, alert_type: AlertType, device_id, action: str):
        try:
            return self.admin_client_factory()
        except AuthenticationError as e:
            logger.error(f"[GEO] Token creation failed while {action} geo alert {alert_type.value}: {e}")
            raise _with_context(e, alert_type, device_id)
        except OSError as e:
            raise AdminServiceError(
                f"Event processor admin service initialization failed while {action} geo alert: {e}",
                alert_type.value, device_id,
            ) from e


def _with_context(error: GeoAlertError, alert_type: AlertType, device_id) -> GeoAlertError:
    if error.alert_type is None:
        error.alert_type = alert_type.value
    if error.device_id is None:
        error.device_id = device_id
    return error


_service: Optional[GeoAlertService] = None


def get_geo_alert_service() -> GeoAlertService:
    """FastAPI dependency — one service per process, sharing one token cache."""
    global _service
    if _service is None:
        from app.database import SessionLocal

        store = RegistryStore(SessionLocal, default_settings.TENANT_ID)
        tokens = TokenProvider(default_settings)
        _service = GeoAlertService(store, partial(open_admin_client, default_settings, tokens))
    return _service
