# app/exceptions.py
"""
Error taxonomy for the geo alert service.

Every error carries the alert type and, for device scoped operations, the
device id so the log line and HTTP error body can name what failed.
"""

from typing import Optional


class GeoAlertError(Exception):
    """Base class for every failure raised by the geo alert service."""

    def __init__(self, message: str, alert_type: Optional[str] = None,
                 device_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.alert_type = alert_type
        self.device_id = device_id

    def __str__(self):
        context = []
        if self.alert_type:
            context.append(f"alert_type={self.alert_type}")
        if self.device_id:
            context.append(f"device_id={self.device_id}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class UnrecognizedAlertTypeError(GeoAlertError):
    pass


class PayloadParseError(GeoAlertError):
    pass


class InvalidAlertError(GeoAlertError):
    """A query name, owner or device id that cannot be used as a registry path segment."""


class TemplateNotFoundError(GeoAlertError):
    def __init__(self, template_path: str, alert_type: Optional[str] = None):
        super().__init__(f"Could not find template in path: {template_path}", alert_type)
        self.template_path = template_path


class TemplateRenderError(GeoAlertError):
    pass


class AdminServiceError(GeoAlertError):
    """Remote CEP admin call failed: transport, HTTP status, SOAP fault or validation."""


class AuthenticationError(GeoAlertError):
    """Access token could not be obtained for the CEP admin service."""


class AlertAlreadyExistsError(GeoAlertError):
    def __init__(self, execution_plan_name: str, alert_type: Optional[str] = None,
                 device_id: Optional[str] = None):
        super().__init__(f"Execution plan already exists with name {execution_plan_name}",
                         alert_type, device_id)
        self.execution_plan_name = execution_plan_name


class StoreAccessError(GeoAlertError):
    def __init__(self, message: str, path: Optional[str] = None,
                 alert_type: Optional[str] = None, device_id: Optional[str] = None):
        super().__init__(message, alert_type, device_id)
        self.path = path
