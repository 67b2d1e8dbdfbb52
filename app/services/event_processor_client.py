# app/services/event_processor_client.py
"""
SOAP client for the CEP EventProcessorAdminService.

Endpoint: POST {CEP_ADMIN_URL}/services/EventProcessorAdminService
Protocol: SOAP 1.1 over HTTPS, Authorization: Bearer base64(<access token>)

Only the five operations the geo alert service needs are implemented.
One client instance is opened per alert operation and closed afterwards.
"""

import base64
import ssl
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional

import httpx

from app.config import Settings, settings as default_settings
from app.exceptions import AdminServiceError, AuthenticationError
from app.services.token_service import TokenProvider
from app.utils.logger import get_logger
from app.utils.xml_parser import child_text, find_child, find_children, safe_parse_xml

logger = get_logger(__name__)

SERVICE_PATH = "/services/EventProcessorAdminService"
NS_SOAP = "http://schemas.xmlsoap.org/soap/envelope/"
NS_ADMIN = "http://admin.processor.event.carbon.wso2.org"


@dataclass
class ExecutionPlanConfiguration:
    name: Optional[str]
    execution_plan: str
    description: Optional[str] = None
    status: Optional[str] = None


def build_envelope(operation: str, **params) -> bytes:
    ET.register_namespace("soapenv", NS_SOAP)
    ET.register_namespace("adm", NS_ADMIN)
    envelope = ET.Element(f"{{{NS_SOAP}}}Envelope")
    ET.SubElement(envelope, f"{{{NS_SOAP}}}Header")
    body = ET.SubElement(envelope, f"{{{NS_SOAP}}}Body")
    op = ET.SubElement(body, f"{{{NS_ADMIN}}}{operation}")
    for key, value in params.items():
        ET.SubElement(op, f"{{{NS_ADMIN}}}{key}").text = value
    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def build_ssl_context(config: Settings):
    if not config.CEP_VERIFY_SSL:
        return False
    ctx = ssl.create_default_context(cafile=config.CEP_CA_BUNDLE)
    if config.CEP_CLIENT_CERT:
        ctx.load_cert_chain(config.CEP_CLIENT_CERT, config.CEP_CLIENT_KEY)
    return ctx


class EventProcessorAdminClient:
    def __init__(self, base_url: str, token: str, timeout: float = 30.0, verify=True,
                 transport: Optional[httpx.BaseTransport] = None,
                 token_provider: Optional[TokenProvider] = None):
        self.url = base_url.rstrip("/") + SERVICE_PATH
        self.token_provider = token_provider
        encoded = base64.b64encode(token.encode("utf-8")).decode("ascii")
        self._client = httpx.Client(
            timeout=timeout,
            verify=verify,
            transport=transport,
            headers={
                "Authorization": f"Bearer {encoded}",
                "Content-Type": "text/xml; charset=UTF-8",
            },
        )

    # ── Operations ────────────────────────────────────────────────────────
    def validate_execution_plan(self, execution_plan: str) -> str:
        result = self._call("validateExecutionPlan", executionPlan=execution_plan)
        return (child_text(result, "return") or "").strip()

    def get_all_active_execution_plan_configurations(self) -> list:
        result = self._call("getAllActiveExecutionPlanConfigurations")
        configs = []
        for el in find_children(result, "return"):
            configs.append(ExecutionPlanConfiguration(
                name=child_text(el, "name"),
                execution_plan=child_text(el, "executionPlan") or "",
                description=child_text(el, "description"),
                status=child_text(el, "deploymentStatus"),
            ))
        return configs

    def deploy_execution_plan(self, execution_plan: str):
        self._call("deployExecutionPlan", executionPlan=execution_plan)

    def edit_active_execution_plan(self, execution_plan: str, execution_plan_name: str):
        self._call("editActiveExecutionPlan", executionPlan=execution_plan,
                   executionPlanName=execution_plan_name)

    def undeploy_active_execution_plan(self, execution_plan_name: str):
        self._call("undeployActiveExecutionPlan", planName=execution_plan_name)

    # ── Lifecycle ─────────────────────────────────────────────────────────
    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ── Transport ─────────────────────────────────────────────────────────
    def _call(self, operation: str, **params):
        """POST one SOAP request and return the <operation>Response element."""
        try:
            resp = self._client.post(self.url, content=build_envelope(operation, **params),
                                     headers={"SOAPAction": f"urn:{operation}"})
        except httpx.HTTPError as e:
            raise AdminServiceError(f"Event processor admin service call {operation} failed: {e}") from e

        if resp.status_code in (401, 403):
            # Drop the cached token so the next client fetches a fresh one
            if self.token_provider is not None:
                self.token_provider.invalidate()
            logger.warning(f"[CEP] {operation} rejected the access token (HTTP {resp.status_code})")
            raise AuthenticationError(
                f"Event processor admin service {operation} rejected the access token (HTTP {resp.status_code})"
            )

        root = safe_parse_xml(resp.content)
        body = find_child(root, "Body") if root is not None else None
        if body is not None:
            fault = find_child(body, "Fault")
            if fault is not None:
                reason = (child_text(fault, "faultstring") or "unknown fault").strip()
                logger.error(f"[CEP] {operation} fault: {reason}")
                raise AdminServiceError(f"Event processor admin service {operation} fault: {reason}")

        if resp.status_code >= 400 or body is None:
            raise AdminServiceError(
                f"Event processor admin service {operation} returned HTTP {resp.status_code}"
            )
        logger.debug(f"[CEP] {operation} → HTTP {resp.status_code}")
        response = find_child(body, f"{operation}Response")
        return response if response is not None else body


def open_admin_client(config: Optional[Settings] = None, token_provider: Optional[TokenProvider] = None,
                      transport: Optional[httpx.BaseTransport] = None) -> EventProcessorAdminClient:
    """
    Build a client authenticated as the tenant admin.
    Raises AuthenticationError if no token can be obtained.
    """
    config = config or default_settings
    token_provider = token_provider or TokenProvider(config)
    token = token_provider.get_token(config.TENANT_ADMIN)
    return EventProcessorAdminClient(
        config.CEP_ADMIN_URL,
        token,
        timeout=config.CEP_ADMIN_TIMEOUT_SECONDS,
        verify=build_ssl_context(config),
        transport=transport,
        token_provider=token_provider,
    )
