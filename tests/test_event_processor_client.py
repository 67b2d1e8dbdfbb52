# tests/test_event_processor_client.py
"""Unit tests for the CEP EventProcessorAdminService SOAP client."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import base64
import xml.etree.ElementTree as ET

import httpx
import pytest
from unittest.mock import MagicMock
from app.config import Settings
from app.exceptions import AdminServiceError, AuthenticationError
from app.services.event_processor_client import (
    NS_ADMIN,
    SERVICE_PATH,
    EventProcessorAdminClient,
    build_envelope,
    open_admin_client,
)

SOAP = "http://schemas.xmlsoap.org/soap/envelope/"


def soap_response(inner: str) -> bytes:
    return (
        f'<soapenv:Envelope xmlns:soapenv="{SOAP}"><soapenv:Body>{inner}</soapenv:Body></soapenv:Envelope>'
    ).encode("utf-8")


def make_client(handler, token="tok"):
    return EventProcessorAdminClient("https://cep:9445/", token, transport=httpx.MockTransport(handler))


def request_params(request: httpx.Request) -> dict:
    body = ET.fromstring(request.content).find(f"{{{SOAP}}}Body")
    op = list(body)[0]
    return {child.tag.split("}")[1]: child.text for child in op}


class TestEnvelope:
    def test_operation_and_params(self):
        root = ET.fromstring(build_envelope("undeployActiveExecutionPlan", planName="P1"))
        op = root.find(f"{{{SOAP}}}Body/{{{NS_ADMIN}}}undeployActiveExecutionPlan")
        assert op.find(f"{{{NS_ADMIN}}}planName").text == "P1"

    def test_plan_text_is_escaped(self):
        plan = "from dataIn[speed > 80 and id == 'a&b'] select *"
        root = ET.fromstring(build_envelope("deployExecutionPlan", executionPlan=plan))
        assert root.find(f".//{{{NS_ADMIN}}}executionPlan").text == plan


class TestAdminClient:
    def test_headers_and_endpoint(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, content=soap_response(
                f'<ns:validateExecutionPlanResponse xmlns:ns="{NS_ADMIN}"><ns:return>success</ns:return>'
                f'</ns:validateExecutionPlanResponse>'))

        with make_client(handler, token="abc") as client:
            assert client.validate_execution_plan("plan") == "success"

        request = seen["request"]
        assert request.url.path == SERVICE_PATH
        assert request.headers["Authorization"] == "Bearer " + base64.b64encode(b"abc").decode("ascii")
        assert request.headers["SOAPAction"] == "urn:validateExecutionPlan"
        assert request_params(request) == {"executionPlan": "plan"}

    def test_validation_message_is_returned(self):
        def handler(request):
            return httpx.Response(200, content=soap_response(
                f'<ns:validateExecutionPlanResponse xmlns:ns="{NS_ADMIN}"><ns:return>'
                f"'within' is neither a function extension nor an aggregated attribute extension"
                f'</ns:return></ns:validateExecutionPlanResponse>'))

        client = make_client(handler)
        assert client.validate_execution_plan("plan").startswith("'within' is neither")

    def test_active_configurations(self):
        xsd = "http://admin.processor.event.carbon.wso2.org/xsd"

        def handler(request):
            return httpx.Response(200, content=soap_response(
                f'<ns:getAllActiveExecutionPlanConfigurationsResponse xmlns:ns="{NS_ADMIN}" xmlns:ax="{xsd}">'
                f'<ns:return><ax:name>P1</ax:name><ax:executionPlan>@Plan:name(\'P1\')</ax:executionPlan>'
                f'<ax:deploymentStatus>DEPLOYED</ax:deploymentStatus></ns:return>'
                f'<ns:return><ax:name>P2</ax:name><ax:executionPlan>@Plan:name(\'P2\')</ax:executionPlan>'
                f'</ns:return></ns:getAllActiveExecutionPlanConfigurationsResponse>'))

        configs = make_client(handler).get_all_active_execution_plan_configurations()
        assert [c.name for c in configs] == ["P1", "P2"]
        assert configs[0].execution_plan == "@Plan:name('P1')"
        assert configs[0].status == "DEPLOYED"
        assert configs[1].description is None

    def test_no_active_configurations(self):
        def handler(request):
            return httpx.Response(200, content=soap_response(
                f'<ns:getAllActiveExecutionPlanConfigurationsResponse xmlns:ns="{NS_ADMIN}"/>'))

        assert make_client(handler).get_all_active_execution_plan_configurations() == []

    def test_edit_and_undeploy_params(self):
        calls = []

        def handler(request):
            calls.append((request.headers["SOAPAction"], request_params(request)))
            return httpx.Response(200, content=soap_response(""))

        client = make_client(handler)
        client.edit_active_execution_plan("plan text", "P1")
        client.undeploy_active_execution_plan("P1")
        client.deploy_execution_plan("plan text")
        assert calls == [
            ("urn:editActiveExecutionPlan", {"executionPlan": "plan text", "executionPlanName": "P1"}),
            ("urn:undeployActiveExecutionPlan", {"planName": "P1"}),
            ("urn:deployExecutionPlan", {"executionPlan": "plan text"}),
        ]

    def test_soap_fault_raises(self):
        def handler(request):
            return httpx.Response(500, content=soap_response(
                "<soapenv:Fault><faultcode>soapenv:Server</faultcode>"
                "<faultstring>Execution plan P1 does not exist</faultstring></soapenv:Fault>"))

        with pytest.raises(AdminServiceError) as exc:
            make_client(handler).undeploy_active_execution_plan("P1")
        assert "does not exist" in str(exc.value)

    def test_http_error_without_envelope_raises(self):
        def handler(request):
            return httpx.Response(503, content=b"Service Unavailable")

        with pytest.raises(AdminServiceError) as exc:
            make_client(handler).deploy_execution_plan("plan")
        assert "HTTP 503" in str(exc.value)

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AdminServiceError) as exc:
            make_client(handler).deploy_execution_plan("plan")
        assert isinstance(exc.value.__cause__, httpx.ConnectError)

    @pytest.mark.parametrize("code", [401, 403])
    def test_rejected_token_is_invalidated(self, code):
        tokens = MagicMock()

        def handler(request):
            return httpx.Response(code, content=b"Unauthorized")

        client = EventProcessorAdminClient("https://cep:9445", "stale", token_provider=tokens,
                                           transport=httpx.MockTransport(handler))
        with pytest.raises(AuthenticationError) as exc:
            client.deploy_execution_plan("plan")
        assert f"HTTP {code}" in str(exc.value)
        tokens.invalidate.assert_called_once_with()

    def test_rejected_token_without_provider_still_raises(self):
        def handler(request):
            return httpx.Response(401, content=b"")

        with pytest.raises(AuthenticationError):
            make_client(handler).validate_execution_plan("plan")


class TestOpenAdminClient:
    def test_uses_tenant_admin_token(self):
        config = Settings(CEP_ADMIN_URL="https://cep:9445", CEP_VERIFY_SSL=False,
                          TENANT_ADMIN_USER="admin", TENANT_DOMAIN="carbon.super")
        tokens = MagicMock()
        tokens.get_token.return_value = "tok"
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, content=soap_response(""))

        with open_admin_client(config, tokens, transport=httpx.MockTransport(handler)) as client:
            client.deploy_execution_plan("plan")

        tokens.get_token.assert_called_once_with("admin@carbon.super")
        assert seen["auth"] == "Bearer " + base64.b64encode(b"tok").decode("ascii")

    def test_rejected_token_is_dropped_from_the_shared_provider(self):
        config = Settings(CEP_ADMIN_URL="https://cep:9445", CEP_VERIFY_SSL=False)
        tokens = MagicMock()
        tokens.get_token.return_value = "expired"

        def handler(request):
            return httpx.Response(401, content=b"")

        with open_admin_client(config, tokens, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(AuthenticationError):
                client.undeploy_active_execution_plan("P1")

        tokens.invalidate.assert_called_once_with()
