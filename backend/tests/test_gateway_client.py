import logging
import os
from contextlib import contextmanager

import pytest
import requests

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("INTEGRATION_ENCRYPTION_KEY", "a" * 32)
os.environ["SKIP_MIGRATIONS"] = "1"

from mordomozap.gateway import get_gateway_client
from mordomozap.gateway.client import UazapiClient
from mordomozap.gateway.errors import (
    GatewayConnectError,
    GatewayInitError,
    GatewayTimeoutError,
    InvalidTokenError,
    LogoutError,
    SendError,
)


class _Response:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _client():
    return UazapiClient("https://gw.example.com/", "admin-secret", timeout=3, system_name="apilocal")


def _install(monkeypatch, response=None, error=None):
    calls = []

    def fake_request(method, url, headers=None, json=None, timeout=None):
        calls.append({"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout})
        if error is not None:
            raise error
        return response

    monkeypatch.setattr("mordomozap.gateway.client.requests.request", fake_request)
    return calls


def test_initialize_instance_uses_admin_token(monkeypatch):
    calls = _install(
        monkeypatch,
        _Response(200, {"instance": {"token": "tok-1", "name": "mordomozap-T1"}}),
    )
    credentials = _client().initialize_instance("mordomozap-T1")

    assert credentials.instance_token == "tok-1"
    assert credentials.instance_name == "mordomozap-T1"
    assert calls[0]["method"] == "POST"
    assert calls[0]["url"] == "https://gw.example.com/instance/init"
    assert calls[0]["headers"]["admintoken"] == "admin-secret"
    assert calls[0]["json"] == {"name": "mordomozap-T1", "systemName": "apilocal"}
    assert calls[0]["timeout"] == 3


def test_initialize_instance_requires_token_in_response(monkeypatch):
    _install(monkeypatch, _Response(200, {"instance": {"name": "mordomozap-T1"}}))
    with pytest.raises(GatewayInitError):
        _client().initialize_instance("mordomozap-T1")


def test_initialize_instance_rejected_is_init_error(monkeypatch):
    _install(monkeypatch, _Response(401, {"error": "bad admin token"}))
    with pytest.raises(GatewayInitError) as exc_info:
        _client().initialize_instance("mordomozap-T1")
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "bad admin token"


def test_initialize_instance_without_admin_token(monkeypatch):
    calls = _install(monkeypatch, _Response(200, {}))
    client = UazapiClient("https://gw.example.com", "", timeout=3)
    with pytest.raises(GatewayInitError):
        client.initialize_instance("mordomozap-T1")
    assert calls == []


def test_pairing_artifact_strips_data_uri(monkeypatch):
    calls = _install(monkeypatch, _Response(200, {"base64": "data:image/png;base64,QRDATA=="}))
    artifact = _client().request_pairing_artifact("tok-1")

    assert artifact == "QRDATA=="
    assert calls[0]["url"] == "https://gw.example.com/instance/connect"
    assert calls[0]["headers"]["token"] == "tok-1"


def test_pairing_artifact_invalid_token(monkeypatch):
    _install(monkeypatch, _Response(401, {"error": "unauthorized"}))
    with pytest.raises(InvalidTokenError):
        _client().request_pairing_artifact("tok-dead")


def test_pairing_artifact_missing_qr(monkeypatch):
    _install(monkeypatch, _Response(200, {"connected": False}))
    with pytest.raises(GatewayConnectError):
        _client().request_pairing_artifact("tok-1")


def test_timeout_maps_to_timeout_error(monkeypatch):
    _install(monkeypatch, error=requests.Timeout("slow"))
    with pytest.raises(GatewayTimeoutError):
        _client().request_pairing_artifact("tok-1")


def test_network_error_maps_to_operation_error(monkeypatch):
    _install(monkeypatch, error=requests.ConnectionError("refused"))
    with pytest.raises(SendError):
        _client().send_message("tok-1", "5511999999999", "hi")


def test_fetch_status_connected_shapes(monkeypatch):
    _install(monkeypatch, _Response(200, {"status": {"connected": True, "loggedIn": True}}))
    result = _client().fetch_status("tok-1")
    assert result.connected is True
    assert result.pairing_artifact is None


def test_fetch_status_pending_carries_artifact(monkeypatch):
    _install(
        monkeypatch,
        _Response(200, {"instance": {"status": "connecting", "qrcode": "data:image/png;base64,NEWQR"}}),
    )
    result = _client().fetch_status("tok-1")
    assert result.connected is False
    assert result.pairing_artifact == "NEWQR"


def test_fetch_status_non_success_is_not_connected(monkeypatch):
    _install(monkeypatch, _Response(500, None, text="boom"))
    assert _client().fetch_status("tok-1").connected is False
    assert _client().query_status("tok-1") is False


def test_fetch_status_invalid_token(monkeypatch):
    _install(monkeypatch, _Response(403, {"error": "forbidden"}))
    with pytest.raises(InvalidTokenError):
        _client().fetch_status("tok-1")


def test_terminate_session_failure(monkeypatch):
    _install(monkeypatch, _Response(500, {"message": "nope"}))
    with pytest.raises(LogoutError):
        _client().terminate_session("tok-1")


def test_send_message_posts_number_and_message(monkeypatch):
    calls = _install(monkeypatch, _Response(200, {"id": "msg-1"}))
    _client().send_message("tok-1", "5511999999999", "Hello")

    assert calls[0]["url"] == "https://gw.example.com/message/sendText"
    assert calls[0]["json"] == {"number": "5511999999999", "message": "Hello"}


def test_send_message_error_text(monkeypatch):
    _install(monkeypatch, _Response(400, {"error": "number not on WhatsApp"}))
    with pytest.raises(SendError) as exc_info:
        _client().send_message("tok-1", "123", "Hello")
    assert exc_info.value.message == "number not on WhatsApp"


def test_send_message_error_without_body(monkeypatch):
    _install(monkeypatch, _Response(502, None, text=""))
    with pytest.raises(SendError) as exc_info:
        _client().send_message("tok-1", "123", "Hello")
    assert exc_info.value.message == "Failed with status 502"


def test_get_gateway_client_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_gateway_client("twilio")
    assert isinstance(get_gateway_client("uazapi"), UazapiClient)


@contextmanager
def _trace_logs(caplog):
    logger = logging.getLogger("trace")
    previous_level = logger.level
    logger.addHandler(caplog.handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield
    finally:
        logger.removeHandler(caplog.handler)
        logger.setLevel(previous_level)


def _span_end(records):
    return [rec for rec in records if rec.getMessage() == "span.end" and rec.span_name == "gateway.request"][-1]


def test_gateway_span_carries_status_code_and_outcome(monkeypatch, caplog):
    _install(monkeypatch, _Response(401, {"error": "unauthorized"}))
    with _trace_logs(caplog), pytest.raises(InvalidTokenError):
        _client().fetch_status("tok-dead")

    entry = _span_end(caplog.records)
    assert entry.operation == "query_status"
    assert entry.path == "/instance/status"
    assert entry.status_code == 401
    assert entry.outcome == "invalid_token"
    assert entry.duration_ms >= 0


def test_gateway_span_marks_timeouts(monkeypatch, caplog):
    _install(monkeypatch, error=requests.Timeout("slow"))
    with _trace_logs(caplog), pytest.raises(GatewayTimeoutError):
        _client().request_pairing_artifact("tok-1")

    errors = [rec for rec in caplog.records if rec.getMessage() == "span.error"]
    assert errors[-1].error == "GatewayTimeoutError"
    entry = _span_end(caplog.records)
    assert entry.outcome == "timeout"
    assert not hasattr(entry, "status_code")


def test_gateway_span_ok_outcome(monkeypatch, caplog):
    _install(monkeypatch, _Response(200, {"status": {"connected": True}}))
    with _trace_logs(caplog):
        _client().fetch_status("tok-1")

    entry = _span_end(caplog.records)
    assert entry.status_code == 200
    assert entry.outcome == "ok"
