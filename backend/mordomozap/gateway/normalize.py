"""
Normalization of the gateway's response shapes.

UAZAPI has returned the connection flag and the QR code under several
field names across versions. Everything above the client reads the
results of these helpers only.
"""

from __future__ import annotations

from typing import Any


_CONNECTED_STATES = {"connected", "open", "online", "authenticated"}

_ARTIFACT_KEYS = ("base64", "qrcode", "qrCode", "qr_code", "qr")


def strip_data_uri(value: str | None) -> str | None:
    """Drop a leading ``data:<mime>;base64,`` prefix; return raw base64."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.startswith("data:") and "," in text:
        text = text.split(",", 1)[1].strip()
    return text or None


def _coerce_connected(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1"}:
            return True
        if lowered in {"false", "0"}:
            return False
        return lowered in _CONNECTED_STATES
    if isinstance(value, dict):
        return normalize_connected(value)
    return None


def normalize_connected(payload: Any) -> bool:
    """
    Map every known status payload to a single boolean.

    Recognized shapes::

        {"connected": true}
        {"status": {"connected": true, "loggedIn": true}}
        {"status": "connected"}
        {"state": "open"}
        {"instance": {"status": "connected"}}

    Anything unrecognized counts as not connected.
    """
    if not isinstance(payload, dict):
        return False
    for key in ("connected", "loggedIn", "status", "state"):
        if key not in payload:
            continue
        result = _coerce_connected(payload[key])
        if result is not None:
            return result
    instance = payload.get("instance")
    if isinstance(instance, dict):
        return normalize_connected(instance)
    return False


def extract_pairing_artifact(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in _ARTIFACT_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return strip_data_uri(value)
    instance = payload.get("instance")
    if isinstance(instance, dict):
        return extract_pairing_artifact(instance)
    return None


def extract_instance_credentials(payload: Any) -> tuple[str | None, str | None]:
    """Return ``(token, name)`` from an /instance/init body."""
    if not isinstance(payload, dict):
        return None, None
    instance = payload.get("instance") if isinstance(payload.get("instance"), dict) else {}
    token = instance.get("token") or payload.get("token")
    name = instance.get("name") or payload.get("name")
    return (token or None), (name or None)


def extract_error_text(payload: Any) -> str | None:
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return None
