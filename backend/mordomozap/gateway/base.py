from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class InstanceCredentials:
    instance_token: str
    instance_name: str


@dataclass(frozen=True)
class InstanceStatus:
    connected: bool
    pairing_artifact: str | None = None


class WhatsAppGateway:
    provider = "unknown"

    def initialize_instance(self, instance_name: str) -> InstanceCredentials:
        raise NotImplementedError

    def request_pairing_artifact(self, token: str) -> str:
        raise NotImplementedError

    def fetch_status(self, token: str) -> InstanceStatus:
        raise NotImplementedError

    def query_status(self, token: str) -> bool:
        return self.fetch_status(token).connected

    def terminate_session(self, token: str) -> None:
        raise NotImplementedError

    def send_message(self, token: str, recipient: str, body: str) -> None:
        raise NotImplementedError
