"""
Per-tenant connection state machine driving the dashboard.

The manager never talks to the gateway and never persists anything: every
action goes through a ``ConnectionBackend`` (normally the HTTP client for
the connection proxy) and the resulting state is published to listeners.

While the state is ``pending`` a single poll loop asks the proxy for the
current status every ``CONNECTION_POLL_INTERVAL_SECONDS``. The loop stops
as soon as the state leaves ``pending``, when ``disconnect`` runs, or when
the manager is closed.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from mordomozap.connection.errors import (
    ConnectionActionError,
    InvalidTransitionError,
    MissingCredentialsError,
)
from mordomozap.connection.proxy_client import ConnectionBackend, StatusSnapshot
from mordomozap.connection.scheduler import PollHandle, Scheduler, ThreadScheduler
from mordomozap.connection.state import ConnectionState, ConnectionStatus, can_transition
from mordomozap.core.config import settings


logger = logging.getLogger(__name__)

Listener = Callable[[ConnectionState], None]


class ConnectionStateManager:
    def __init__(
        self,
        tenant_id: str,
        backend: ConnectionBackend,
        *,
        scheduler: Scheduler | None = None,
        poll_interval: float | None = None,
        auto_start: bool = False,
    ) -> None:
        if not tenant_id or not str(tenant_id).strip():
            raise ValueError("tenant_id is required")
        self.tenant_id = str(tenant_id).strip()
        self.backend = backend
        self.scheduler = scheduler or ThreadScheduler()
        self.poll_interval = float(poll_interval or settings.CONNECTION_POLL_INTERVAL_SECONDS)
        self.auto_start = auto_start
        self._lock = threading.RLock()
        self._state = ConnectionState(tenant_id=self.tenant_id)
        self._listeners: list[Listener] = []
        self._poller: PollHandle | None = None
        self._poll_generation = 0
        self._closed = False

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def polling(self) -> bool:
        with self._lock:
            return self._poller is not None and self._poller.active

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # State plumbing

    def _publish(self, state: ConnectionState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("connection.listener_failed", extra={"tenant_id": self.tenant_id})

    def _set_state(self, **changes) -> ConnectionState:
        with self._lock:
            previous = self._state
            self._state = previous.evolve(**changes)
            state = self._state
        if previous.status != state.status:
            logger.info(
                "connection.status_changed",
                extra={
                    "tenant_id": self.tenant_id,
                    "from_status": previous.status.value,
                    "to_status": state.status.value,
                },
            )
        if "status" in changes:
            self._sync_polling(state)
            with self._lock:
                state = self._state
        self._publish(state)
        return state

    def _transition(self, target: ConnectionStatus, **changes) -> ConnectionState:
        current = self.state.status
        if not can_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)
        return self._set_state(status=target, **changes)

    def _fail(self, exc: ConnectionActionError) -> ConnectionState:
        return self._transition(
            ConnectionStatus.ERROR,
            qr_code_base64=None,
            last_error=exc.message,
            error_code=exc.code,
            busy=False,
        )

    def _drop_credentials(self, exc: ConnectionActionError) -> ConnectionState:
        # The stored token is gone; only a fresh start can recover.
        return self._set_state(
            status=ConnectionStatus.DISCONNECTED,
            qr_code_base64=None,
            has_credentials=False,
            last_error=exc.message,
            error_code=exc.code,
            busy=False,
        )

    def _begin(self, target: ConnectionStatus | None = None) -> None:
        if target is not None and not can_transition(self.state.status, target):
            raise InvalidTransitionError(self.state.status.value, target.value)
        self._set_state(busy=True, last_error=None, error_code=None)

    def _observed_changes(self, snapshot: StatusSnapshot) -> dict:
        current = self.state
        has_credentials = (
            snapshot.has_credentials if snapshot.has_credentials is not None else current.has_credentials
        )
        if snapshot.connected:
            return {
                "status": ConnectionStatus.CONNECTED,
                "qr_code_base64": None,
                "has_credentials": True if snapshot.has_credentials is None else has_credentials,
            }
        if snapshot.status == ConnectionStatus.PENDING or (
            snapshot.status is None and current.status == ConnectionStatus.PENDING
        ):
            return {
                "status": ConnectionStatus.PENDING,
                "qr_code_base64": snapshot.qr_code_base64 or current.qr_code_base64,
                "has_credentials": has_credentials,
            }
        status = snapshot.status or ConnectionStatus.DISCONNECTED
        if status == ConnectionStatus.CONNECTED:
            # Stored as connected but the gateway no longer agrees.
            status = ConnectionStatus.DISCONNECTED
        return {"status": status, "qr_code_base64": None, "has_credentials": has_credentials}

    # Polling

    def _sync_polling(self, state: ConnectionState) -> None:
        if state.status == ConnectionStatus.PENDING:
            self.start_polling()
        else:
            self.stop_polling()

    def start_polling(self) -> bool:
        with self._lock:
            if self._closed or self.polling:
                return False
            self._poll_generation += 1
            generation = self._poll_generation
            self._poller = self.scheduler.every(self.poll_interval, lambda: self._tick(generation))
            self._state = self._state.evolve(polling=True)
        logger.debug("connection.polling_started", extra={"tenant_id": self.tenant_id})
        return True

    def stop_polling(self) -> None:
        with self._lock:
            poller = self._poller
            self._poller = None
            self._poll_generation += 1
            self._state = self._state.evolve(polling=False)
        if poller is not None:
            poller.cancel()
            logger.debug("connection.polling_stopped", extra={"tenant_id": self.tenant_id})

    def _tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._poll_generation:
                return
        self.poll_once(generation=generation)

    def poll_once(self, *, generation: int | None = None) -> ConnectionState:
        if self.state.status != ConnectionStatus.PENDING:
            self.stop_polling()
            return self.state
        try:
            snapshot = self.backend.status(self.tenant_id)
        except Exception as exc:
            # A failed tick is retried on the next one.
            logger.warning(
                "connection.poll_failed",
                extra={"tenant_id": self.tenant_id, "error": str(exc)},
            )
            return self.state
        # Held until the state is applied so disconnect or close cannot interleave.
        with self._lock:
            changes = self._observed_changes(snapshot)
            stale = generation is not None and generation != self._poll_generation
            if stale or self._closed or self._state.status != ConnectionStatus.PENDING:
                # Disconnect or close won the race; drop the result.
                return self._state
            return self._transition(changes.pop("status"), **changes)

    # Actions

    def load(self) -> ConnectionState:
        """Initial render: observe the stored status, or start pairing when auto_start is set."""
        if self.auto_start:
            try:
                self.connect()
            except ConnectionActionError:
                pass
            return self._set_state(loaded=True)
        try:
            snapshot = self.backend.status(self.tenant_id)
        except Exception as exc:
            logger.warning(
                "connection.load_failed",
                extra={"tenant_id": self.tenant_id, "error": str(exc)},
            )
            return self._set_state(
                status=ConnectionStatus.ERROR,
                last_error=str(exc) or "Failed to load the connection status.",
                error_code=getattr(exc, "code", "internal_error"),
                loaded=True,
            )
        return self._set_state(loaded=True, **self._observed_changes(snapshot))

    def refresh(self) -> ConnectionState:
        snapshot = self.backend.status(self.tenant_id)
        return self._set_state(**self._observed_changes(snapshot))

    def connect(self) -> ConnectionState:
        self._begin(ConnectionStatus.PENDING)
        try:
            result = self.backend.start_connection(self.tenant_id)
        except ConnectionActionError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            logger.exception("connection.connect_crashed", extra={"tenant_id": self.tenant_id})
            error = ConnectionActionError("Failed to start the connection.")
            self._fail(error)
            raise error from exc
        return self._transition(
            ConnectionStatus.PENDING,
            qr_code_base64=result.qr_code_base64,
            has_credentials=True,
            busy=False,
        )

    def reconnect(self) -> ConnectionState:
        if not self.state.has_credentials:
            raise MissingCredentialsError()
        self._begin(ConnectionStatus.PENDING)
        try:
            result = self.backend.reconnect(self.tenant_id)
        except ConnectionActionError as exc:
            if exc.requires_fresh_start:
                self._drop_credentials(exc)
            else:
                self._fail(exc)
            raise
        except Exception as exc:
            logger.exception("connection.reconnect_crashed", extra={"tenant_id": self.tenant_id})
            error = ConnectionActionError("Failed to reconnect.")
            self._fail(error)
            raise error from exc
        return self._transition(
            ConnectionStatus.PENDING,
            qr_code_base64=result.qr_code_base64,
            busy=False,
        )

    def disconnect(self) -> ConnectionState:
        self.stop_polling()
        self._begin()
        try:
            self.backend.disconnect(self.tenant_id)
        except Exception as exc:
            logger.warning(
                "connection.disconnect_failed",
                extra={"tenant_id": self.tenant_id, "error": str(exc)},
            )
        return self._set_state(
            status=ConnectionStatus.DISCONNECTED,
            qr_code_base64=None,
            has_credentials=False,
            busy=False,
        )

    def send_test(self, to: str, message: str) -> None:
        try:
            self.backend.send_test(self.tenant_id, to, message)
        except ConnectionActionError as exc:
            if exc.code == "invalid_token":
                self._drop_credentials(exc)
            raise
        logger.info("connection.test_message_sent", extra={"tenant_id": self.tenant_id})

    def ensure_connected(self) -> ConnectionState:
        """Refresh and, when credentials exist but the session dropped, ask for a new QR."""
        state = self.refresh()
        if state.status == ConnectionStatus.CONNECTED or state.status == ConnectionStatus.PENDING:
            return state
        if not state.has_credentials:
            return state
        try:
            return self.reconnect()
        except ConnectionActionError as exc:
            logger.warning(
                "connection.auto_reconnect_failed",
                extra={"tenant_id": self.tenant_id, "error": exc.message, "code": exc.code},
            )
            return self.state

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._listeners.clear()
        self.stop_polling()

    def __enter__(self) -> "ConnectionStateManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
