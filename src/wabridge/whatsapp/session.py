"""Connection lifecycle of the single WhatsApp session.

All session state (connection state, pending QR code, device record) lives
in one SessionHandle guarded by a re-entrant lock. Nothing else mutates it.

State machine (initial DISCONNECTED):

    DISCONNECTED --QRIssued-->     AWAITING_QR   store QR
    AWAITING_QR  --QRIssued-->     AWAITING_QR   replace QR
    AWAITING_QR  --Connected-->    CONNECTED     clear QR
    DISCONNECTED --Connected-->    CONNECTED     clear QR
    CONNECTED    --Disconnected--> DISCONNECTED
    AWAITING_QR  --Disconnected--> DISCONNECTED  clear QR
    any          --LoggedOut-->    DISCONNECTED  clear QR
    any          --stop()-->       DISCONNECTED  clear QR
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from wabridge.errors import (
    DeviceDeleteError,
    NotConnected,
    QRNotAvailable,
    RemoteLogoutError,
    TransportError,
)
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import safe_log_context

from .models import (
    Connected,
    ConnectionState,
    DeviceRecord,
    Disconnected,
    LifecycleEvent,
    LoggedOut,
    QRIssued,
)
from .transport import Transport

logger = get_logger(__name__)


@dataclass
class SessionHandle:
    """Mutable session state. Only touched with the manager's lock held."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    qr_code: str = ""
    device: DeviceRecord | None = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view for status reporting."""

    state: ConnectionState
    has_qr: bool
    has_device: bool


class ConnectionLifecycleManager:
    """Owns the SessionHandle and the administrative operations."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._lock = threading.RLock()
        self._handle = SessionHandle()

    # -- accessors ------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._handle.state

    def is_connected(self) -> bool:
        with self._lock:
            return self._handle.state is ConnectionState.CONNECTED

    def get_qr_code(self) -> str:
        """Return the pending QR code.

        Raises:
            QRNotAvailable: If no pairing is pending.
        """
        with self._lock:
            if not self._handle.qr_code:
                raise QRNotAvailable()
            return self._handle.qr_code

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                state=self._handle.state,
                has_qr=bool(self._handle.qr_code),
                has_device=self._handle.device is not None,
            )

    @contextmanager
    def connected_transport(self) -> Iterator[Transport]:
        """Yield the transport while holding the session lock.

        Logout cannot tear the connection down while the block runs.

        Raises:
            NotConnected: If the session is not connected.
        """
        with self._lock:
            if self._handle.state is not ConnectionState.CONNECTED:
                raise NotConnected()
            yield self._transport

    # -- transitions ----------------------------------------------------------

    def apply(self, event: LifecycleEvent) -> ConnectionState:
        """Apply one lifecycle event and return the resulting state."""
        with self._lock:
            handle = self._handle
            previous = handle.state

            if isinstance(event, QRIssued):
                if previous in (ConnectionState.DISCONNECTED, ConnectionState.AWAITING_QR):
                    handle.state = ConnectionState.AWAITING_QR
                    handle.qr_code = event.code
                    logger.info("QR code received, ready for scanning")
                else:
                    self._ignore(previous, event)
            elif isinstance(event, Connected):
                if previous in (ConnectionState.DISCONNECTED, ConnectionState.AWAITING_QR):
                    handle.state = ConnectionState.CONNECTED
                    handle.qr_code = ""
                    logger.info("connected to WhatsApp")
                else:
                    self._ignore(previous, event)
            elif isinstance(event, Disconnected):
                if previous in (ConnectionState.CONNECTED, ConnectionState.AWAITING_QR):
                    handle.state = ConnectionState.DISCONNECTED
                    handle.qr_code = ""
                    logger.info("disconnected from WhatsApp")
                else:
                    self._ignore(previous, event)
            elif isinstance(event, LoggedOut):
                handle.state = ConnectionState.DISCONNECTED
                handle.qr_code = ""
                logger.info("logged out from WhatsApp")
            else:
                raise TypeError(f"not a lifecycle event: {type(event).__name__}")

            return handle.state

    def _ignore(self, state: ConnectionState, event: LifecycleEvent) -> None:
        logger.debug(
            "lifecycle event ignored",
            extra={
                "extra_fields": safe_log_context(
                    state=state.value, event=type(event).__name__
                )
            },
        )

    # -- administrative operations -------------------------------------------

    def start(self) -> None:
        """Bootstrap the gateway instance and connect.

        Raises:
            TransportError: If bootstrap or connect fails.
        """
        logger.info("starting WhatsApp service")
        with self._lock:
            try:
                device = self._transport.bootstrap()
            except TransportError:
                logger.exception("failed to bootstrap WhatsApp instance")
                raise
            self._handle.device = device
            if not device.is_paired:
                logger.info("device not registered, QR code will be generated on connect")

            try:
                self._transport.connect()
            except TransportError:
                logger.exception("failed to connect to WhatsApp")
                raise
        logger.info("WhatsApp service started")

    def stop(self) -> None:
        """Disconnect the transport. Best effort, never raises."""
        logger.info("stopping WhatsApp service")
        with self._lock:
            try:
                self._transport.disconnect()
            except Exception:
                logger.exception("transport disconnect failed during stop")
            self._handle.state = ConnectionState.DISCONNECTED
            self._handle.qr_code = ""
        logger.info("WhatsApp service stopped")

    def logout(self) -> None:
        """Log out and forget the device. Idempotent and best effort.

        Steps run in order with the lock held; a failing step is logged and
        the next one still runs. Never raises.
        """
        logger.info("logging out from WhatsApp")
        steps: list[tuple[str, Callable[[], None]]] = [
            ("remote_logout", self._remote_logout),
            ("disconnect", self._disconnect),
            ("delete_device", self._delete_device),
            ("clear_qr", self._clear_qr),
        ]
        with self._lock:
            for name, action in steps:
                try:
                    action()
                except Exception as e:
                    logger.warning(
                        "logout step failed, continuing",
                        extra={
                            "extra_fields": safe_log_context(
                                step=name, error_type=type(e).__name__, error=e
                            )
                        },
                    )
        logger.info("logout process completed")

    def _remote_logout(self) -> None:
        if self._handle.device is None:
            logger.info("no device record, skipping server logout")
            return
        try:
            registered = self._transport.is_registered()
        except Exception as e:
            raise RemoteLogoutError(f"registration check failed: {e}") from e
        if not registered:
            logger.info("device not registered, skipping server logout")
            return
        try:
            self._transport.logout()
        except Exception as e:
            raise RemoteLogoutError(f"failed to logout from WhatsApp server: {e}") from e
        logger.info("logged out from WhatsApp server")

    def _disconnect(self) -> None:
        try:
            self._transport.disconnect()
        finally:
            self._handle.state = ConnectionState.DISCONNECTED

    def _delete_device(self) -> None:
        device = self._handle.device
        if device is None:
            logger.info("device record not available, skipping deletion")
            return
        # Forget the record even if deletion fails so a retry stays local.
        self._handle.device = None
        try:
            self._transport.delete_device(device)
        except Exception as e:
            raise DeviceDeleteError(f"failed to delete device: {e}") from e
        logger.info("device record deleted")

    def _clear_qr(self) -> None:
        self._handle.qr_code = ""
