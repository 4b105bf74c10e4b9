"""WhatsApp service - wires transport, session, routing and messaging."""

from __future__ import annotations

import threading
from typing import Any

from wabridge.routing.identity import IdentityResolver, resolver_from_env
from wabridge.routing.router import WorkflowRouter

from .dispatcher import EventDispatcher
from .messenger import OutboundMessenger
from .models import ConnectionState, InboundEvent
from .session import ConnectionLifecycleManager, SessionSnapshot
from .transport import EvolutionTransport, Transport


class WhatsAppService:
    """Facade used by the HTTP layer.

    Exposes the administrative operations (start, stop, logout), outbound
    sends and session status; inbound events reach the dispatcher through
    the transport's event handlers.
    """

    def __init__(
        self,
        transport: Transport,
        router: WorkflowRouter | None = None,
        identity_resolver: IdentityResolver | None = None,
    ) -> None:
        self.transport = transport
        self.session = ConnectionLifecycleManager(transport)
        self.messenger = OutboundMessenger(self.session)
        self.dispatcher = EventDispatcher(
            session=self.session,
            router=router or WorkflowRouter(),
            messenger=self.messenger,
            identity_resolver=identity_resolver or resolver_from_env(),
        )
        transport.add_event_handler(self.dispatcher.dispatch)

    def handle_webhook(self, payload: dict[str, Any]) -> InboundEvent | None:
        """Feed a gateway webhook payload into the transport event stream."""
        return self.transport.feed(payload)

    def start(self) -> None:
        self.session.start()

    def stop(self) -> None:
        self.session.stop()

    def logout(self) -> None:
        self.session.logout()

    def send_message(self, phone: str, message: str) -> str:
        return self.messenger.send(phone, message)

    def is_connected(self) -> bool:
        return self.session.is_connected()

    def get_qr_code(self) -> str:
        return self.session.get_qr_code()

    @property
    def state(self) -> ConnectionState:
        return self.session.state

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()


# Process-wide service (one WhatsApp session per process)
_service: WhatsAppService | None = None
_service_lock = threading.Lock()


def get_service() -> WhatsAppService:
    """Get the process-wide service, building it on first use."""
    global _service
    with _service_lock:
        if _service is None:
            _service = WhatsAppService(EvolutionTransport())
        return _service


def set_service(service: WhatsAppService | None) -> None:
    """Replace the process-wide service (tests, custom wiring)."""
    global _service
    with _service_lock:
        _service = service
