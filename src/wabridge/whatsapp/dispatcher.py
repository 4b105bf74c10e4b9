"""Single entry point for transport events.

Lifecycle events go to the ConnectionLifecycleManager; chat messages are
normalized, resolved to a user context and routed to a workflow backend.

Security: NEVER log phone, JID or message text.
"""

from __future__ import annotations

from wabridge.errors import BackendDispatchError, BridgeError
from wabridge.observability.correlation import correlation_scope
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import hash_identifier, safe_log_context
from wabridge.routing.identity import IdentityResolver
from wabridge.routing.router import WorkflowRouter

from .content import extract_text
from .identifiers import from_canonical_identifier
from .messenger import OutboundMessenger
from .models import (
    Connected,
    Disconnected,
    InboundEvent,
    LoggedOut,
    MessageReceived,
    QRIssued,
)
from .session import ConnectionLifecycleManager

logger = get_logger(__name__)

UNREGISTERED_USER_MESSAGE = (
    "Sorry, you are not registered to use this service. "
    "Please contact the administrator for access."
)
PROCESSING_ERROR_MESSAGE = (
    "Sorry, there was an error processing your message. Please try again later."
)


class EventDispatcher:
    """Classifies inbound events and hands each to its handler."""

    def __init__(
        self,
        session: ConnectionLifecycleManager,
        router: WorkflowRouter,
        messenger: OutboundMessenger,
        identity_resolver: IdentityResolver,
    ) -> None:
        self._session = session
        self._router = router
        self._messenger = messenger
        self._identity_resolver = identity_resolver

    def dispatch(self, event: InboundEvent) -> None:
        """Handle one transport event."""
        if isinstance(event, MessageReceived):
            self._handle_message(event)
        elif isinstance(event, (QRIssued, Connected, Disconnected, LoggedOut)):
            self._session.apply(event)
        else:
            raise TypeError(f"unsupported event: {type(event).__name__}")

    def _handle_message(self, event: MessageReceived) -> None:
        # Messages sent by this session come back as events; drop them silently.
        if event.is_self_originated:
            return

        with correlation_scope():
            phone = from_canonical_identifier(event.sender)
            if not phone:
                logger.warning(
                    "failed to extract phone from sender",
                    extra={"extra_fields": safe_log_context(message_id=event.message_id)},
                )
                return

            log_ctx = safe_log_context(
                from_hash=hash_identifier(phone), message_id=event.message_id
            )

            text = extract_text(event.payload)
            if not text:
                logger.info(
                    "no text content in message",
                    extra={
                        "extra_fields": safe_log_context(
                            **log_ctx, kind=type(event.payload).__name__
                        )
                    },
                )
                return

            try:
                user_context = self._identity_resolver.resolve(phone, event.push_name)
            except Exception:
                logger.exception(
                    "failed to resolve sender identity", extra={"extra_fields": log_ctx}
                )
                return

            if user_context is None:
                logger.info("sender not eligible, ignoring message", extra={"extra_fields": log_ctx})
                self._send_notice(phone, UNREGISTERED_USER_MESSAGE, "unregistered")
                return

            try:
                workflow_type = self._router.route(
                    user_context, text, message_id=event.message_id or None
                )
            except BackendDispatchError as e:
                logger.error(
                    "failed to route message",
                    extra={
                        "extra_fields": safe_log_context(
                            **log_ctx, workflow_type=e.workflow_type
                        )
                    },
                )
                self._send_notice(phone, PROCESSING_ERROR_MESSAGE, "processing_error")
                return

            logger.info(
                "message routed to workflow",
                extra={
                    "extra_fields": safe_log_context(
                        **log_ctx, workflow_type=workflow_type.value, text_len=len(text)
                    )
                },
            )

    def _send_notice(self, phone: str, text: str, notice: str) -> None:
        """Best-effort notice to the sender; failures are logged only."""
        try:
            self._messenger.send(phone, text)
        except BridgeError as e:
            logger.warning(
                "failed to send notice",
                extra={
                    "extra_fields": safe_log_context(
                        notice=notice,
                        to_hash=hash_identifier(phone),
                        error_type=type(e).__name__,
                    )
                },
            )
