"""Outbound text messages through the connected session.

Used for administrative notices and for delivering workflow replies that
arrive on the reply webhook.

Security: NEVER log phone or text. Only log hashes and lengths.
"""

from wabridge.errors import SendFailed
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import hash_identifier, safe_log_context

from .identifiers import to_canonical_identifier
from .session import ConnectionLifecycleManager

logger = get_logger(__name__)


class OutboundMessenger:
    """Sends text messages, gated on the session being connected."""

    def __init__(self, session: ConnectionLifecycleManager) -> None:
        self._session = session

    def send(self, phone: str, text: str) -> str:
        """Send ``text`` to ``phone``.

        Args:
            phone: Recipient phone number. NEVER logged.
            text: Message text. NEVER logged.

        Returns:
            Gateway message id.

        Raises:
            NotConnected: Session not connected (checked before anything else).
            InvalidPhoneNumber: Phone empty after stripping separators.
            SendFailed: Transport rejected the message.
        """
        log_ctx = safe_log_context(to_hash=hash_identifier(phone), text_len=len(text))

        with self._session.connected_transport() as transport:
            jid = to_canonical_identifier(phone)
            try:
                receipt = transport.send_message(jid, text)
            except Exception as e:
                logger.error(
                    "failed to send message",
                    extra={
                        "extra_fields": safe_log_context(
                            **log_ctx, error_type=type(e).__name__
                        )
                    },
                )
                raise SendFailed(f"failed to send message: {type(e).__name__}") from e

        logger.info(
            "message sent",
            extra={"extra_fields": safe_log_context(**log_ctx, receipt=receipt)},
        )
        return receipt
