"""Evolution API adapter - validate and normalize webhook events."""

from typing import Any

from .content import parse_payload
from .models import (
    Connected,
    Disconnected,
    InboundEvent,
    LoggedOut,
    MessageReceived,
    QRIssued,
)

EVENT_MESSAGES_UPSERT = "messages.upsert"
EVENT_QRCODE_UPDATED = "qrcode.updated"
EVENT_CONNECTION_UPDATE = "connection.update"
EVENT_LOGOUT_INSTANCE = "logout.instance"

GROUP_SERVER_SUFFIX = "@g.us"


class InvalidPayloadError(Exception):
    """Raised when Evolution payload has invalid shape."""

    pass


def event_name(payload: dict[str, Any]) -> str:
    """Return the normalized event name.

    Evolution sends "messages.upsert" or "MESSAGES_UPSERT" depending on
    the webhook configuration.
    """
    name = payload.get("event")
    if not name or not isinstance(name, str):
        raise InvalidPayloadError("missing event")
    return name.lower().replace("_", ".")


def normalize_event(payload: dict[str, Any]) -> InboundEvent | None:
    """Normalize an Evolution webhook payload into an inbound event.

    Args:
        payload: Raw webhook payload from Evolution API.

    Returns:
        The matching InboundEvent, or None for events the bridge ignores
        (presence, chats, "connecting" state updates...).

    Raises:
        InvalidPayloadError: If required fields are missing or invalid.
    """
    name = event_name(payload)
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    if name == EVENT_MESSAGES_UPSERT:
        return _normalize_message(data)
    if name == EVENT_QRCODE_UPDATED:
        return _normalize_qrcode(data)
    if name == EVENT_CONNECTION_UPDATE:
        state = data.get("state")
        if state == "open":
            return Connected()
        if state == "close":
            return Disconnected()
        return None
    if name == EVENT_LOGOUT_INSTANCE:
        return LoggedOut()
    return None


def _normalize_message(data: dict[str, Any]) -> MessageReceived:
    """Extract a MessageReceived from ``messages.upsert`` data.

    ATTENTION PII: remote_jid and message text live only in memory.
    """
    key = data.get("key", {})
    if not isinstance(key, dict):
        raise InvalidPayloadError("missing key")

    message_id = key.get("id")
    if not message_id or not isinstance(message_id, str):
        raise InvalidPayloadError("missing or invalid message_id")

    remote_jid = key.get("remoteJid", "")
    if not remote_jid or not isinstance(remote_jid, str):
        raise InvalidPayloadError("missing remoteJid")

    # In groups remoteJid is the group; the author is the participant.
    sender = remote_jid
    if remote_jid.endswith(GROUP_SERVER_SUFFIX):
        sender = key.get("participant") or data.get("participant") or ""
        if not isinstance(sender, str) or not sender:
            raise InvalidPayloadError("missing participant for group message")

    push_name = data.get("pushName")

    return MessageReceived(
        sender=sender,
        payload=parse_payload(data.get("message")),
        is_self_originated=bool(key.get("fromMe", False)),
        message_id=message_id,
        push_name=push_name if isinstance(push_name, str) and push_name else None,
    )


def _normalize_qrcode(data: dict[str, Any]) -> QRIssued:
    """Extract the pairing code from ``qrcode.updated`` data."""
    qrcode = data.get("qrcode", {})
    code = qrcode.get("code") if isinstance(qrcode, dict) else None
    if not code or not isinstance(code, str):
        raise InvalidPayloadError("missing qrcode.code")
    return QRIssued(code=code)
