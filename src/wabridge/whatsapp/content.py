"""Text extraction from inbound message payloads."""

from typing import Any

from .models import ExtendedText, MessagePayload, Other, PlainText


def parse_payload(message: Any) -> MessagePayload:
    """Classify a raw WhatsApp ``message`` object.

    Args:
        message: The ``data.message`` object of a webhook event.

    Returns:
        PlainText for ``conversation``, ExtendedText for
        ``extendedTextMessage``, Other for everything else (including
        malformed input).
    """
    if not isinstance(message, dict):
        return Other(kind="unknown")

    conversation = message.get("conversation")
    if isinstance(conversation, str):
        return PlainText(text=conversation)

    extended = message.get("extendedTextMessage")
    if isinstance(extended, dict):
        text = extended.get("text")
        return ExtendedText(text=text if isinstance(text, str) else None)

    kinds = [key for key in message if key != "messageContextInfo"]
    return Other(kind=kinds[0] if kinds else "unknown")


def extract_text(payload: MessagePayload) -> str:
    """Return the text carried by a payload, or "" when there is none.

    An empty result means the message is not processed further.
    """
    if isinstance(payload, PlainText):
        return payload.text
    if isinstance(payload, ExtendedText):
        return payload.text or ""
    return ""
