"""WhatsApp transport models: connection state, inbound events, payloads."""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ConnectionState(str, Enum):
    """Connection state of the single WhatsApp session."""

    DISCONNECTED = "disconnected"
    AWAITING_QR = "awaiting_qr"
    CONNECTED = "connected"
    # Declared for status reporting; the LoggedOut event lands in DISCONNECTED.
    LOGGED_OUT = "logged_out"


# --- message payload variants -------------------------------------------------


@dataclass(frozen=True)
class PlainText:
    """Simple ``conversation`` message."""

    text: str


@dataclass(frozen=True)
class ExtendedText:
    """``extendedTextMessage`` (replies, link previews). Text may be missing."""

    text: str | None


@dataclass(frozen=True)
class Other:
    """Any message type without extractable text (image, audio, sticker...)."""

    kind: str


MessagePayload = Union[PlainText, ExtendedText, Other]


# --- inbound events -----------------------------------------------------------


@dataclass(frozen=True)
class MessageReceived:
    """Chat message delivered to the session.

    ATTENTION PII: ``sender`` and ``payload`` must never be logged.
    """

    sender: str
    payload: MessagePayload
    is_self_originated: bool
    message_id: str = ""
    push_name: str | None = None


@dataclass(frozen=True)
class QRIssued:
    """Pairing QR code issued by the gateway."""

    code: str


@dataclass(frozen=True)
class Connected:
    """Session is connected and paired."""


@dataclass(frozen=True)
class Disconnected:
    """Session lost its connection."""


@dataclass(frozen=True)
class LoggedOut:
    """Session was logged out (from the phone or the gateway)."""


InboundEvent = Union[MessageReceived, QRIssued, Connected, Disconnected, LoggedOut]

LifecycleEvent = Union[QRIssued, Connected, Disconnected, LoggedOut]


@dataclass(frozen=True)
class DeviceRecord:
    """Gateway instance backing the session.

    Attributes:
        instance_name: Evolution instance name.
        owner_jid: JID of the paired phone; empty while unpaired.
    """

    instance_name: str
    owner_jid: str = ""

    @property
    def is_paired(self) -> bool:
        return bool(self.owner_jid)
