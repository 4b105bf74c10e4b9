"""Conversion between phone numbers and WhatsApp JIDs."""

from wabridge.errors import InvalidPhoneNumber

# Server part of individual-chat JIDs
DEFAULT_USER_SERVER = "s.whatsapp.net"

_SEPARATORS = ("+", "-", " ")


def normalize_phone(phone: str) -> str:
    """Remove ``+``, ``-`` and spaces, keeping the remaining order.

    Raises:
        InvalidPhoneNumber: If nothing is left after stripping.
    """
    clean_phone = phone
    for separator in _SEPARATORS:
        clean_phone = clean_phone.replace(separator, "")

    if not clean_phone:
        raise InvalidPhoneNumber("invalid phone number")
    return clean_phone


def to_canonical_identifier(phone: str) -> str:
    """Build the JID for an individual chat from a phone number.

    Args:
        phone: Phone number, e.g. "+62 812-3456".

    Returns:
        JID, e.g. "628123456@s.whatsapp.net".

    Raises:
        InvalidPhoneNumber: If nothing is left after stripping.
    """
    return f"{normalize_phone(phone)}@{DEFAULT_USER_SERVER}"


def from_canonical_identifier(jid: str) -> str:
    """Return the user part of a JID.

    No validation: the value was produced by the transport itself. A
    ``:device`` suffix (multi-device JIDs) is not part of the user.

    Args:
        jid: WhatsApp JID (e.g., "5511999999999:12@s.whatsapp.net").

    Returns:
        User part (e.g., "5511999999999").
    """
    user = jid.split("@", 1)[0]
    return user.split(":", 1)[0]
