"""Shared test helpers for WA Bridge tests.

These are NOT fixtures - they are regular classes and functions that can be
imported by conftest.py and individual test files.
"""

from __future__ import annotations

from typing import Any

from wabridge.whatsapp.evolution_adapter import normalize_event
from wabridge.whatsapp.models import Connected, DeviceRecord, QRIssued


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def exception(self, *args, **kwargs):
        self._record("exception", *args, **kwargs)

    def debug(self, *args, **kwargs):
        self._record("debug", *args, **kwargs)

    def messages(self, level: str | None = None) -> list[str]:
        """Return the first positional arg of each call, optionally by level."""
        return [
            args[0]
            for lvl, args, _ in self.calls
            if args and (level is None or lvl == level)
        ]

    def get_all_logged_content(self) -> str:
        """Concatenate all args and kwargs from all calls into one string."""
        parts = []
        for level, args, kwargs in self.calls:
            parts.append(str(args))
            parts.append(str(kwargs))
        return " ".join(parts)


class FakeTransport:
    """In-memory Transport recording every call.

    ``fail`` maps an operation name to the exception it raises.
    ``connect_emits`` is the event emitted by connect(): "qr", "open" or None.
    """

    def __init__(
        self,
        *,
        device: DeviceRecord | None = None,
        registered: bool = True,
        connect_emits: str | None = "qr",
        qr_code: str = "2@QRDATA",
    ):
        self.device = device or DeviceRecord(instance_name="test-instance", owner_jid="1@s.whatsapp.net")
        self.registered = registered
        self.connect_emits = connect_emits
        self.qr_code = qr_code
        self.handlers: list = []
        self.calls: list[str] = []
        self.sent: list[tuple[str, str]] = []
        self.fail: dict[str, Exception] = {}
        self.attached = False

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    def add_event_handler(self, handler) -> None:
        self.handlers.append(handler)

    def emit(self, event) -> None:
        for handler in self.handlers:
            handler(event)

    def feed(self, payload: dict[str, Any]):
        event = normalize_event(payload)
        if event is None or not self.attached:
            return None
        self.emit(event)
        return event

    def bootstrap(self) -> DeviceRecord:
        self._maybe_fail("bootstrap")
        return self.device

    def connect(self) -> None:
        self._maybe_fail("connect")
        self.attached = True
        if self.connect_emits == "qr":
            self.emit(QRIssued(code=self.qr_code))
        elif self.connect_emits == "open":
            self.emit(Connected())

    def disconnect(self) -> None:
        self.attached = False
        self._maybe_fail("disconnect")

    def is_registered(self) -> bool:
        self._maybe_fail("is_registered")
        return self.registered

    def logout(self) -> None:
        self._maybe_fail("logout")

    def delete_device(self, device: DeviceRecord) -> None:
        self._maybe_fail("delete_device")

    def send_message(self, jid: str, text: str) -> str:
        self._maybe_fail("send_message")
        self.sent.append((jid, text))
        return f"RECEIPT{len(self.sent)}"


class FakeRouter:
    """Router double recording routed messages."""

    def __init__(self, workflow_type=None, error: Exception | None = None):
        from wabridge.domain.models import WorkflowType

        self.workflow_type = workflow_type or WorkflowType.N8N
        self.error = error
        self.routed: list[tuple] = []

    def route(self, user_context, message, *, message_id=None, timeout=None):
        self.routed.append((user_context, message, message_id))
        if self.error is not None:
            raise self.error
        return self.workflow_type


def message_payload(
    text: str | None = "hello",
    *,
    remote_jid: str = "628123456@s.whatsapp.net",
    from_me: bool = False,
    message_id: str = "MSG001",
    message: dict | None = None,
) -> dict[str, Any]:
    """Build an Evolution ``messages.upsert`` webhook payload."""
    if message is None:
        message = {"conversation": text}
    return {
        "event": "messages.upsert",
        "instance": "test-instance",
        "data": {
            "key": {"id": message_id, "remoteJid": remote_jid, "fromMe": from_me},
            "pushName": "Tester",
            "message": message,
        },
    }
