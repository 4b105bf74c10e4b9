"""Tests for outbound messaging - gating, addressing, and NO PII in logs."""

import threading
from unittest.mock import patch

import pytest

from wabridge.errors import InvalidPhoneNumber, NotConnected, SendFailed, TransportError
from wabridge.whatsapp.messenger import OutboundMessenger
from wabridge.whatsapp.models import Connected
from wabridge.whatsapp.session import ConnectionLifecycleManager

from helpers import FakeTransport, LogRecorder

TEST_PHONE = "+62 812-3456"
TEST_TEXT = "Your order has shipped"


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport):
    return ConnectionLifecycleManager(transport)


@pytest.fixture
def messenger(session):
    return OutboundMessenger(session)


class TestSend:
    def test_sends_to_canonical_identifier(self, session, transport, messenger):
        session.apply(Connected())

        receipt = messenger.send(TEST_PHONE, TEST_TEXT)

        assert receipt == "RECEIPT1"
        assert transport.sent == [("628123456@s.whatsapp.net", TEST_TEXT)]

    def test_not_connected_checked_first(self, transport, messenger):
        # Even an invalid phone reports NotConnected while disconnected
        with pytest.raises(NotConnected):
            messenger.send("", TEST_TEXT)
        assert transport.sent == []

    def test_invalid_phone(self, session, transport, messenger):
        session.apply(Connected())
        with pytest.raises(InvalidPhoneNumber):
            messenger.send("+ -", TEST_TEXT)
        assert "send_message" not in transport.calls

    def test_transport_failure_becomes_send_failed(self, session, transport, messenger):
        session.apply(Connected())
        transport.fail["send_message"] = TransportError("503")

        with pytest.raises(SendFailed) as exc_info:
            messenger.send(TEST_PHONE, TEST_TEXT)
        assert isinstance(exc_info.value.__cause__, TransportError)


class TestNoPiiLeakage:
    def test_success_logs_hash_and_length_only(self, session, messenger):
        session.apply(Connected())
        recorder = LogRecorder()

        with patch("wabridge.whatsapp.messenger.logger", recorder):
            messenger.send(TEST_PHONE, TEST_TEXT)

        content = recorder.get_all_logged_content()
        assert "628123456" not in content
        assert TEST_TEXT not in content
        assert "message sent" in recorder.messages("info")

    def test_failure_logs_no_pii(self, session, transport, messenger):
        session.apply(Connected())
        transport.fail["send_message"] = TransportError(TEST_TEXT)
        recorder = LogRecorder()

        with patch("wabridge.whatsapp.messenger.logger", recorder):
            with pytest.raises(SendFailed):
                messenger.send(TEST_PHONE, TEST_TEXT)

        content = recorder.get_all_logged_content()
        assert TEST_TEXT not in content
        assert "628123456" not in content


class _BlockingTransport(FakeTransport):
    """send_message blocks until ``release`` is set."""

    def __init__(self):
        super().__init__(connect_emits=None)
        self.send_started = threading.Event()
        self.release = threading.Event()

    def send_message(self, jid: str, text: str) -> str:
        self.send_started.set()
        self.release.wait(timeout=5)
        return super().send_message(jid, text)


class TestLogoutExcludesInFlightSend:
    def test_logout_waits_for_send(self):
        transport = _BlockingTransport()
        session = ConnectionLifecycleManager(transport)
        messenger = OutboundMessenger(session)
        session.apply(Connected())
        results: list[str] = []

        sender = threading.Thread(
            target=lambda: results.append(messenger.send(TEST_PHONE, TEST_TEXT))
        )
        sender.start()
        assert transport.send_started.wait(timeout=5)

        logout = threading.Thread(target=session.logout)
        logout.start()
        logout.join(timeout=0.2)

        # Logout is blocked on the session lock while the send is in flight
        assert logout.is_alive()
        assert "disconnect" not in transport.calls

        transport.release.set()
        sender.join(timeout=5)
        logout.join(timeout=5)

        assert results == ["RECEIPT1"]
        assert transport.calls.index("send_message") < transport.calls.index("disconnect")
        assert session.is_connected() is False

        with pytest.raises(NotConnected):
            messenger.send(TEST_PHONE, TEST_TEXT)
        assert len(transport.sent) == 1
