"""Tests for the connection lifecycle state machine and admin operations."""

from unittest.mock import patch

import pytest

from wabridge.errors import NotConnected, QRNotAvailable, TransportError
from wabridge.whatsapp.models import (
    Connected,
    ConnectionState,
    DeviceRecord,
    Disconnected,
    LoggedOut,
    MessageReceived,
    PlainText,
    QRIssued,
)
from wabridge.whatsapp.session import ConnectionLifecycleManager

from helpers import FakeTransport, LogRecorder


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(transport):
    manager = ConnectionLifecycleManager(transport)
    transport.add_event_handler(manager.apply)
    return manager


class TestTransitions:
    def test_initial_state(self, session):
        assert session.state is ConnectionState.DISCONNECTED
        assert session.is_connected() is False

    def test_qr_then_connected(self, session):
        assert session.apply(QRIssued(code="QR1")) is ConnectionState.AWAITING_QR
        assert session.get_qr_code() == "QR1"

        assert session.apply(Connected()) is ConnectionState.CONNECTED
        assert session.is_connected() is True
        with pytest.raises(QRNotAvailable):
            session.get_qr_code()

    def test_qr_refresh_replaces_code(self, session):
        session.apply(QRIssued(code="QR1"))
        session.apply(QRIssued(code="QR2"))
        assert session.get_qr_code() == "QR2"

    def test_connected_from_disconnected(self, session):
        assert session.apply(Connected()) is ConnectionState.CONNECTED

    def test_disconnected_from_connected(self, session):
        session.apply(Connected())
        assert session.apply(Disconnected()) is ConnectionState.DISCONNECTED

    def test_disconnected_while_awaiting_qr_clears_qr(self, session):
        session.apply(QRIssued(code="QR1"))
        assert session.apply(Disconnected()) is ConnectionState.DISCONNECTED
        with pytest.raises(QRNotAvailable):
            session.get_qr_code()

    @pytest.mark.parametrize(
        "events",
        [[], [QRIssued(code="QR")], [Connected()]],
    )
    def test_logged_out_from_any_state(self, session, events):
        for event in events:
            session.apply(event)
        assert session.apply(LoggedOut()) is ConnectionState.DISCONNECTED
        assert session.snapshot().has_qr is False

    def test_qr_ignored_while_connected(self, session):
        session.apply(Connected())
        recorder = LogRecorder()
        with patch("wabridge.whatsapp.session.logger", recorder):
            assert session.apply(QRIssued(code="late")) is ConnectionState.CONNECTED
        assert "lifecycle event ignored" in recorder.messages("debug")

    def test_rejects_message_events(self, session):
        event = MessageReceived(sender="1@s.whatsapp.net", payload=PlainText("x"), is_self_originated=False)
        with pytest.raises(TypeError):
            session.apply(event)

    def test_qr_unavailable_initially(self, session):
        with pytest.raises(QRNotAvailable, match="QR code not available"):
            session.get_qr_code()


class TestConnectedTransport:
    def test_raises_when_not_connected(self, session):
        with pytest.raises(NotConnected, match="WhatsApp client not connected"):
            with session.connected_transport():
                pass

    def test_yields_transport_when_connected(self, session, transport):
        session.apply(Connected())
        with session.connected_transport() as t:
            assert t is transport


class TestStart:
    def test_unpaired_start_issues_qr(self, transport, session):
        transport.device = DeviceRecord(instance_name="test-instance")
        session.start()

        assert transport.calls == ["bootstrap", "connect"]
        assert session.state is ConnectionState.AWAITING_QR
        assert session.get_qr_code() == "2@QRDATA"
        assert session.snapshot().has_device is True

    def test_paired_start_connects(self, transport, session):
        transport.connect_emits = "open"
        session.start()
        assert session.is_connected() is True

    def test_bootstrap_failure_propagates(self, transport, session):
        transport.fail["bootstrap"] = TransportError("boom")
        with pytest.raises(TransportError):
            session.start()
        assert "connect" not in transport.calls
        assert session.state is ConnectionState.DISCONNECTED


class TestStop:
    def test_stop_disconnects(self, transport, session):
        session.apply(Connected())
        session.stop()
        assert session.state is ConnectionState.DISCONNECTED
        assert transport.calls == ["disconnect"]

    def test_stop_never_raises(self, transport, session):
        transport.fail["disconnect"] = RuntimeError("boom")
        session.stop()
        assert session.state is ConnectionState.DISCONNECTED

    def test_stop_clears_pending_qr(self, session):
        session.apply(QRIssued(code="ABC"))
        session.stop()

        with pytest.raises(QRNotAvailable):
            session.get_qr_code()
        assert session.snapshot().has_qr is False


class TestLogout:
    def _started(self, transport, session):
        transport.connect_emits = "open"
        session.start()
        transport.calls.clear()

    def test_full_logout(self, transport, session):
        self._started(transport, session)
        session.logout()

        assert transport.calls == ["is_registered", "logout", "disconnect", "delete_device"]
        snapshot = session.snapshot()
        assert snapshot.state is ConnectionState.DISCONNECTED
        assert snapshot.has_qr is False
        assert snapshot.has_device is False

    def test_unregistered_device_skips_remote_logout(self, transport, session):
        self._started(transport, session)
        transport.registered = False
        session.logout()
        assert transport.calls == ["is_registered", "disconnect", "delete_device"]

    def test_remote_logout_failure_continues(self, transport, session):
        self._started(transport, session)
        transport.fail["logout"] = TransportError("server down")
        recorder = LogRecorder()

        with patch("wabridge.whatsapp.session.logger", recorder):
            session.logout()

        assert transport.calls == ["is_registered", "logout", "disconnect", "delete_device"]
        assert session.snapshot().has_device is False
        warnings = [c for c in recorder.calls if c[0] == "warning"]
        assert len(warnings) == 1
        assert warnings[0][2]["extra"]["extra_fields"]["step"] == "remote_logout"
        assert warnings[0][2]["extra"]["extra_fields"]["error_type"] == "RemoteLogoutError"

    def test_every_step_failing_still_completes(self, transport, session):
        self._started(transport, session)
        for name in ("is_registered", "disconnect", "delete_device"):
            transport.fail[name] = RuntimeError(name)
        recorder = LogRecorder()

        with patch("wabridge.whatsapp.session.logger", recorder):
            session.logout()

        assert session.state is ConnectionState.DISCONNECTED
        assert session.snapshot().has_device is False
        assert len(recorder.messages("warning")) == 3
        assert "logout process completed" in recorder.messages("info")

    def test_logout_is_idempotent(self, transport, session):
        self._started(transport, session)
        session.logout()
        transport.calls.clear()

        session.logout()

        # No device record left: only the local disconnect runs
        assert transport.calls == ["disconnect"]
        assert session.state is ConnectionState.DISCONNECTED

    def test_logout_clears_pending_qr(self, transport, session):
        session.start()
        assert session.snapshot().has_qr is True
        session.logout()
        assert session.snapshot().has_qr is False
