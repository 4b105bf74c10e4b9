"""Shared pytest fixtures for WA Bridge tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_whatsapp_service():
    """Reset the process-wide WhatsApp service between tests.

    The service is a module-level singleton; a test that injects a fake
    transport must not leak it into the next test.
    """
    from wabridge.whatsapp.service import set_service

    set_service(None)
    yield
    set_service(None)


@pytest.fixture
def placeholder_identity(monkeypatch):
    monkeypatch.setenv("IDENTITY_MODE", "placeholder")
