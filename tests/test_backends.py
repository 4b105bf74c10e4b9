"""Tests for n8n and Flowise backend clients."""

import uuid
from unittest.mock import MagicMock, patch

import pytest
import requests

from wabridge.domain.models import UserContext
from wabridge.errors import BackendError
from wabridge.routing.backends import FlowiseBackend, N8NBackend, default_timeout

USER_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
USER = UserContext(user_id=USER_ID, name="Dummy", phone="628123456", email="dummy@email.com")


def _response(status=200, body=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = body if body is not None else {}
    if status >= 400:
        error = requests.HTTPError(f"{status} error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


@pytest.fixture
def n8n_env(monkeypatch):
    monkeypatch.setenv("N8N_WEBHOOK_URL", "http://n8n.local/webhook/wa")
    monkeypatch.setenv("N8N_WEBHOOK_SECRET", "n8n-secret")


@pytest.fixture
def flowise_env(monkeypatch):
    monkeypatch.setenv("FLOWISE_BASE_URL", "http://flowise.local/")
    monkeypatch.setenv("FLOWISE_CHATFLOW_ID", "flow-1")
    monkeypatch.setenv("FLOWISE_API_KEY", "fw-key")


class TestDefaultTimeout:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("WORKFLOW_TIMEOUT_SECONDS", raising=False)
        assert default_timeout() == 30.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_TIMEOUT_SECONDS", "5")
        assert default_timeout() == 5.0

    def test_invalid_falls_back(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_TIMEOUT_SECONDS", "soon")
        assert default_timeout() == 30.0


class TestN8NBackend:
    def test_posts_request_payload(self, n8n_env):
        with patch("wabridge.routing.backends.requests.post", return_value=_response()) as mock_post:
            N8NBackend().send_message_to_workflow(USER, "hello", message_id="MSG1", timeout=7)

        args, kwargs = mock_post.call_args
        assert args[0] == "http://n8n.local/webhook/wa"
        assert kwargs["timeout"] == 7
        assert kwargs["headers"]["X-Webhook-Secret"] == "n8n-secret"
        assert kwargs["headers"]["Content-Type"] == "application/json"

        body = kwargs["json"]
        assert body["message"] == "hello"
        assert body["message_id"] == "MSG1"
        assert body["user_context"] == {
            "user_id": str(USER_ID),
            "name": "Dummy",
            "phone": "628123456",
            "email": "dummy@email.com",
        }
        assert body["timestamp"].endswith("Z")

    def test_generates_message_id_when_missing(self, n8n_env):
        with patch("wabridge.routing.backends.requests.post", return_value=_response()) as mock_post:
            N8NBackend().send_message_to_workflow(USER, "hello")

        message_id = mock_post.call_args.kwargs["json"]["message_id"]
        assert uuid.UUID(message_id)

    def test_missing_url(self, monkeypatch):
        monkeypatch.delenv("N8N_WEBHOOK_URL", raising=False)
        with pytest.raises(BackendError, match="N8N_WEBHOOK_URL"):
            N8NBackend().send_message_to_workflow(USER, "hello")

    def test_non_2xx_raises(self, n8n_env):
        with patch("wabridge.routing.backends.requests.post", return_value=_response(500)):
            with pytest.raises(BackendError):
                N8NBackend().send_message_to_workflow(USER, "hello")

    def test_timeout_raises(self, n8n_env):
        with patch(
            "wabridge.routing.backends.requests.post",
            side_effect=requests.Timeout("slow"),
        ):
            with pytest.raises(BackendError, match="Timeout"):
                N8NBackend().send_message_to_workflow(USER, "hello")


class TestFlowiseBackend:
    def test_posts_prediction(self, flowise_env):
        response = _response(body={"text": "ok", "chatId": "chat-1"})
        with patch("wabridge.routing.backends.requests.post", return_value=response) as mock_post:
            FlowiseBackend().send_message_to_workflow(USER, "hello", message_id="MSG1")

        args, kwargs = mock_post.call_args
        assert args[0] == "http://flowise.local/api/v1/prediction/flow-1"
        assert kwargs["headers"]["Authorization"] == "Bearer fw-key"

        body = kwargs["json"]
        assert body["question"] == "hello"
        assert body["overrideConfig"]["sessionId"] == "628123456"
        assert body["overrideConfig"]["vars"]["message_id"] == "MSG1"
        assert body["overrideConfig"]["vars"]["user_id"] == str(USER_ID)

    def test_no_api_key_no_auth_header(self, flowise_env, monkeypatch):
        monkeypatch.delenv("FLOWISE_API_KEY")
        with patch("wabridge.routing.backends.requests.post", return_value=_response()) as mock_post:
            FlowiseBackend().send_message_to_workflow(USER, "hello")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    def test_missing_config(self, monkeypatch):
        monkeypatch.delenv("FLOWISE_BASE_URL", raising=False)
        monkeypatch.delenv("FLOWISE_CHATFLOW_ID", raising=False)
        with pytest.raises(BackendError, match="FLOWISE_BASE_URL"):
            FlowiseBackend().send_message_to_workflow(USER, "hello")

    def test_non_json_response_accepted(self, flowise_env):
        response = _response()
        response.json.side_effect = ValueError("not json")
        with patch("wabridge.routing.backends.requests.post", return_value=response):
            FlowiseBackend().send_message_to_workflow(USER, "hello")

    def test_http_error_raises(self, flowise_env):
        with patch("wabridge.routing.backends.requests.post", return_value=_response(401)):
            with pytest.raises(BackendError, match="flowise"):
                FlowiseBackend().send_message_to_workflow(USER, "hello")
