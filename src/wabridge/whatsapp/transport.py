"""WhatsApp transport backed by an Evolution API instance.

Evolution API owns the multi-device socket; this module drives the instance
over HTTP and turns its webhook events into InboundEvent values.

Security: NEVER log JIDs or text. Only log hashes and lengths.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import requests

from wabridge.errors import TransportError
from wabridge.observability.logging import get_logger
from wabridge.observability.redaction import hash_identifier, safe_log_context

from .evolution_adapter import normalize_event
from .models import Connected, DeviceRecord, InboundEvent, QRIssued

logger = get_logger(__name__)

# Timeout for HTTP requests (seconds)
HTTP_TIMEOUT = 10

# Retry config for sends
MAX_RETRIES = 1
RETRY_DELAY = 0.2

EventHandler = Callable[[InboundEvent], None]


class Transport(Protocol):
    """Operations the session layer needs from the messaging transport."""

    def add_event_handler(self, handler: EventHandler) -> None: ...

    def feed(self, payload: dict[str, Any]) -> InboundEvent | None: ...

    def bootstrap(self) -> DeviceRecord: ...

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def is_registered(self) -> bool: ...

    def logout(self) -> None: ...

    def delete_device(self, device: DeviceRecord) -> None: ...

    def send_message(self, jid: str, text: str) -> str: ...


@dataclass(frozen=True)
class EvolutionConfig:
    """Evolution API connection settings."""

    base_url: str
    instance: str
    api_key: str
    webhook_url: str = ""

    @classmethod
    def from_env(cls) -> "EvolutionConfig":
        """Load config from environment.

        Required env vars:
        - EVOLUTION_BASE_URL: Base URL (e.g., http://localhost:8080)
        - EVOLUTION_INSTANCE: Instance name
        - EVOLUTION_API_KEY: API token

        Optional:
        - EVOLUTION_WEBHOOK_URL: Webhook registered when the instance is created
        """
        base_url = os.environ.get("EVOLUTION_BASE_URL", "")
        instance = os.environ.get("EVOLUTION_INSTANCE", "")
        api_key = os.environ.get("EVOLUTION_API_KEY", "")

        if not base_url or not instance or not api_key:
            raise TransportError(
                "Missing Evolution config: EVOLUTION_BASE_URL, EVOLUTION_INSTANCE, EVOLUTION_API_KEY"
            )

        return cls(
            base_url=base_url.rstrip("/"),
            instance=instance,
            api_key=api_key,
            webhook_url=os.environ.get("EVOLUTION_WEBHOOK_URL", ""),
        )


def _instance_fields(item: dict[str, Any]) -> tuple[str, str]:
    """Return (name, owner_jid) from a fetchInstances entry (v1 or v2 shape)."""
    if isinstance(item.get("instance"), dict):
        inner = item["instance"]
        return inner.get("instanceName", ""), inner.get("owner") or ""
    return item.get("name", ""), item.get("ownerJid") or ""


class EvolutionTransport:
    """Transport implementation over the Evolution HTTP API."""

    def __init__(
        self,
        config: EvolutionConfig | None = None,
        http: requests.Session | None = None,
    ) -> None:
        self._config = config
        self._http = http or requests.Session()
        self._handlers: list[EventHandler] = []
        self._attached = False

    @property
    def config(self) -> EvolutionConfig:
        if self._config is None:
            self._config = EvolutionConfig.from_env()
        return self._config

    @property
    def attached(self) -> bool:
        return self._attached

    # -- events ---------------------------------------------------------------

    def add_event_handler(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def feed(self, payload: dict[str, Any]) -> InboundEvent | None:
        """Normalize a webhook payload and deliver it to the handlers.

        Returns:
            The delivered event, or None if ignored.

        Raises:
            InvalidPayloadError: If the payload shape is invalid.
        """
        event = normalize_event(payload)
        if event is None:
            return None
        if not self._attached:
            logger.info(
                "transport detached, event dropped",
                extra={"extra_fields": safe_log_context(event=type(event).__name__)},
            )
            return None
        self._emit(event)
        return event

    def _emit(self, event: InboundEvent) -> None:
        for handler in self._handlers:
            handler(event)

    # -- HTTP -----------------------------------------------------------------

    def _do_request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Execute an Evolution API request. Raises requests exceptions."""
        response = self._http.request(
            method,
            f"{self.config.base_url}{path}",
            json=json,
            params=params,
            headers={"apikey": self.config.api_key},
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        """Like _do_request but wraps failures as TransportError."""
        try:
            return self._do_request(method, path, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"evolution {method} {path} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"evolution {method} {path} returned invalid json") from e

    def _fetch_instance(self) -> DeviceRecord | None:
        instance = self.config.instance
        result = self._call(
            "GET", "/instance/fetchInstances", params={"instanceName": instance}
        )
        items = result if isinstance(result, list) else [result]
        for item in items:
            if not isinstance(item, dict):
                continue
            name, owner_jid = _instance_fields(item)
            if name == instance:
                return DeviceRecord(instance_name=name, owner_jid=owner_jid)
        return None

    # -- lifecycle ------------------------------------------------------------

    def bootstrap(self) -> DeviceRecord:
        """Return the instance record, creating the instance if missing."""
        device = self._fetch_instance()
        if device is not None:
            logger.info(
                "evolution instance found",
                extra={"extra_fields": safe_log_context(paired=device.is_paired)},
            )
            return device

        body: dict[str, Any] = {
            "instanceName": self.config.instance,
            "integration": "WHATSAPP-BAILEYS",
            "qrcode": True,
        }
        if self.config.webhook_url:
            body["webhook"] = {
                "url": self.config.webhook_url,
                "byEvents": False,
                "events": [
                    "MESSAGES_UPSERT",
                    "QRCODE_UPDATED",
                    "CONNECTION_UPDATE",
                    "LOGOUT_INSTANCE",
                ],
            }
        self._call("POST", "/instance/create", json=body)
        logger.info("evolution instance created")
        return DeviceRecord(instance_name=self.config.instance)

    def connect(self) -> None:
        """Attach to the instance and request a pairing code if unpaired."""
        result = self._call("GET", f"/instance/connect/{self.config.instance}")
        self._attached = True

        code = result.get("code") if isinstance(result, dict) else None
        if code:
            self._emit(QRIssued(code=code))
            return

        instance = result.get("instance", {}) if isinstance(result, dict) else {}
        if isinstance(instance, dict) and instance.get("state") == "open":
            self._emit(Connected())

    def disconnect(self) -> None:
        """Detach locally. The gateway keeps its socket; events are dropped."""
        self._attached = False

    def is_registered(self) -> bool:
        device = self._fetch_instance()
        return device is not None and device.is_paired

    def logout(self) -> None:
        self._call("DELETE", f"/instance/logout/{self.config.instance}")

    def delete_device(self, device: DeviceRecord) -> None:
        self._call("DELETE", f"/instance/delete/{device.instance_name}")

    # -- messages -------------------------------------------------------------

    def send_message(self, jid: str, text: str) -> str:
        """Send a text message.

        Args:
            jid: Recipient JID. NEVER logged.
            text: Message text. NEVER logged.

        Returns:
            Gateway message id ("" if the gateway returned none).

        Raises:
            TransportError: On network/HTTP errors after retry.
        """
        path = f"/message/sendText/{self.config.instance}"
        payload = {"number": jid, "text": text}

        log_ctx = safe_log_context(to_hash=hash_identifier(jid), text_len=len(text))

        for attempt in range(MAX_RETRIES + 1):
            try:
                result = self._do_request("POST", path, json=payload)
            except requests.RequestException as e:
                # Check if retryable (network error or 5xx)
                status = e.response.status_code if e.response is not None else None
                is_5xx = status is not None and 500 <= status < 600
                is_network = isinstance(e, (requests.ConnectionError, requests.Timeout))

                if attempt < MAX_RETRIES and (is_5xx or is_network):
                    logger.warning(
                        "outbound send failed, retrying",
                        extra={
                            "extra_fields": safe_log_context(
                                **log_ctx, attempt=attempt, error_type=type(e).__name__
                            )
                        },
                    )
                    time.sleep(RETRY_DELAY)
                    continue

                logger.error(
                    "outbound send failed",
                    extra={
                        "extra_fields": safe_log_context(
                            **log_ctx, attempt=attempt, error_type=type(e).__name__
                        )
                    },
                )
                raise TransportError(f"evolution send failed: {type(e).__name__}") from e

            key = result.get("key", {}) if isinstance(result, dict) else {}
            message_id = key.get("id", "") if isinstance(key, dict) else ""
            logger.info(
                "outbound message sent",
                extra={"extra_fields": safe_log_context(**log_ctx, attempt=attempt)},
            )
            return message_id

        raise TransportError("evolution send failed")
