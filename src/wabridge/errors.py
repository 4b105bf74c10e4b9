"""Error taxonomy for the WhatsApp bridge.

Propagation rules:
- ConfigFetchError never leaves the router; it triggers n8n routing.
- BackendDispatchError and SendFailed go one level up to the dispatcher or
  the HTTP layer, which answers with a single best-effort notice.
- RemoteLogoutError and DeviceDeleteError are only logged by logout().
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""

    pass


class ConfigFetchError(BridgeError):
    """Raised when the active workflow configuration cannot be read."""

    pass


class InvalidPhoneNumber(BridgeError):
    """Raised when a phone number is empty after stripping separators."""

    pass


class NotConnected(BridgeError):
    """Raised when an operation needs a connected session."""

    def __init__(self, message: str = "WhatsApp client not connected") -> None:
        super().__init__(message)


class QRNotAvailable(BridgeError):
    """Raised when no QR code is pending."""

    def __init__(self, message: str = "QR code not available") -> None:
        super().__init__(message)


class TransportError(BridgeError):
    """Raised by the transport collaborator on bootstrap/network failures."""

    pass


class SendFailed(BridgeError):
    """Raised when the transport rejects an outbound message."""

    pass


class BackendError(BridgeError):
    """Raised by a workflow backend client (config, network, non-2xx)."""

    pass


class BackendDispatchError(BridgeError):
    """Raised by the router when the selected backend fails.

    Attributes:
        workflow_type: Backend that was invoked ("n8n" or "flowise").
    """

    def __init__(self, workflow_type: str, cause: Exception) -> None:
        super().__init__(f"failed to send message to {workflow_type}: {cause}")
        self.workflow_type = workflow_type
        self.__cause__ = cause


class RemoteLogoutError(BridgeError):
    """Remote deregistration failed during logout (logged only)."""

    pass


class DeviceDeleteError(BridgeError):
    """Device record deletion failed during logout (logged only)."""

    pass
