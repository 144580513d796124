"""
Napcat channel error types.
"""

from typing import Any, Optional


class NapcatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class TransportError(NapcatError):
    """Socket not open, or the send itself failed. Eligible for HTTP fallback."""

    def __init__(self, message: str, code: str = "transport_error"):
        super().__init__(code, message)


class ConnectionStoppedError(TransportError):
    """Pending request rejected because the connection was stopped."""

    def __init__(self, message: str = "WebSocket stopped"):
        super().__init__(message, code="stopped")


class ProtocolTimeoutError(NapcatError):
    def __init__(self, action: str, timeout: float):
        super().__init__("timeout", f"OneBot request timeout: {action}", {"timeout": timeout})
        self.action = action


class RemoteActionFailure(NapcatError):
    def __init__(self, action: str, retcode: int, details: Optional[dict[str, Any]] = None):
        super().__init__("action_failed", f"Napcat {action} failed (retcode {retcode})", details)
        self.action = action
        self.retcode = retcode


class HttpTransportError(NapcatError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__("http_error", message)
        self.status_code = status_code


class DecodeError(NapcatError):
    def __init__(self, message: str):
        super().__init__("decode_error", message)


class ConfigurationError(NapcatError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("config_error", message, details)


class InvalidTargetError(NapcatError):
    def __init__(self, target: str):
        super().__init__("invalid_target", f"Invalid QQ target: {target}")
        self.target = target
