"""Error types shared by the proxy, the agent service and the SDK"""
from typing import Optional


class X4AError(Exception):
    """Base class for all X4A errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequestError(X4AError):
    """A required request field is missing or empty."""


class ConfigurationError(X4AError):
    """A required credential or startup parameter is missing or invalid."""


class AgentPortError(ConfigurationError):
    """The agent id does not end in four digits, so no port can be derived."""


class UpstreamError(X4AError):
    """The completion API answered with a non-success status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        return f"X4A Protocol: {self.status_code} - {self.message}"


class UpstreamAuthError(UpstreamError):
    """Completion API rejected the credential (401/403)."""


class UpstreamNotFoundError(UpstreamError):
    """Completion API endpoint or model not found (404)."""


class UpstreamUnavailableError(X4AError):
    """The completion API could not be reached at all (connect error, timeout)."""


class ApiError(X4AError):
    """
    Raised by the SDK when a service answers with a non-2xx status.

    Carries the HTTP status and the raw response text.
    """

    def __init__(self, status: int, text: Optional[str] = None):
        self.status = status
        self.text = text or ""
        super().__init__(f"API error: {status} - {self.text}")
