"""
Chat-completion client shared by the proxy and the agent servers.

Talks to any OpenAI-compatible `/chat/completions` endpoint (xAI, OpenAI)
via httpx, classifies non-success statuses into the error taxonomy and
normalizes the reply into a `NormalizedResponse`. A single attempt is made
per call; failures propagate to the caller.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..config import COMPLETION_TIMEOUT
from ..errors import (
    ConfigurationError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamNotFoundError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

FALLBACK_RESULT = "X4A Agent: No data available."

AUTH_FAILED_MESSAGE = "Authentication Failed (401/403). Check if XAI_API_KEY is correct and active."
NOT_FOUND_MESSAGE = (
    "API Endpoint Not Found (404). Check the API Status, the endpoint URL, "
    "or the specified model name."
)
GENERIC_FAILURE_MESSAGE = "Simulation failed."
MISSING_KEY_MESSAGE = "Completion API key not configured."


@dataclass
class NormalizedResponse:
    """Completion reply in this system's fixed shape."""
    result: str  # never empty
    model: Optional[str] = None
    choices: Optional[List[Any]] = None


def classify_upstream_error(status_code: int, body: Any = None) -> UpstreamError:
    """
    Map a non-success completion API status to a classified error.

    401/403 and 404 get fixed messages; anything else carries the upstream's
    own `error.message` when it sent one.
    """
    if status_code in (401, 403):
        return UpstreamAuthError(status_code, AUTH_FAILED_MESSAGE)
    if status_code == 404:
        return UpstreamNotFoundError(status_code, NOT_FOUND_MESSAGE)

    message = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
    if not isinstance(message, str) or not message:
        message = GENERIC_FAILURE_MESSAGE
    return UpstreamError(status_code, message)


def normalize_completion(data: Any) -> NormalizedResponse:
    """
    Convert a chat-completion body into a NormalizedResponse.

    Missing or malformed choices never raise; they yield FALLBACK_RESULT.
    """
    if not isinstance(data, dict):
        return NormalizedResponse(result=FALLBACK_RESULT)

    choices = data.get("choices")
    model = data.get("model") if isinstance(data.get("model"), str) else None
    if not isinstance(choices, list):
        return NormalizedResponse(result=FALLBACK_RESULT, model=model)

    content = None
    if choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict):
            content = message.get("content")

    if not isinstance(content, str) or not content:
        content = FALLBACK_RESULT
    return NormalizedResponse(result=content, model=model, choices=choices)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class CompletionClient:
    """
    OpenAI-compatible chat-completion client.

    The API key is checked before any request is built, so a missing key
    never produces network traffic.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        timeout: float = COMPLETION_TIMEOUT,
        missing_key_message: str = MISSING_KEY_MESSAGE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: Bearer token for the completion API (None if unset).
            base_url: API root, e.g. "https://api.x.ai/v1".
            model: Model name sent with every request.
            timeout: Per-request timeout in seconds.
            missing_key_message: Message of the ConfigurationError raised when api_key is unset.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.missing_key_message = missing_key_message
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_api_request(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> tuple[str, dict, dict]:
        """Returns (url, headers, json_body)."""
        body: Dict[str, Any] = {"model": self.model, "messages": messages}
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        return (
            f"{self.base_url}/chat/completions",
            {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            body,
        )

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> NormalizedResponse:
        """
        Send one chat-completion request and normalize the reply.

        Raises:
            ConfigurationError: api_key is not set (raised before any I/O).
            UpstreamError: non-success status (UpstreamAuthError / UpstreamNotFoundError
                for 401/403 and 404).
            UpstreamUnavailableError: the API could not be reached.
        """
        if not self.api_key:
            raise ConfigurationError(self.missing_key_message)

        url, headers, body = self._build_api_request(messages, temperature, max_tokens)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            error = classify_upstream_error(response.status_code, _safe_json(response))
            logger.warning(f"Completion API returned {response.status_code}: {error.message}")
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(response.status_code, "Invalid JSON from completion API.") from e

        return normalize_completion(data)
