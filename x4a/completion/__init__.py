"""Chat-completion plumbing: prompts, upstream client, normalization"""
from .client import (
    CompletionClient,
    NormalizedResponse,
    FALLBACK_RESULT,
    classify_upstream_error,
    normalize_completion,
)
from .prompts import (
    build_proxy_messages,
    build_agent_messages,
    PROXY_TEMPERATURE,
    PROXY_MAX_TOKENS,
)

__all__ = [
    "CompletionClient",
    "NormalizedResponse",
    "FALLBACK_RESULT",
    "classify_upstream_error",
    "normalize_completion",
    "build_proxy_messages",
    "build_agent_messages",
    "PROXY_TEMPERATURE",
    "PROXY_MAX_TOKENS",
]
