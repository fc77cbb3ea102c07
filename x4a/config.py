"""Configuration for the X4A proxy, agent servers and SDK"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Proxy service
PROXY_PORT = int(os.getenv("PORT", "3000"))
API_HOST = os.getenv("API_HOST", "0.0.0.0")
XAI_BASE_URL = os.getenv("XAI_BASE_URL", "https://api.x.ai/v1")
XAI_MODEL = os.getenv("XAI_MODEL", "grok-4")
PUBLIC_DIR = Path(os.getenv("PUBLIC_DIR", "") or Path(__file__).parent / "public")

# Agent servers
AGENT_BASE_PORT = 4021
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
X402_FACILITATOR_URL = os.getenv("X402_FACILITATOR_URL", "http://localhost:3000/x402")
AGENT_QUERY_PRICE = "$0.001"
AGENT_PAYMENT_NETWORK = "solana"

# Default agent identity (positional CLI arguments override these)
DEFAULT_AGENT_ID = "RL-Agent-0007"
DEFAULT_AGENT_NAME = "CMAA Arbitrage Hunter"
DEFAULT_AGENT_DESCRIPTION = "Cross-Market Arbitrage Agent for Solana DEXs."
DEFAULT_WALLET_ADDRESS = "Fg6PaF...sLnS"  # Placeholder public key

# Timeouts in seconds; no retries are layered on top of these
COMPLETION_TIMEOUT = float(os.getenv("COMPLETION_TIMEOUT", "30"))
X402_TIMEOUT = float(os.getenv("X402_TIMEOUT", "10"))

# SDK collaborators
SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
MERMAID_RENDER_URL = os.getenv("MERMAID_RENDER_URL", "https://kroki.io")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass(frozen=True)
class AgentIdentity:
    """Identity of one agent server. Built once at startup, never mutated."""
    agent_id: str = DEFAULT_AGENT_ID
    name: str = DEFAULT_AGENT_NAME
    description: str = DEFAULT_AGENT_DESCRIPTION
    wallet_address: str = DEFAULT_WALLET_ADDRESS


@dataclass(frozen=True)
class ProxySettings:
    xai_api_key: Optional[str]
    xai_base_url: str
    xai_model: str
    completion_timeout: float
    public_dir: Path


@dataclass(frozen=True)
class AgentSettings:
    openai_api_key: Optional[str]
    openai_base_url: str
    openai_model: str
    completion_timeout: float
    facilitator_url: str
    facilitator_timeout: float


def get_proxy_settings() -> ProxySettings:
    """
    Proxy settings built from the *current* environment.

    The API key is read on every call so a key added to the environment
    after startup is picked up by the next request.
    """
    return ProxySettings(
        xai_api_key=os.getenv("XAI_API_KEY") or None,
        xai_base_url=os.getenv("XAI_BASE_URL") or XAI_BASE_URL,
        xai_model=os.getenv("XAI_MODEL") or XAI_MODEL,
        completion_timeout=float(os.getenv("COMPLETION_TIMEOUT") or COMPLETION_TIMEOUT),
        public_dir=Path(os.getenv("PUBLIC_DIR") or PUBLIC_DIR),
    )


def get_agent_settings() -> AgentSettings:
    """Agent server settings built from the current environment."""
    return AgentSettings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or OPENAI_BASE_URL,
        openai_model=os.getenv("OPENAI_MODEL") or OPENAI_MODEL,
        completion_timeout=float(os.getenv("COMPLETION_TIMEOUT") or COMPLETION_TIMEOUT),
        facilitator_url=os.getenv("X402_FACILITATOR_URL") or X402_FACILITATOR_URL,
        facilitator_timeout=float(os.getenv("X402_TIMEOUT") or X402_TIMEOUT),
    )
