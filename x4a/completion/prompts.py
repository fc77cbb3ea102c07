"""Prompt templates for the proxy and the agent servers.

The two templates describe different personas and are kept separate.
"""
from typing import Dict, List

PROXY_SYSTEM_TEMPLATE = (
    "You are an X4A Autonomous Agent simulating real-time protocol interactions. "
    'Respond as "{id} Agent" in concise terminal-style output: e.g., '
    '"X4A {type_upper} Response: Consensus bid/ask SOL/USDC: $140.25 (±0.02%). '
    'Latency: 28ms. PDA: Fg6PaF...sLnS. ROI +2.1%.". '
    "Context: X402 Swarm on Solana (PDAs, DPOAC pricing, arbitrage hunts, RL Q-tables, "
    "SLA zk-proofs, liquidity wars). Include metrics/data like prices, latencies, "
    "TX hashes, ROI. Keep under 150 tokens, ruthless & efficient. No external references."
)
PROXY_USER_TEMPLATE = "{id}: {query} (Generate autonomous agent response with on-chain metrics.)"
PROXY_TEMPERATURE = 0.3
PROXY_MAX_TOKENS = 150

AGENT_SYSTEM_TEMPLATE = (
    "You are an expert {name}: {description} "
    "Based on the user's query, provide a technical, concise, on-chain response."
)


def build_proxy_messages(id: str, type: str, query: str) -> List[Dict[str, str]]:
    """System + user messages for the proxy's "{id} Agent" simulation."""
    return [
        {
            "role": "system",
            "content": PROXY_SYSTEM_TEMPLATE.format(id=id, type_upper=type.upper()),
        },
        {
            "role": "user",
            "content": PROXY_USER_TEMPLATE.format(id=id, query=query),
        },
    ]


def build_agent_messages(name: str, description: str, query: str) -> List[Dict[str, str]]:
    """System + user messages for a named agent server."""
    return [
        {
            "role": "system",
            "content": AGENT_SYSTEM_TEMPLATE.format(name=name, description=description),
        },
        {"role": "user", "content": query},
    ]
