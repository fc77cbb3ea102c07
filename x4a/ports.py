"""Deterministic port derivation for agent servers.

Agent servers bind to, and the SDK dials, the same port for a given agent id:

    port = base_port + int(agent_id[-4:]) % 1000

Both sides import this module so the formula exists exactly once.
"""
from .config import AGENT_BASE_PORT
from .errors import AgentPortError

PORT_SUFFIX_LENGTH = 4
PORT_SPREAD = 1000


def derive_agent_port(agent_id: str, base_port: int = AGENT_BASE_PORT) -> int:
    """
    Derive the listening port of an agent server from its id.

    Args:
        agent_id: Agent identifier, must end in four ASCII digits (e.g. "RL-Agent-0007")
        base_port: Port of the agent with offset 0

    Returns:
        base_port + (last four digits mod 1000)

    Raises:
        AgentPortError: if the id does not end in four digits. No fallback
            port is chosen.
    """
    suffix = agent_id[-PORT_SUFFIX_LENGTH:]
    if len(suffix) < PORT_SUFFIX_LENGTH or not (suffix.isascii() and suffix.isdigit()):
        raise AgentPortError(
            f"Agent id {agent_id!r} must end in {PORT_SUFFIX_LENGTH} digits "
            f"to derive a port (got {suffix!r})"
        )
    return base_port + int(suffix) % PORT_SPREAD
