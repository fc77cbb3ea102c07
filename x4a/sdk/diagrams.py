"""Mermaid diagram rendering through a Kroki-compatible HTTP service"""
import logging
from typing import Optional

import httpx

from ..config import MERMAID_RENDER_URL
from ..errors import ApiError

logger = logging.getLogger(__name__)


class MermaidRenderer:
    """Renders Mermaid source (e.g. the swarm animation timeline) to SVG."""

    def __init__(
        self,
        base_url: str = MERMAID_RENDER_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def render(self, source: str, output_format: str = "svg") -> str:
        """POST the diagram source and return the rendered document as text."""
        url = f"{self.base_url}/mermaid/{output_format}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, content=source.encode(), headers={"Content-Type": "text/plain"})
        if not response.is_success:
            raise ApiError(response.status_code, response.text)
        logger.debug(f"Rendered {len(source)} chars of mermaid to {len(response.text)} chars of {output_format}")
        return response.text
