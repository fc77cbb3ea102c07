"""Read-only Solana ledger client used by the SDK"""
import logging
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..config import SOLANA_RPC_URL

logger = logging.getLogger(__name__)


class LedgerClient:
    """Queries transaction status and balances over Solana JSON-RPC"""

    def __init__(self, rpc_url: str = SOLANA_RPC_URL):
        """
        Initialize the client.

        Args:
            rpc_url: Solana RPC URL
        """
        self.rpc_url = rpc_url
        self.client: Optional[AsyncClient] = None

    async def connect(self):
        """Open the RPC connection"""
        if self.client is None:
            self.client = AsyncClient(self.rpc_url)
            logger.info(f"Connected to {self.rpc_url}")

    async def disconnect(self):
        """Close the RPC connection"""
        if self.client:
            await self.client.close()
            self.client = None
            logger.info("Disconnected from Solana")

    async def __aenter__(self) -> "LedgerClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.disconnect()

    async def _rpc(self) -> AsyncClient:
        if self.client is None:
            await self.connect()
        return self.client

    async def get_signature_status(self, signature: str) -> Optional[dict]:
        """
        Look up the status of a transaction.

        Returns None if the cluster does not know the signature.
        Raises ValueError for a malformed signature string.
        """
        sig = Signature.from_string(signature)
        client = await self._rpc()
        resp = await client.get_signature_statuses([sig], search_transaction_history=True)
        status = resp.value[0] if resp.value else None
        if status is None:
            return None

        confirmation = status.confirmation_status
        return {
            "signature": signature,
            "slot": status.slot,
            "confirmations": status.confirmations,
            "err": str(status.err) if status.err is not None else None,
            "confirmation_status": str(confirmation).split(".")[-1].lower() if confirmation is not None else None,
        }

    async def get_balance(self, address: str) -> int:
        """Balance of `address` in lamports."""
        pubkey = Pubkey.from_string(address)
        client = await self._rpc()
        resp = await client.get_balance(pubkey)
        return resp.value
