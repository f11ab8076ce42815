"""
Solana JSON-RPC Connector

Read-only queries against a Solana RPC node: account balance and recent
signatures for an address. Used to decorate escrow wallet records with
chain data.
"""
import asyncio
import itertools
from typing import Any, Dict, List, Optional

import httpx

from app.config import get_settings
from app.utils.logger import log

LAMPORTS_PER_SOL = 1_000_000_000


class SolanaRPCError(Exception):
    """RPC node returned an error object or an unusable response"""


class SolanaRPCConnector:
    """
    Minimal async JSON-RPC client for a Solana node
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.rpc_url = rpc_url or settings.solana_rpc_url
        self.timeout = timeout or settings.solana_rpc_timeout_seconds
        self.transport = transport
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            try:
                body = response.json()
            except ValueError as e:
                raise SolanaRPCError(f"{method} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise SolanaRPCError(f"{method} returned {type(body).__name__}, expected an object")
        if "error" in body:
            error = body["error"]
            raise SolanaRPCError(f"{method} failed: {error.get('message', error)}")
        return body.get("result")

    async def get_balance(self, address: str) -> float:
        """Balance in SOL"""
        result = await self._call("getBalance", [address, {"commitment": "confirmed"}])
        lamports = (result or {}).get("value", 0)
        return lamports / LAMPORTS_PER_SOL

    async def get_signatures_for_address(self, address: str, limit: int = 50) -> List[Dict]:
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": "confirmed"}],
        )
        return result or []

    async def get_transaction(self, signature: str) -> Optional[Dict]:
        return await self._call(
            "getTransaction",
            [signature, {"commitment": "confirmed", "maxSupportedTransactionVersion": 0}],
        )

    async def get_recent_transactions(self, address: str, limit: int = 20) -> List[Dict]:
        """
        Recent transactions with the fee payer's balance delta in SOL.
        """
        signatures = await self.get_signatures_for_address(address, limit=limit)

        async def _describe(sig: Dict) -> Dict:
            amount = 0.0
            try:
                tx = await self.get_transaction(sig.get("signature"))
                meta = (tx or {}).get("meta") or {}
                pre, post = meta.get("preBalances") or [], meta.get("postBalances") or []
                if pre and post:
                    amount = (pre[0] - post[0]) / LAMPORTS_PER_SOL
            except (httpx.HTTPError, SolanaRPCError) as e:
                log.warning(f"Could not load transaction {sig.get('signature')}: {e}")
            return {
                "signature": sig.get("signature"),
                "block_time": sig.get("blockTime"),
                "amount": amount,
                "status": "failed" if sig.get("err") else "success",
            }

        return list(await asyncio.gather(*(_describe(s) for s in signatures)))
