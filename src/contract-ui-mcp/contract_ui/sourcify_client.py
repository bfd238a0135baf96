from typing import Any, Dict, Optional

import httpx


class SourcifyClient:
    """Client for the Sourcify v2 verified-contract lookup."""

    def __init__(self, server_url: str, client: httpx.AsyncClient) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = client

    def contract_url(self, chain_id: int, address: str) -> str:
        return f"{self.server_url}/v2/contract/{chain_id}/{address}"

    async def get_contract(self, chain_id: int, address: str) -> Optional[Dict[str, Any]]:
        """Return the contract record, or None when Sourcify has no match."""
        response = await self.client.get(self.contract_url(chain_id, address), params={"fields": "abi,metadata"})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise ValueError("Failed to parse response from Sourcify.") from exc
        if not isinstance(payload, dict):
            raise ValueError("Unexpected Sourcify response (non-object).")
        return payload
