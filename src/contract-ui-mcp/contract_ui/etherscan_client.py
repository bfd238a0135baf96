from typing import Any, Dict

import httpx

_RATE_LIMIT_MARKERS = ("rate limit", "max calls per sec", "too many requests")


class EtherscanClient:
    """Etherscan V2 contract endpoints for one chain. One GET per call, no retry."""

    def __init__(self, api_key: str, base_url: str, chain_id: str, client: httpx.AsyncClient) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chain_id = str(chain_id)
        self.client = client

    async def get_contract_source(self, address: str) -> Dict[str, Any]:
        """getsourcecode: ABI text, contract name and the explorer's proxy flags."""
        return await self._contract_action("getsourcecode", address)

    @staticmethod
    def is_rate_limit_payload(payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False
        texts = [payload.get("message"), payload.get("result")]
        error = payload.get("error")
        if isinstance(error, dict):
            texts.extend((error.get("message"), error.get("data")))
        haystack = " ".join(text for text in texts if isinstance(text, str)).lower()
        return any(marker in haystack for marker in _RATE_LIMIT_MARKERS)

    async def _contract_action(self, action: str, address: str) -> Dict[str, Any]:
        params = {
            "chainid": self.chain_id,
            "module": "contract",
            "action": action,
            "address": address,
            "apikey": self.api_key,
        }
        response = await self.client.get(self.base_url, params=params, headers={"X-API-Key": self.api_key})
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise ValueError("Failed to parse response from Etherscan.") from exc
        if not isinstance(payload, dict):
            raise ValueError("Unexpected Etherscan response (non-object).")
        return payload
