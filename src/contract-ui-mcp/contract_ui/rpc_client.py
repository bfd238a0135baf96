import itertools
from typing import Any, Dict, Optional, Sequence

import requests


def _describe_error(error: Any) -> str:
    if not isinstance(error, dict):
        return str(error)
    parts = [f"code {error['code']}"] if error.get("code") is not None else []
    parts.extend(str(error[key]) for key in ("message", "data") if error.get(key))
    return ": ".join(parts) or "unknown error"


class RpcClient:
    """
    EVM node reader used by proxy resolution and view queries.
    Only eth_getStorageAt, eth_getCode and eth_call are needed; each returns the raw hex string.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not (rpc_url or "").strip():
            raise ValueError("RPC URL is not configured.")
        self.rpc_url = rpc_url.strip()
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        response = self.session.post(self.rpc_url, json=body, timeout=self.timeout)
        response.raise_for_status()
        reply = response.json()
        if not isinstance(reply, dict):
            raise ValueError(f"Unexpected reply to {method} (not a JSON object).")
        if reply.get("error"):
            raise ValueError(f"RPC error: {_describe_error(reply['error'])}.")
        if "result" not in reply:
            raise ValueError(f"Unexpected reply to {method} (no result).")
        return reply["result"]

    def get_storage_at(self, address: str, slot: str, tag: str = "latest") -> str:
        return self._hex("eth_getStorageAt", [address, slot, tag])

    def get_code(self, address: str, tag: str = "latest") -> str:
        return self._hex("eth_getCode", [address, tag])

    def eth_call(self, address: str, data: str, tag: str = "latest") -> str:
        return self._hex("eth_call", [{"to": address, "data": data}, tag])

    def close(self) -> None:
        self.session.close()

    def _hex(self, method: str, params: Sequence[Any]) -> str:
        result = self.call(method, params)
        if not isinstance(result, str) or not result.startswith("0x"):
            raise ValueError(f"RPC error: {method} returned {result!r}.")
        return result
