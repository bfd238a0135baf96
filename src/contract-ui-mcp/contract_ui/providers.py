import logging
from typing import Any, Dict, Optional

import httpx

from .errors import ProviderFetchError
from .etherscan_client import EtherscanClient
from .models import NetworkDescriptor, RawProviderArtifact
from .networks import ETHERSCAN_V2, SOURCIFY
from .sourcify_client import SourcifyClient

logger = logging.getLogger(__name__)


class ProviderAdapter:
    """
    One external source of contract definitions.

    fetch() performs exactly one attempt on its own AsyncClient. Cancelling the
    attempt closes the client, which drops the in-flight connection.
    """

    key = ""
    label = ""
    required_capability: Optional[str] = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    def supports(self, network: NetworkDescriptor) -> bool:
        return network.has_capability(self.required_capability)

    def provenance_url(self, address: str, network: NetworkDescriptor) -> Optional[str]:
        return None

    async def fetch(
        self, address: str, network: NetworkDescriptor, timeout: float
    ) -> RawProviderArtifact:
        logger.debug("Fetching %s on %s from %s.", address, network.id, self.key)
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            try:
                return await self.fetch_with_client(address, network, client)
            except ProviderFetchError:
                raise
            except httpx.TimeoutException as exc:
                raise ProviderFetchError(self.key, f"{self.label} request timed out.", timed_out=True) from exc
            except httpx.HTTPStatusError as exc:
                raise ProviderFetchError(self.key, f"{self.label} returned HTTP {exc.response.status_code}.") from exc
            except (httpx.HTTPError, ValueError) as exc:
                raise ProviderFetchError(self.key, f"{self.label} request failed: {exc}") from exc

    async def fetch_with_client(
        self, address: str, network: NetworkDescriptor, client: httpx.AsyncClient
    ) -> RawProviderArtifact:
        raise NotImplementedError


class EtherscanProvider(ProviderAdapter):
    key = "etherscan"
    label = "Etherscan"
    required_capability = ETHERSCAN_V2

    def __init__(
        self, api_key: Optional[str], base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.transport = transport

    def provenance_url(self, address: str, network: NetworkDescriptor) -> Optional[str]:
        explorer = network.endpoint("explorer_url")
        return f"{explorer}/address/{address}#code" if explorer else None

    async def fetch_with_client(self, address, network, client):
        if not self.api_key:
            raise ProviderFetchError(self.key, "Etherscan API key is not configured (ETHERSCAN_API_KEY).")
        if network.chain_id is None:
            raise ProviderFetchError(self.key, f"Network '{network.id}' has no chain id.")

        etherscan = EtherscanClient(
            self.api_key,
            network.endpoint("explorer_api") or self.base_url,
            str(network.chain_id),
            client,
        )
        payload = await etherscan.get_contract_source(address)
        if etherscan.is_rate_limit_payload(payload):
            raise ProviderFetchError(self.key, "Etherscan rate limit reached.")

        result = payload.get("result")
        if str(payload.get("status")) != "1":
            message = result if isinstance(result, str) and result else payload.get("message")
            raise ProviderFetchError(self.key, self._explain(str(message or "unknown error"), network))

        entry = result[0] if isinstance(result, list) and result else None
        if not isinstance(entry, dict):
            raise ProviderFetchError(self.key, "Unexpected Etherscan response (missing result entry).")

        abi = entry.get("ABI")
        if not isinstance(abi, str) or not abi.strip() or "not verified" in abi.lower():
            raise ProviderFetchError(self.key, "Contract source code not verified on Etherscan.")

        hints: Dict[str, Any] = {}
        if str(entry.get("Proxy") or "0") == "1":
            hints["proxy"] = True
        implementation = (entry.get("Implementation") or "").strip()
        if implementation:
            hints["implementation"] = implementation

        return RawProviderArtifact(
            provider=self.key,
            url=self.provenance_url(address, network),
            payload=abi,
            contract_name=(entry.get("ContractName") or "").strip() or None,
            hints=hints,
        )

    def _explain(self, message: str, network: NetworkDescriptor) -> str:
        lowered = message.lower()
        if "invalid api key" in lowered or "missing/invalid api key" in lowered:
            return "Invalid Etherscan API key."
        if "not verified" in lowered:
            return "Contract source code not verified on Etherscan."
        if "chain" in lowered and ("not supported" in lowered or "invalid" in lowered):
            return f"Etherscan V2 does not support chain id {network.chain_id}."
        return f"Etherscan API error: {message}"


class SourcifyProvider(ProviderAdapter):
    key = "sourcify"
    label = "Sourcify"
    required_capability = SOURCIFY

    def __init__(
        self, server_url: str, repo_url: str, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.server_url = server_url
        self.repo_url = repo_url.rstrip("/")
        self.transport = transport

    def provenance_url(self, address: str, network: NetworkDescriptor) -> Optional[str]:
        return f"{self.repo_url}/{network.chain_id}/{address}"

    async def fetch_with_client(self, address, network, client):
        if network.chain_id is None:
            raise ProviderFetchError(self.key, f"Network '{network.id}' has no chain id.")

        server = network.endpoint("sourcify_server") or self.server_url
        record = await SourcifyClient(server, client).get_contract(network.chain_id, address)
        if record is None:
            raise ProviderFetchError(self.key, "Contract not verified on Sourcify.")

        abi = record.get("abi")
        if not isinstance(abi, list) or not abi:
            raise ProviderFetchError(self.key, "Sourcify returned no ABI for this contract.")

        hints: Dict[str, Any] = {}
        if record.get("match"):
            hints["match"] = record.get("match")

        return RawProviderArtifact(
            provider=self.key,
            url=self.provenance_url(address, network),
            payload=record,
            contract_name=_compilation_target_name(record.get("metadata")),
            hints=hints,
        )


def _compilation_target_name(metadata: Any) -> Optional[str]:
    if not isinstance(metadata, dict):
        return None
    settings = metadata.get("settings")
    target = settings.get("compilationTarget") if isinstance(settings, dict) else None
    if isinstance(target, dict) and target:
        name = next(iter(target.values()))
        return str(name) if name else None
    name = metadata.get("contractName")
    return str(name) if name else None
