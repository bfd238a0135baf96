import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .errors import ContractUIError
from .models import (
    ContractArtifactSource,
    ContractLoadResult,
    NetworkDescriptor,
    ProxyInfo,
)
from .networks import EVM_RPC
from .normalizer import definition_hash, definition_text, schema_from_items, unwrap_interface
from .orchestrator import ProviderOrchestrator
from .proxy import ProxyDetection, ProxyResolver, detect_proxy_from_abi
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)

ReaderFactory = Callable[[NetworkDescriptor], Optional[Any]]


def default_reader_factory(network: NetworkDescriptor) -> Optional[RpcClient]:
    rpc_url = network.endpoint("rpc")
    if not rpc_url or not network.has_capability(EVM_RPC):
        return None
    return RpcClient(rpc_url, timeout=10)


class ContractLoader:
    """
    Loads a contract schema for one address.
    - Inline artifacts skip fetching and proxy detection.
    - Fetched EVM contracts go through proxy detection; a resolved implementation
      is loaded with a separate orchestrator run.
    - Proxy trouble is reported as a warning, never as a failure.
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        reader_factory: ReaderFactory = default_reader_factory,
    ) -> None:
        self.orchestrator = orchestrator
        self.reader_factory = reader_factory

    async def load(self, source: ContractArtifactSource, network: NetworkDescriptor) -> ContractLoadResult:
        if source.inline_artifact is not None:
            return self._load_inline(source, network)

        resolution = await self.orchestrator.resolve(source, network)
        artifact = resolution.artifact
        items = unwrap_interface(artifact.payload)
        schema = schema_from_items(items, network.ecosystem, artifact.contract_name, source.address)
        provenance: Dict[str, Any] = {
            "provider": artifact.provider,
            "fetched_from": artifact.url,
            "contract_name": artifact.contract_name,
            "fetched_at": datetime.now(timezone.utc).isoformat(),
            "verification_status": "verified",
        }
        warnings: List[str] = []
        proxy_info: Optional[ProxyInfo] = None

        if not source.skip_proxy_detection and network.ecosystem == "evm":
            detection = detect_proxy_from_abi(items)
            if not detection.is_proxy and artifact.hints.get("implementation"):
                detection = ProxyDetection(
                    is_proxy=True,
                    proxy_type="unknown",
                    confidence="high",
                    indicators=["Explorer reports an implementation contract"],
                )
            if detection.is_proxy:
                proxy_info = await self._resolve_proxy(source.address, network, detection, artifact.hints)
                implementation = proxy_info.implementation_address
                if not implementation:
                    warnings.append(
                        f"Detected a {detection.proxy_type} proxy but could not resolve its implementation; "
                        "showing the proxy interface."
                    )
                elif implementation.lower() != source.address.lower():
                    schema = await self._load_implementation(
                        source, network, implementation, schema, provenance, warnings
                    )

        return ContractLoadResult(
            schema=schema,
            source="fetched",
            provenance=provenance,
            proxy_info=proxy_info,
            warnings=tuple(warnings),
            failures=resolution.failures,
            original_definition=definition_text(artifact.payload),
            definition_hash=definition_hash(artifact.payload),
        )

    def _load_inline(self, source: ContractArtifactSource, network: NetworkDescriptor) -> ContractLoadResult:
        items = unwrap_interface(source.inline_artifact)
        schema = schema_from_items(items, network.ecosystem, None, source.address)
        return ContractLoadResult(
            schema=schema,
            source="manual",
            provenance={"provider": "manual", "verification_status": "unknown"},
            original_definition=definition_text(source.inline_artifact),
            definition_hash=definition_hash(source.inline_artifact),
        )

    async def _resolve_proxy(
        self,
        address: str,
        network: NetworkDescriptor,
        detection: ProxyDetection,
        hints: Dict[str, Any],
    ) -> ProxyInfo:
        reader = self.reader_factory(network)
        if reader is None:
            logger.info("No RPC endpoint for %s; relying on explorer hints for proxy %s.", network.id, address)
            return ProxyResolver(_NoStorage()).resolve(address, detection, hints)
        try:
            return await asyncio.to_thread(ProxyResolver(reader).resolve, address, detection, hints)
        finally:
            close = getattr(reader, "close", None)
            if callable(close):
                close()

    async def _load_implementation(self, source, network, implementation, proxy_schema, provenance, warnings):
        nested = ContractArtifactSource(address=implementation, forced_provider=source.forced_provider)
        try:
            resolution = await self.orchestrator.resolve(nested, network)
            items = unwrap_interface(resolution.artifact.payload)
            schema = schema_from_items(
                items,
                network.ecosystem,
                resolution.artifact.contract_name or proxy_schema.name,
                source.address,
            )
        except ContractUIError as exc:
            logger.warning("Implementation %s of proxy %s could not be loaded: %s", implementation, source.address, exc)
            warnings.append(f"Proxy implementation {implementation} could not be loaded: {exc}")
            return proxy_schema

        provenance["implementation_provider"] = resolution.artifact.provider
        provenance["implementation_fetched_from"] = resolution.artifact.url
        return schema


class _NoStorage:
    """Reader used when a network has no RPC endpoint; every lookup misses."""

    def get_storage_at(self, address: str, slot: str) -> str:
        raise ValueError("no RPC endpoint configured")

    def get_code(self, address: str) -> str:
        raise ValueError("no RPC endpoint configured")

    def eth_call(self, address: str, data: str) -> str:
        raise ValueError("no RPC endpoint configured")
