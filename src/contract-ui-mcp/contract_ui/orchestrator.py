import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_PROVIDER_TIMEOUT, ServiceConfigLookup
from .errors import AllProvidersExhaustedError, ProviderFetchError
from .models import (
    ContractArtifactSource,
    NetworkDescriptor,
    ProviderFailure,
    RawProviderArtifact,
    Resolution,
)
from .providers import ProviderAdapter

logger = logging.getLogger(__name__)


class ProviderOrchestrator:
    """
    Resolves one address on one network to a raw contract artifact.
    - Candidate order: forced provider, user default, app default, built-in order.
    - Candidates run one at a time, each bounded by the same timeout.
    - A timed-out attempt is cancelled and awaited before the next one starts.
    """

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        lookup: Optional[ServiceConfigLookup] = None,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive.")
        self._adapters: Dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            if adapter.key in self._adapters:
                raise ValueError(f"Duplicate provider key '{adapter.key}'.")
            self._adapters[adapter.key] = adapter
        self._lookup = lookup or ServiceConfigLookup()
        self.timeout = timeout

    @property
    def provider_keys(self) -> List[str]:
        return list(self._adapters)

    def build_candidates(
        self, source: ContractArtifactSource, network: NetworkDescriptor
    ) -> List[ProviderAdapter]:
        forced = (source.forced_provider or "").strip().lower()
        if forced:
            adapter = self._adapters.get(forced)
            if adapter is None:
                available = ", ".join(self._adapters) or "none"
                raise ProviderFetchError(forced, f"Unknown provider '{forced}'. Available: {available}.")
            return [adapter]

        ordered = list(self._adapters.values())
        preferred = self._configured_default(network)
        if preferred:
            ordered = [self._adapters[preferred]] + [a for a in ordered if a.key != preferred]
        return ordered

    def _configured_default(self, network: NetworkDescriptor) -> Optional[str]:
        tiers = (
            ("user", self._lookup.user_default_provider(network.id)),
            ("application", self._lookup.app_default_provider()),
        )
        for tier, key in tiers:
            if not key:
                continue
            if key in self._adapters:
                return key
            logger.warning("Ignoring unknown %s default provider '%s' for network %s.", tier, key, network.id)
        return None

    async def resolve(self, source: ContractArtifactSource, network: NetworkDescriptor) -> Resolution:
        candidates = self.build_candidates(source, network)
        forced = bool((source.forced_provider or "").strip())
        failures: List[ProviderFailure] = []

        for adapter in candidates:
            if not adapter.supports(network):
                if forced:
                    raise ProviderFetchError(
                        adapter.key, f"Network '{network.id}' does not support {adapter.label or adapter.key}."
                    )
                logger.debug("Skipping provider %s: network %s lacks %s.", adapter.key, network.id, adapter.required_capability)
                continue

            try:
                artifact = await self._attempt(adapter, source.address, network)
            except ProviderFetchError as exc:
                if forced:
                    raise
                logger.info("Provider %s failed for %s: %s", adapter.key, source.address, exc.reason)
                failures.append(ProviderFailure(adapter.key, exc.reason, exc.timed_out))
                continue

            logger.info("Resolved %s on %s via %s.", source.address, network.id, adapter.key)
            return Resolution(artifact=artifact, failures=tuple(failures))

        raise AllProvidersExhaustedError(failures, address=source.address)

    async def _attempt(
        self, adapter: ProviderAdapter, address: str, network: NetworkDescriptor
    ) -> RawProviderArtifact:
        try:
            return await asyncio.wait_for(adapter.fetch(address, network, self.timeout), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderFetchError(
                adapter.key, f"Timed out after {self.timeout:g}s.", timed_out=True
            ) from exc
        except ProviderFetchError:
            raise
        except Exception as exc:
            raise ProviderFetchError(adapter.key, f"Unexpected error: {exc}") from exc
