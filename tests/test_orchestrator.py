import asyncio
import json

import httpx
import pytest

from contract_ui.config import ServiceConfigLookup
from contract_ui.errors import AllProvidersExhaustedError, ProviderFetchError
from contract_ui.models import ContractArtifactSource
from contract_ui.orchestrator import ProviderOrchestrator
from contract_ui.providers import SourcifyProvider

from conftest import ERC20_ABI, PROXY_ADDRESS, StubAdapter

SOURCE = ContractArtifactSource(address=PROXY_ADDRESS)


def run(coro):
    return asyncio.run(coro)


def keys(adapters):
    return [adapter.key for adapter in adapters]


def test_falls_through_timeout_and_failure(evm_network):
    events = []
    slow = StubAdapter("slow", "hang", events=events)
    broken = StubAdapter("broken", "fail", events=events)
    good = StubAdapter("good", events=events)
    orchestrator = ProviderOrchestrator([slow, broken, good], timeout=0.05)

    resolution = run(orchestrator.resolve(SOURCE, evm_network))

    assert resolution.artifact.provider == "good"
    assert json.loads(resolution.artifact.payload) == ERC20_ABI
    assert [f.provider for f in resolution.failures] == ["slow", "broken"]
    assert resolution.failures[0].timed_out is True
    assert "Timed out after 0.05s" in resolution.failures[0].reason
    assert resolution.failures[1].timed_out is False
    # the timed-out attempt is fully cancelled before the next provider starts
    assert events == ["slow:start", "slow:cancelled", "broken:start", "good:start"]
    assert slow.cancelled is True


def test_timed_out_http_request_is_aborted_before_next_provider(evm_network):
    events = []

    async def stall(request):
        events.append("sourcify:request")
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            events.append("sourcify:aborted")
            raise
        return httpx.Response(200, json={"abi": ERC20_ABI})

    slow = SourcifyProvider("https://sourcify.dev/server", "https://repo.sourcify.dev", transport=httpx.MockTransport(stall))
    good = StubAdapter("good", events=events)
    orchestrator = ProviderOrchestrator([slow, good], timeout=0.2)

    resolution = run(orchestrator.resolve(SOURCE, evm_network))

    assert resolution.artifact.provider == "good"
    assert [(f.provider, f.timed_out) for f in resolution.failures] == [("sourcify", True)]
    assert events == ["sourcify:request", "sourcify:aborted", "good:start"]


def test_stops_at_first_success(evm_network):
    first = StubAdapter("first")
    second = StubAdapter("second")
    resolution = run(ProviderOrchestrator([first, second]).resolve(SOURCE, evm_network))
    assert resolution.artifact.provider == "first"
    assert resolution.failures == ()
    assert second.calls == []


def test_all_failures_are_reported_in_order(evm_network):
    orchestrator = ProviderOrchestrator([StubAdapter("a", "fail"), StubAdapter("b", "fail")])
    with pytest.raises(AllProvidersExhaustedError) as excinfo:
        run(orchestrator.resolve(SOURCE, evm_network))
    error = excinfo.value
    assert [f.provider for f in error.failures] == ["a", "b"]
    assert "a: a has no record" in str(error)
    assert "b: b has no record" in str(error)
    assert PROXY_ADDRESS in str(error)


def test_forced_provider_failure_is_not_masked(evm_network):
    a, b, c = StubAdapter("a"), StubAdapter("b", "fail"), StubAdapter("c")
    source = ContractArtifactSource(address=PROXY_ADDRESS, forced_provider="b")
    with pytest.raises(ProviderFetchError) as excinfo:
        run(ProviderOrchestrator([a, b, c]).resolve(source, evm_network))
    assert excinfo.value.provider == "b"
    assert a.calls == [] and c.calls == []


def test_forced_provider_timeout_is_raised(evm_network):
    source = ContractArtifactSource(address=PROXY_ADDRESS, forced_provider="slow")
    orchestrator = ProviderOrchestrator([StubAdapter("slow", "hang"), StubAdapter("good")], timeout=0.05)
    with pytest.raises(ProviderFetchError) as excinfo:
        run(orchestrator.resolve(source, evm_network))
    assert excinfo.value.timed_out is True


def test_blank_forced_provider_keeps_fallback(evm_network):
    source = ContractArtifactSource(address=PROXY_ADDRESS, forced_provider="   ")
    orchestrator = ProviderOrchestrator([StubAdapter("a", "fail"), StubAdapter("b")])
    resolution = run(orchestrator.resolve(source, evm_network))
    assert resolution.artifact.provider == "b"
    assert [f.provider for f in resolution.failures] == ["a"]


def test_unknown_forced_provider(evm_network):
    source = ContractArtifactSource(address=PROXY_ADDRESS, forced_provider="blockscout")
    with pytest.raises(ProviderFetchError, match="Unknown provider 'blockscout'"):
        ProviderOrchestrator([StubAdapter("a")]).build_candidates(source, evm_network)


def test_unsupported_providers_are_skipped(evm_network):
    missing = StubAdapter("explorer", capability="blockscout-api")
    good = StubAdapter("good")
    resolution = run(ProviderOrchestrator([missing, good]).resolve(SOURCE, evm_network))
    assert resolution.artifact.provider == "good"
    assert resolution.failures == ()
    assert missing.calls == []


def test_forced_unsupported_provider_fails(evm_network):
    source = ContractArtifactSource(address=PROXY_ADDRESS, forced_provider="explorer")
    orchestrator = ProviderOrchestrator([StubAdapter("explorer", capability="blockscout-api")])
    with pytest.raises(ProviderFetchError, match="does not support"):
        run(orchestrator.resolve(source, evm_network))


def test_no_supported_provider(stellar_network):
    orchestrator = ProviderOrchestrator([StubAdapter("a", capability="etherscan-v2")])
    with pytest.raises(AllProvidersExhaustedError, match="no provider supports this network"):
        run(orchestrator.resolve(SOURCE, stellar_network))


class TestCandidateOrder:
    adapters = [StubAdapter("etherscan"), StubAdapter("sourcify"), StubAdapter("blockscout")]

    def test_builtin_order(self, evm_network):
        orchestrator = ProviderOrchestrator(self.adapters)
        assert keys(orchestrator.build_candidates(SOURCE, evm_network)) == ["etherscan", "sourcify", "blockscout"]

    def test_app_default_goes_first(self, evm_network):
        lookup = ServiceConfigLookup(app_defaults={"contract-definitions": {"defaultProvider": "blockscout"}})
        orchestrator = ProviderOrchestrator(self.adapters, lookup)
        assert keys(orchestrator.build_candidates(SOURCE, evm_network)) == ["blockscout", "etherscan", "sourcify"]

    def test_user_default_beats_app_default(self, evm_network):
        lookup = ServiceConfigLookup(
            user_config={"ethereum-mainnet": {"contract-definitions": {"defaultProvider": "Sourcify"}}},
            app_defaults={"contract-definitions": {"defaultProvider": "blockscout"}},
        )
        orchestrator = ProviderOrchestrator(self.adapters, lookup)
        assert keys(orchestrator.build_candidates(SOURCE, evm_network)) == ["sourcify", "etherscan", "blockscout"]

    def test_user_default_for_other_network_is_ignored(self, evm_network):
        lookup = ServiceConfigLookup(
            user_config={"base-mainnet": {"contract-definitions": {"defaultProvider": "sourcify"}}}
        )
        orchestrator = ProviderOrchestrator(self.adapters, lookup)
        assert keys(orchestrator.build_candidates(SOURCE, evm_network))[0] == "etherscan"

    def test_unknown_default_falls_back(self, evm_network):
        lookup = ServiceConfigLookup(
            user_config={"ethereum-mainnet": {"contract-definitions": {"defaultProvider": "nope"}}},
            app_defaults={"contract-definitions": {"defaultProvider": "sourcify"}},
        )
        orchestrator = ProviderOrchestrator(self.adapters, lookup)
        assert keys(orchestrator.build_candidates(SOURCE, evm_network))[0] == "sourcify"

    def test_forced_overrides_defaults(self, evm_network):
        lookup = ServiceConfigLookup(app_defaults={"contract-definitions": {"defaultProvider": "sourcify"}})
        source = ContractArtifactSource(address=PROXY_ADDRESS, forced_provider="blockscout")
        orchestrator = ProviderOrchestrator(self.adapters, lookup)
        assert keys(orchestrator.build_candidates(source, evm_network)) == ["blockscout"]


def test_invalid_construction():
    with pytest.raises(ValueError, match="Duplicate provider key"):
        ProviderOrchestrator([StubAdapter("a"), StubAdapter("a")])
    with pytest.raises(ValueError, match="timeout must be positive"):
        ProviderOrchestrator([StubAdapter("a")], timeout=0)
