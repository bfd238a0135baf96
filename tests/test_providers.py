import asyncio
import json

import httpx
import pytest

from contract_ui.errors import ProviderFetchError
from contract_ui.providers import EtherscanProvider, SourcifyProvider

from conftest import ERC20_ABI, IMPLEMENTATION_ADDRESS, PROXY_ADDRESS

ETHERSCAN_URL = "https://api.etherscan.io/v2/api"
SOURCIFY_URL = f"https://sourcify.dev/server/v2/contract/1/{PROXY_ADDRESS}"


class Recorder:
    """MockTransport handler that answers every request the same way and keeps the requests."""

    def __init__(self, status_code=200, json=None, text=None, exc=None):
        self.status_code = status_code
        self.json = json
        self.text = text
        self.exc = exc
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc("simulated", request=request)
        if self.json is not None:
            return httpx.Response(self.status_code, json=self.json)
        return httpx.Response(self.status_code, text=self.text or "")

    @property
    def transport(self):
        return httpx.MockTransport(self)


def fetch(adapter, network):
    return asyncio.run(adapter.fetch(PROXY_ADDRESS, network, 4.0))


def source_entry(**overrides):
    entry = {
        "ContractName": "Token",
        "ABI": json.dumps(ERC20_ABI),
        "Proxy": "0",
        "Implementation": "",
    }
    entry.update(overrides)
    return {"status": "1", "message": "OK", "result": [entry]}


def etherscan(recorder):
    return EtherscanProvider("test-key", ETHERSCAN_URL, transport=recorder.transport)


class TestEtherscanProvider:
    def test_success(self, evm_network):
        recorder = Recorder(json=source_entry())
        artifact = fetch(etherscan(recorder), evm_network)

        assert artifact.provider == "etherscan"
        assert artifact.contract_name == "Token"
        assert json.loads(artifact.payload) == ERC20_ABI
        assert artifact.url == f"https://etherscan.io/address/{PROXY_ADDRESS}#code"
        assert artifact.hints == {}

        request = recorder.requests[-1]
        assert str(request.url).startswith(ETHERSCAN_URL)
        assert request.url.params["action"] == "getsourcecode"
        assert request.url.params["chainid"] == "1"
        assert request.url.params["address"] == PROXY_ADDRESS
        assert request.headers["X-API-Key"] == "test-key"

    def test_proxy_hints(self, evm_network):
        recorder = Recorder(json=source_entry(Proxy="1", Implementation=IMPLEMENTATION_ADDRESS))
        artifact = fetch(etherscan(recorder), evm_network)
        assert artifact.hints == {"proxy": True, "implementation": IMPLEMENTATION_ADDRESS}

    def test_unverified_contract(self, evm_network):
        recorder = Recorder(json=source_entry(ABI="Contract source code not verified"))
        with pytest.raises(ProviderFetchError, match="not verified on Etherscan"):
            fetch(etherscan(recorder), evm_network)

    def test_invalid_api_key(self, evm_network):
        recorder = Recorder(json={"status": "0", "message": "NOTOK", "result": "Invalid API Key"})
        with pytest.raises(ProviderFetchError, match="Invalid Etherscan API key"):
            fetch(etherscan(recorder), evm_network)

    def test_rate_limit(self, evm_network):
        recorder = Recorder(
            json={"status": "0", "message": "NOTOK", "result": "Max calls per sec rate limit reached (5/sec)"}
        )
        with pytest.raises(ProviderFetchError, match="rate limit"):
            fetch(etherscan(recorder), evm_network)

    def test_http_error(self, evm_network):
        with pytest.raises(ProviderFetchError, match="HTTP 502"):
            fetch(etherscan(Recorder(status_code=502)), evm_network)

    def test_network_timeout(self, evm_network):
        with pytest.raises(ProviderFetchError) as excinfo:
            fetch(etherscan(Recorder(exc=httpx.ConnectTimeout)), evm_network)
        assert excinfo.value.timed_out is True

    def test_connection_error(self, evm_network):
        with pytest.raises(ProviderFetchError, match="Etherscan request failed") as excinfo:
            fetch(etherscan(Recorder(exc=httpx.ConnectError)), evm_network)
        assert excinfo.value.timed_out is False

    def test_missing_api_key(self, evm_network):
        recorder = Recorder(json=source_entry())
        with pytest.raises(ProviderFetchError, match="ETHERSCAN_API_KEY"):
            fetch(EtherscanProvider(None, ETHERSCAN_URL, transport=recorder.transport), evm_network)
        assert recorder.requests == []

    def test_unsupported_network(self, stellar_network):
        assert EtherscanProvider("test-key", ETHERSCAN_URL).supports(stellar_network) is False


def sourcify(recorder):
    return SourcifyProvider("https://sourcify.dev/server", "https://repo.sourcify.dev/", transport=recorder.transport)


class TestSourcifyProvider:
    def test_success(self, evm_network):
        record = {
            "match": "exact_match",
            "abi": ERC20_ABI,
            "metadata": {"settings": {"compilationTarget": {"contracts/Token.sol": "Token"}}},
        }
        recorder = Recorder(json=record)
        artifact = fetch(sourcify(recorder), evm_network)

        assert artifact.provider == "sourcify"
        assert artifact.payload == record
        assert artifact.contract_name == "Token"
        assert artifact.url == f"https://repo.sourcify.dev/1/{PROXY_ADDRESS}"
        assert artifact.hints == {"match": "exact_match"}
        request = recorder.requests[-1]
        assert f"https://{request.url.host}{request.url.path}" == SOURCIFY_URL
        assert request.url.params["fields"] == "abi,metadata"

    def test_not_found(self, evm_network):
        with pytest.raises(ProviderFetchError, match="not verified on Sourcify"):
            fetch(sourcify(Recorder(status_code=404, json={"message": "not found"})), evm_network)

    def test_empty_abi(self, evm_network):
        with pytest.raises(ProviderFetchError, match="no ABI"):
            fetch(sourcify(Recorder(json={"abi": []})), evm_network)

    def test_bad_json(self, evm_network):
        with pytest.raises(ProviderFetchError, match="Failed to parse response from Sourcify"):
            fetch(sourcify(Recorder(text="<html>")), evm_network)
