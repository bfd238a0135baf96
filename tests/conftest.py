"""
Shared fixtures for the contract UI tests.
"""
import asyncio
import json
from typing import Any, List, Optional

import pytest
from stellar_sdk import StrKey

from contract_ui.errors import ProviderFetchError
from contract_ui.models import NetworkDescriptor, RawProviderArtifact
from contract_ui.networks import ETHERSCAN_V2, EVM_RPC, SOURCIFY
from contract_ui.providers import ProviderAdapter

ERC20_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address", "internalType": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "event",
        "name": "Transfer",
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
    },
]

UUPS_PROXY_ABI = [
    {"type": "constructor", "inputs": [{"name": "implementation", "type": "address"}, {"name": "_data", "type": "bytes"}]},
    {"type": "event", "name": "Upgraded", "inputs": [{"name": "implementation", "type": "address", "indexed": True}]},
    {"type": "error", "name": "ERC1967InvalidImplementation", "inputs": [{"name": "implementation", "type": "address"}]},
    {"type": "fallback", "stateMutability": "payable"},
]

PROXY_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
IMPLEMENTATION_ADDRESS = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"


@pytest.fixture
def evm_network() -> NetworkDescriptor:
    return NetworkDescriptor(
        id="ethereum-mainnet",
        ecosystem="evm",
        name="Ethereum Mainnet",
        chain_id=1,
        capabilities=frozenset({ETHERSCAN_V2, SOURCIFY, EVM_RPC}),
        endpoints={"explorer_url": "https://etherscan.io", "rpc": "https://rpc.example.org"},
    )


@pytest.fixture
def stellar_network() -> NetworkDescriptor:
    return NetworkDescriptor(id="stellar-testnet", ecosystem="stellar", name="Stellar Testnet")


class StubAdapter(ProviderAdapter):
    """Provider double: 'ok' returns a payload, 'fail' raises, 'hang' sleeps until cancelled."""

    def __init__(
        self,
        key: str,
        behaviour: str = "ok",
        payload: Any = None,
        events: Optional[List[str]] = None,
        capability: Optional[str] = None,
        responses: Optional[dict] = None,
    ) -> None:
        self.key = key
        self.label = key.upper()
        self.behaviour = behaviour
        self.payload = payload if payload is not None else json.dumps(ERC20_ABI)
        self.events = events if events is not None else []
        self.required_capability = capability
        self.responses = responses or {}
        self.calls: List[str] = []
        self.cancelled = False

    async def fetch(self, address, network, timeout):
        self.calls.append(address)
        self.events.append(f"{self.key}:start")
        if self.behaviour == "hang":
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.cancelled = True
                self.events.append(f"{self.key}:cancelled")
                raise
        if self.behaviour == "fail" or (self.responses and address not in self.responses):
            raise ProviderFetchError(self.key, f"{self.key} has no record")
        payload = self.responses.get(address, self.payload)
        return RawProviderArtifact(
            provider=self.key,
            url=f"https://{self.key}.example/{address}",
            payload=payload,
            contract_name=f"{self.key.title()}Contract",
        )


class FakeReader:
    """Storage/call reader backed by dictionaries."""

    def __init__(self, storage=None, calls=None, code="0x", fail=False):
        self.storage = {k.lower(): v for k, v in (storage or {}).items()}
        self.calls = calls or {}
        self.code = code
        self.fail = fail
        self.closed = False

    def get_storage_at(self, address, slot, tag="latest"):
        if self.fail:
            raise ValueError("RPC error: node unavailable.")
        return self.storage.get(slot.lower(), "0x" + "0" * 64)

    def get_code(self, address, tag="latest"):
        if self.fail:
            raise ValueError("RPC error: node unavailable.")
        return self.code

    def eth_call(self, address, data, tag="latest"):
        if self.fail:
            raise ValueError("RPC error: node unavailable.")
        key = (address.lower(), data[:10])
        if key in self.calls:
            return self.calls[key]
        raise ValueError("RPC error: code 3: execution reverted.")

    def close(self):
        self.closed = True


def address_word(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def make_strkey(prefix: str = "C", body: bytes = b"\x07" * 32) -> str:
    if prefix == "G":
        return StrKey.encode_ed25519_public_key(body)
    return StrKey.encode_contract(body)
