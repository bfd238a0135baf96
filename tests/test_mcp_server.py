import asyncio
import json

import pytest

from contract_ui import mcp_server
from contract_ui.config import Config
from contract_ui.service import ContractUIService

from conftest import ERC20_ABI, IMPLEMENTATION_ADDRESS, PROXY_ADDRESS, StubAdapter


@pytest.fixture(autouse=True)
def service(monkeypatch):
    svc = ContractUIService(Config(), adapters=[StubAdapter("explorer")], reader_factory=lambda network: None)
    monkeypatch.setattr(mcp_server, "_service", svc)
    return svc


def call_tool(name, arguments):
    result = asyncio.run(mcp_server.server.call_tool(name, arguments))
    # newer servers return (content, structured_content)
    if isinstance(result, tuple):
        result = result[0]
    return json.loads(result[0].text)


def test_normalize_values():
    assert mcp_server._normalize_values(None) == []
    assert mcp_server._normalize_values({"a": 1}) == {"a": 1}
    assert mcp_server._normalize_values((1, 2)) == [1, 2]
    assert mcp_server._normalize_values('["x"]') == ["x"]
    with pytest.raises(ValueError, match="object \\(by name\\) or an array"):
        mcp_server._normalize_values(5)


def test_load_contract_tool():
    result = asyncio.run(mcp_server.load_contract(PROXY_ADDRESS, "ethereum-mainnet", abi=ERC20_ABI))
    assert result["source"] == "manual"
    assert result["schema"]["functions"][0]["name"] == "balanceOf"


def test_generate_form_fields_tool():
    fields = asyncio.run(
        mcp_server.generate_form_fields(PROXY_ADDRESS, "ethereum-mainnet", "balanceOf", abi=ERC20_ABI)
    )
    assert fields[0]["name"] == "account"
    assert fields[0]["type"] == "blockchain-address"


def test_encode_call_tool():
    call = asyncio.run(
        mcp_server.encode_call(
            PROXY_ADDRESS,
            "ethereum-mainnet",
            "transfer",
            values={"to": IMPLEMENTATION_ADDRESS, "amount": "1"},
            abi=ERC20_ABI,
        )
    )
    assert call["selector"] == "0xa9059cbb"


def test_list_networks_tool():
    assert any(n["id"] == "base-mainnet" for n in mcp_server.list_networks())


class TestThroughServer:
    """Tools invoked the way a client reaches them: inside the server's event loop."""

    def test_load_contract_inline(self):
        result = call_tool("load_contract", {"address": PROXY_ADDRESS, "network": "ethereum-mainnet", "abi": ERC20_ABI})
        assert result["source"] == "manual"
        assert result["schema"]["address"] == PROXY_ADDRESS

    def test_load_contract_fetched(self):
        result = call_tool("load_contract", {"address": PROXY_ADDRESS, "network": "eth"})
        assert result["source"] == "fetched"
        assert result["provenance"]["provider"] == "explorer"

    def test_encode_call(self):
        result = call_tool(
            "encode_call",
            {
                "address": PROXY_ADDRESS,
                "network": "ethereum-mainnet",
                "function": "transfer",
                "values": {"to": IMPLEMENTATION_ADDRESS, "amount": "1"},
                "abi": ERC20_ABI,
            },
        )
        assert result["signature"] == "transfer(address,uint256)"
        assert result["selector"] == "0xa9059cbb"

    def test_detect_proxy(self):
        result = call_tool("detect_proxy", {"address": PROXY_ADDRESS, "network": "ethereum-mainnet"})
        assert result["is_proxy"] is False
        assert result["proxy_address"] == PROXY_ADDRESS
