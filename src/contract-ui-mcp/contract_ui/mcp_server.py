"""
MCP server exposing contract definition loading and form codec tools.
"""

import argparse
import asyncio
from collections.abc import Mapping
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP

from .config import configure_logging, load_config
from .service import ContractUIService, parse_values_argument

server = FastMCP(
    name="contract-ui-mcp",
    instructions=(
        "Resolve smart contract definitions (Etherscan V2, Sourcify, or a pasted ABI), "
        "follow proxies, and convert between form values and native call arguments."
    ),
)

_service: Optional[ContractUIService] = None


def _get_service() -> ContractUIService:
    global _service
    if _service is None:
        cfg = load_config()
        configure_logging(cfg.log_level)
        _service = ContractUIService(cfg)
    return _service


def _normalize_values(value: Optional[Any]) -> Union[dict, list]:
    """
    Accept call values as:
    - Mapping: by parameter name
    - list/tuple: by position
    - str: JSON text of either form
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        return parse_values_argument(value)
    raise ValueError("values must be an object (by name) or an array (by position).")


@server.tool(
    name="list_networks",
    title="List Networks",
    description="List built-in networks with their capabilities and endpoints.",
)
def list_networks() -> list:
    svc = _get_service()
    return svc.list_networks()


@server.tool(
    name="load_contract",
    title="Load Contract Schema",
    description=(
        "Load a contract's callable interface. Providers are tried in precedence order with a per-provider "
        "timeout unless `provider` forces one. Pass `abi` to use a pasted definition instead of fetching."
    ),
)
async def load_contract(
    address: str,
    network: str,
    provider: Optional[str] = None,
    abi: Optional[Any] = None,
    skip_proxy_detection: bool = False,
) -> dict:
    svc = _get_service()
    loaded = await svc.load_contract_async(address, network, provider, abi, skip_proxy_detection)
    return loaded.to_dict()


@server.tool(
    name="generate_form_fields",
    title="Generate Form Fields",
    description="Build default form field descriptors for one function's inputs.",
)
async def generate_form_fields(
    address: str,
    network: str,
    function: str,
    provider: Optional[str] = None,
    abi: Optional[Any] = None,
) -> list:
    svc = _get_service()
    loaded = await svc.load_contract_async(address, network, provider, abi)
    return svc.generate_fields(loaded.schema, function)


@server.tool(
    name="parse_inputs",
    title="Parse Form Values",
    description=(
        "Convert submitted form values into native call arguments. Composite values (arrays, tuples) "
        "are JSON strings at the top level."
    ),
)
async def parse_inputs(
    address: str,
    network: str,
    function: str,
    values: Optional[Any] = None,
    provider: Optional[str] = None,
    abi: Optional[Any] = None,
) -> list:
    svc = _get_service()
    loaded = await svc.load_contract_async(address, network, provider, abi)
    return svc.parse_inputs(loaded.schema, function, _normalize_values(values))


@server.tool(
    name="encode_call",
    title="Encode Call Data",
    description="Parse form values and ABI-encode them as EVM call data (selector + arguments).",
)
async def encode_call(
    address: str,
    network: str,
    function: str,
    values: Optional[Any] = None,
    provider: Optional[str] = None,
    abi: Optional[Any] = None,
) -> dict:
    svc = _get_service()
    loaded = await svc.load_contract_async(address, network, provider, abi)
    return svc.encode_call(loaded.schema, function, _normalize_values(values))


@server.tool(
    name="query_function",
    title="Query View Function",
    description="Call a view/pure EVM function via eth_call and return the formatted result.",
)
async def query_function(
    address: str,
    network: str,
    function: str,
    values: Optional[Any] = None,
    provider: Optional[str] = None,
    abi: Optional[Any] = None,
    block_tag: str = "latest",
) -> dict:
    svc = _get_service()
    return await svc.query_function_async(address, network, function, _normalize_values(values), provider, abi, block_tag)


@server.tool(
    name="detect_proxy",
    title="Detect Proxy Implementation/Admin",
    description="Classify a contract as a proxy from its ABI and resolve implementation/admin addresses.",
)
async def detect_proxy(address: str, network: str, provider: Optional[str] = None) -> dict:
    svc = _get_service()
    return await svc.detect_proxy_async(address, network, provider)


@server.tool(
    name="resolve_proxy_implementation",
    title="Resolve Proxy Implementation",
    description=(
        "Read implementation/admin addresses straight from chain for a known proxy kind "
        "(uups, transparent, beacon, minimal, diamond, unknown). Needs an RPC endpoint."
    ),
)
async def resolve_proxy_implementation(address: str, network: str, proxy_type: str = "unknown") -> dict:
    svc = _get_service()
    return await asyncio.to_thread(svc.resolve_implementation, address, network, proxy_type)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the contract UI MCP server.")
    parser.add_argument("--transport", choices=["stdio", "sse", "streamable-http"], default="stdio")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for sse/streamable-http.")
    parser.add_argument("--port", type=int, default=8000, help="Port for sse/streamable-http.")
    parser.add_argument("--mount-path", default="/", help="Mount path, sse only.")
    args = parser.parse_args()

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
