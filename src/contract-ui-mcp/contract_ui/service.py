import asyncio
import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

from .config import Config, build_lookup
from .evm import canonical_type, function_signature, to_abi_value
from .field_generator import generate_fields
from .input_codec import InputCodec
from .loader import ContractLoader, ReaderFactory, default_reader_factory
from .models import ContractArtifactSource, ContractLoadResult, ContractSchema, NetworkDescriptor
from .networks import NetworkRegistry
from .orchestrator import ProviderOrchestrator
from .output_formatter import format_function_result
from .providers import EtherscanProvider, ProviderAdapter, SourcifyProvider
from .proxy import ProxyResolver, detect_proxy_from_abi
from .normalizer import unwrap_interface
from .stellar import is_valid_strkey

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class ContractUIService:
    """Load contract definitions and turn them into form fields, call arguments and display strings."""

    def __init__(
        self,
        config: Config,
        registry: Optional[NetworkRegistry] = None,
        adapters: Optional[Sequence[ProviderAdapter]] = None,
        reader_factory: ReaderFactory = default_reader_factory,
    ) -> None:
        self.config = config
        self.registry = registry or NetworkRegistry(rpc_overrides=config.rpc_overrides)
        self.adapters = list(adapters) if adapters is not None else [
            EtherscanProvider(config.etherscan_api_key, config.etherscan_base_url),
            SourcifyProvider(config.sourcify_server_url, config.sourcify_repo_url),
        ]
        self.lookup = build_lookup(config)
        self.reader_factory = reader_factory

    def _loader(self) -> ContractLoader:
        # Fresh orchestrator per load: no state is shared between loads.
        orchestrator = ProviderOrchestrator(self.adapters, self.lookup, self.config.provider_timeout)
        return ContractLoader(orchestrator, self.reader_factory)

    def list_networks(self) -> List[Dict[str, Any]]:
        return [network.to_dict() for network in self.registry.list_networks()]

    async def load_contract_async(
        self,
        address: str,
        network: Union[str, NetworkDescriptor],
        provider: Optional[str] = None,
        abi: Any = None,
        skip_proxy_detection: bool = False,
    ) -> ContractLoadResult:
        descriptor = self._network(network)
        source = ContractArtifactSource(
            address=self._normalize_address(address, descriptor),
            forced_provider=provider,
            inline_artifact=abi,
            skip_proxy_detection=skip_proxy_detection,
        )
        return await self._loader().load(source, descriptor)

    def load_contract(
        self,
        address: str,
        network: Union[str, NetworkDescriptor],
        provider: Optional[str] = None,
        abi: Any = None,
        skip_proxy_detection: bool = False,
    ) -> ContractLoadResult:
        return asyncio.run(self.load_contract_async(address, network, provider, abi, skip_proxy_detection))

    def generate_fields(self, schema: ContractSchema, function_ref: str) -> List[Dict[str, Any]]:
        function = schema.get_function(function_ref)
        return [field.to_dict() for field in generate_fields(function, schema.ecosystem, schema)]

    def parse_inputs(
        self,
        schema: ContractSchema,
        function_ref: str,
        values: Union[Mapping[str, Any], Sequence[Any]],
    ) -> List[Any]:
        function = schema.get_function(function_ref)
        return InputCodec(schema.ecosystem, schema.metadata).parse_inputs(function, values)

    def format_result(self, schema: ContractSchema, function_ref: str, decoded: Any) -> str:
        return format_function_result(decoded, schema.get_function(function_ref), schema.ecosystem)

    def encode_call(
        self,
        schema: ContractSchema,
        function_ref: str,
        values: Union[Mapping[str, Any], Sequence[Any]],
    ) -> Dict[str, Any]:
        if schema.ecosystem != "evm":
            raise ValueError("Call data encoding is only available for EVM contracts.")
        function = schema.get_function(function_ref)
        args = InputCodec(schema.ecosystem, schema.metadata).parse_inputs(function, values)
        signature = function_signature(function)
        selector = keccak(text=signature)[:4]
        encoded = abi_encode(
            [canonical_type(p) for p in function.inputs],
            [to_abi_value(p, a) for p, a in zip(function.inputs, args)],
        )
        return {
            "function": function.id,
            "signature": signature,
            "selector": "0x" + selector.hex(),
            "args": args,
            "data": "0x" + (selector + encoded).hex(),
        }

    async def query_function_async(
        self,
        address: str,
        network: Union[str, NetworkDescriptor],
        function_ref: str,
        values: Union[Mapping[str, Any], Sequence[Any], None] = None,
        provider: Optional[str] = None,
        abi: Any = None,
        block_tag: str = "latest",
    ) -> Dict[str, Any]:
        """Run a read-only EVM function through eth_call and format the result."""
        descriptor = self._network(network)
        loaded = await self.load_contract_async(address, descriptor, provider=provider, abi=abi)
        schema = loaded.schema
        function = schema.get_function(function_ref)
        if function.modifies_state:
            raise ValueError(f"Function '{function.name}' modifies state; only view/pure functions can be queried.")

        call = self.encode_call(schema, function.id, values if values is not None else [])
        raw = await asyncio.to_thread(self._eth_call, descriptor, schema.address, call["data"], block_tag)

        output_types = [canonical_type(p) for p in function.outputs]
        decoded = list(abi_decode(output_types, bytes.fromhex(raw[2:] if raw.startswith("0x") else raw)))
        return {
            "address": schema.address,
            "network": descriptor.id,
            "function": function.id,
            "block_tag": block_tag,
            "data": raw,
            "result": format_function_result(decoded, function, schema.ecosystem),
            "warnings": list(loaded.warnings),
        }

    def query_function(
        self,
        address: str,
        network: Union[str, NetworkDescriptor],
        function_ref: str,
        values: Union[Mapping[str, Any], Sequence[Any], None] = None,
        provider: Optional[str] = None,
        abi: Any = None,
        block_tag: str = "latest",
    ) -> Dict[str, Any]:
        return asyncio.run(
            self.query_function_async(address, network, function_ref, values, provider, abi, block_tag)
        )

    def _eth_call(self, descriptor: NetworkDescriptor, address: str, data: str, block_tag: str) -> str:
        reader = self.reader_factory(descriptor)
        if reader is None:
            raise ValueError(f"Network '{descriptor.id}' has no RPC endpoint configured.")
        try:
            return reader.eth_call(address, data, block_tag)
        finally:
            close = getattr(reader, "close", None)
            if callable(close):
                close()

    async def detect_proxy_async(
        self, address: str, network: Union[str, NetworkDescriptor], provider: Optional[str] = None
    ) -> Dict[str, Any]:
        descriptor = self._network(network)
        loaded = await self.load_contract_async(address, descriptor, provider=provider)
        if loaded.proxy_info is not None:
            return {**loaded.proxy_info.to_dict(), "warnings": list(loaded.warnings)}

        detection = detect_proxy_from_abi(unwrap_interface(loaded.original_definition))
        return {
            "is_proxy": False,
            "proxy_address": loaded.schema.address,
            "indicators": detection.indicators,
            "warnings": list(loaded.warnings),
        }

    def detect_proxy(
        self, address: str, network: Union[str, NetworkDescriptor], provider: Optional[str] = None
    ) -> Dict[str, Any]:
        return asyncio.run(self.detect_proxy_async(address, network, provider))

    def resolve_implementation(self, address: str, network: Union[str, NetworkDescriptor], proxy_type: str) -> Dict[str, Any]:
        descriptor = self._network(network)
        reader = self.reader_factory(descriptor)
        if reader is None:
            raise ValueError(f"Network '{descriptor.id}' has no RPC endpoint configured.")
        normalized = self._normalize_address(address, descriptor)
        try:
            resolver = ProxyResolver(reader)
            implementation, method = resolver.implementation_address(normalized, proxy_type)
            admin = resolver.admin_address(normalized)
        finally:
            close = getattr(reader, "close", None)
            if callable(close):
                close()
        return {
            "proxy_address": normalized,
            "proxy_type": proxy_type,
            "implementation_address": implementation,
            "admin_address": admin,
            "detection_method": method,
        }

    def _network(self, network: Union[str, NetworkDescriptor]) -> NetworkDescriptor:
        if isinstance(network, NetworkDescriptor):
            return network
        return self.registry.resolve(network)

    def _normalize_address(self, address: str, network: NetworkDescriptor) -> str:
        if not isinstance(address, str):
            raise ValueError("Address must be a string.")
        candidate = address.strip()

        if network.ecosystem == "stellar":
            if not is_valid_strkey(candidate):
                raise ValueError("Invalid Stellar contract address.")
            return candidate

        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"
        if not ADDRESS_PATTERN.match(candidate):
            raise ValueError("Invalid address format. Expected 0x-prefixed 40 hex characters.")
        return to_checksum_address(candidate.lower())


def parse_values_argument(raw: Optional[str]) -> Union[Dict[str, Any], List[Any]]:
    """Decode a CLI/tool values argument: a JSON object (by name) or array (by position)."""
    if raw is None or not str(raw).strip():
        return []
    try:
        values = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"values must be a JSON object or array: {exc.msg}.") from exc
    if not isinstance(values, (dict, list)):
        raise ValueError("values must be a JSON object or array.")
    return values
