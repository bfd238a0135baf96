import re
from typing import Dict, List, Optional, Tuple

from .models import NetworkDescriptor

_WORD_RE = re.compile(r"[a-z0-9]+")
_SPACE_RE = re.compile(r"[\s_\-]+")

ETHERSCAN_V2 = "etherscan-v2"
SOURCIFY = "sourcify"
EVM_RPC = "rpc"

_EVM_CAPABILITIES = frozenset({ETHERSCAN_V2, SOURCIFY, EVM_RPC})


def _norm(text: str) -> str:
    candidate = (text or "").strip().lower()
    candidate = _SPACE_RE.sub(" ", candidate)
    return " ".join(_WORD_RE.findall(candidate))


def _evm(network_id: str, name: str, chain_id: int, explorer: str, rpc: str) -> NetworkDescriptor:
    return NetworkDescriptor(
        id=network_id,
        ecosystem="evm",
        name=name,
        chain_id=chain_id,
        capabilities=_EVM_CAPABILITIES,
        endpoints={"explorer_url": explorer, "rpc": rpc},
    )


BUILTIN_NETWORKS: Tuple[NetworkDescriptor, ...] = (
    _evm("ethereum-mainnet", "Ethereum Mainnet", 1, "https://etherscan.io", "https://ethereum-rpc.publicnode.com"),
    _evm(
        "ethereum-sepolia",
        "Ethereum Sepolia",
        11155111,
        "https://sepolia.etherscan.io",
        "https://ethereum-sepolia-rpc.publicnode.com",
    ),
    _evm("arbitrum-one", "Arbitrum One", 42161, "https://arbiscan.io", "https://arb1.arbitrum.io/rpc"),
    _evm("base-mainnet", "Base", 8453, "https://basescan.org", "https://mainnet.base.org"),
    _evm("optimism-mainnet", "OP Mainnet", 10, "https://optimistic.etherscan.io", "https://mainnet.optimism.io"),
    _evm("polygon-mainnet", "Polygon", 137, "https://polygonscan.com", "https://polygon-rpc.com"),
    NetworkDescriptor(
        id="stellar-public",
        ecosystem="stellar",
        name="Stellar Public",
        endpoints={"explorer_url": "https://stellar.expert/explorer/public"},
    ),
    NetworkDescriptor(
        id="stellar-testnet",
        ecosystem="stellar",
        name="Stellar Testnet",
        endpoints={"explorer_url": "https://stellar.expert/explorer/testnet"},
    ),
)

_ALIASES: Dict[str, str] = {
    "eth": "ethereum-mainnet",
    "ethereum": "ethereum-mainnet",
    "mainnet": "ethereum-mainnet",
    "sepolia": "ethereum-sepolia",
    "arb": "arbitrum-one",
    "arbitrum": "arbitrum-one",
    "arb1": "arbitrum-one",
    "base": "base-mainnet",
    "op": "optimism-mainnet",
    "optimism": "optimism-mainnet",
    "matic": "polygon-mainnet",
    "polygon": "polygon-mainnet",
    "stellar": "stellar-public",
    "pubnet": "stellar-public",
}


class NetworkRegistry:
    """Static network table with alias, chain id and fuzzy name resolution."""

    def __init__(
        self,
        networks: Tuple[NetworkDescriptor, ...] = BUILTIN_NETWORKS,
        rpc_overrides: Optional[Dict[str, str]] = None,
    ) -> None:
        overrides = rpc_overrides or {}
        self._networks: Dict[str, NetworkDescriptor] = {}
        for network in networks:
            rpc = overrides.get(network.id)
            if rpc:
                network = NetworkDescriptor(
                    id=network.id,
                    ecosystem=network.ecosystem,
                    name=network.name,
                    chain_id=network.chain_id,
                    capabilities=network.capabilities,
                    endpoints={**network.endpoints, "rpc": rpc},
                )
            self._networks[network.id] = network

    def list_networks(self) -> List[NetworkDescriptor]:
        return list(self._networks.values())

    def resolve(self, query: Optional[str]) -> NetworkDescriptor:
        raw = str(query or "").strip()
        if not raw:
            raise ValueError("network must be a non-empty string.")

        if raw.isdigit():
            for network in self._networks.values():
                if network.chain_id == int(raw):
                    return network
            raise ValueError(f"Unknown chain id '{raw}'.")

        if raw in self._networks:
            return self._networks[raw]

        q = _norm(raw)
        alias = _ALIASES.get(q) or _ALIASES.get(q.replace(" ", "-"))
        if alias:
            return self._networks[alias]

        matches = []
        for network in self._networks.values():
            keys = (_norm(network.id), _norm(network.name))
            if q in keys:
                return network
            if any(key.startswith(q) or q in key for key in keys):
                matches.append(network)

        if len(matches) == 1:
            return matches[0]
        if not matches:
            known = ", ".join(sorted(self._networks))
            raise ValueError(f"Unknown network '{raw}'. Known networks: {known}.")
        candidates = "; ".join(f"{n.name} ({n.id})" for n in matches)
        raise ValueError(f"Ambiguous network query '{raw}'. Candidates: {candidates}.")
