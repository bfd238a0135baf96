import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from eth_utils import keccak, to_checksum_address

from .models import ProxyInfo

logger = logging.getLogger(__name__)

# bytes32(uint256(keccak256('eip1967.proxy.implementation')) - 1)
EIP1967_IMPLEMENTATION_SLOT = "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
# bytes32(uint256(keccak256('eip1967.proxy.admin')) - 1)
EIP1967_ADMIN_SLOT = "0xb53127684a568b3173ae13b9f8a6016e243e63b6e8ee1178d6a717850b5d6103"
# bytes32(uint256(keccak256('eip1967.proxy.beacon')) - 1)
EIP1967_BEACON_SLOT = "0xa3f0ad74e5423aebfd80d3ef4346578335a9a72aeaee59ff6cb3582b35133d50"
LEGACY_OZ_IMPLEMENTATION_SLOT = "0x" + keccak(text="org.zeppelinos.proxy.implementation").hex()
LEGACY_OZ_ADMIN_SLOT = "0x" + keccak(text="org.zeppelinos.proxy.admin").hex()

MINIMAL_PROXY_PREFIX = "363d3d373d3d3d363d73"
MINIMAL_PROXY_SUFFIX = "5af43d82803e903d91602b57fd5bf3"

COMMON_IMPLEMENTATION_GETTERS = ("implementation()", "getImplementation()", "_implementation()", "target()")


@dataclass(frozen=True)
class ProxyDetection:
    is_proxy: bool
    proxy_type: Optional[str] = None
    confidence: str = "low"
    indicators: List[str] = field(default_factory=list)


def detect_proxy_from_abi(abi: Iterable[Dict[str, Any]]) -> ProxyDetection:
    """Classify an ABI as a proxy interface by its function, event and error names."""
    items = [item for item in abi if isinstance(item, dict)]
    functions = {item.get("name") for item in items if item.get("type") == "function"}
    function_count = sum(1 for item in items if item.get("type") == "function")
    events = {item.get("name") for item in items if item.get("type") == "event"}
    errors = [str(item.get("name") or "") for item in items if item.get("type") == "error"]

    indicators: List[str] = []
    proxy_type: Optional[str] = None
    confidence = "low"

    if "Upgraded" in events or any("ERC1967" in name for name in errors):
        indicators.append("ERC1967 upgrade pattern detected")
        proxy_type = "uups"
        confidence = "high"

    if "implementation" in functions:
        indicators.append("implementation() function found")
        if proxy_type != "uups":
            proxy_type = "transparent"
            confidence = "medium"

    if proxy_type == "uups" and ({"upgradeTo", "upgradeToAndCall"} & functions):
        indicators.append("UUPS upgrade functions found")

    if "admin" in functions or "changeAdmin" in functions or any("ProxyDenied" in name for name in errors):
        indicators.append("Transparent proxy admin pattern detected")
        if proxy_type is None:
            proxy_type = "transparent"
            confidence = "medium"

    if "beacon" in functions or "BeaconUpgraded" in events:
        indicators.append("Beacon proxy pattern detected")
        proxy_type = "beacon"
        confidence = "high"

    if "diamondCut" in functions or {"facets", "facetFunctionSelectors"} <= functions:
        indicators.append("Diamond (EIP-2535) proxy pattern detected")
        proxy_type = "diamond"
        confidence = "high"

    has_fallback = any(item.get("type") == "fallback" for item in items)
    has_proxy_constructor = any(
        item.get("type") == "constructor"
        and any(
            isinstance(arg, dict) and arg.get("name") in ("implementation", "_logic", "_data")
            for arg in item.get("inputs") or []
        )
        for item in items
    )
    if has_fallback:
        indicators.append("Fallback function present")
    if has_proxy_constructor:
        indicators.append("Proxy-style constructor detected")

    minimal_surface = function_count <= 1
    if minimal_surface and not events and has_fallback and proxy_type is None:
        indicators.append("Minimal proxy pattern detected")
        proxy_type = "minimal"
        confidence = "medium"

    is_proxy = proxy_type is not None or (
        has_fallback and minimal_surface and (has_proxy_constructor or function_count == 0)
    )
    if is_proxy and proxy_type is None:
        indicators.append("Generic proxy pattern detected")
        proxy_type = "unknown"
        confidence = "low"

    return ProxyDetection(is_proxy=is_proxy, proxy_type=proxy_type, confidence=confidence, indicators=indicators)


def storage_word_to_address(word: Optional[str]) -> Optional[str]:
    if not word or not isinstance(word, str):
        return None
    normalized = word[2:] if word.lower().startswith("0x") else word
    normalized = normalized.rjust(64, "0")
    try:
        value_int = int(normalized, 16)
    except ValueError:
        return None
    if value_int == 0:
        return None
    # last 20 bytes as address
    return to_checksum_address("0x" + normalized[-40:])


class ProxyResolver:
    """
    Best-effort implementation/admin lookup through an EVM node.
    The reader needs get_storage_at(address, slot), get_code(address) and eth_call(address, data).
    Every lookup returns None instead of raising.
    """

    def __init__(self, reader: Any) -> None:
        self.reader = reader

    def resolve(
        self,
        address: str,
        detection: ProxyDetection,
        hints: Optional[Dict[str, Any]] = None,
    ) -> ProxyInfo:
        implementation = None
        method = None
        hinted = storage_word_to_address((hints or {}).get("implementation"))
        if hinted:
            implementation, method = hinted, "explorer"
        else:
            implementation, method = self.implementation_address(address, detection.proxy_type)
        return ProxyInfo(
            is_proxy=True,
            proxy_type=detection.proxy_type,
            proxy_address=address,
            implementation_address=implementation,
            admin_address=self.admin_address(address),
            detection_method=method,
            indicators=tuple(detection.indicators),
        )

    def implementation_address(self, address: str, proxy_type: Optional[str]):
        """Return (implementation, method) for the given proxy kind."""
        if proxy_type in ("uups", "transparent"):
            return self._first(
                (lambda: self._slot(address, EIP1967_IMPLEMENTATION_SLOT), "eip1967-slot"),
                (lambda: self._slot(address, LEGACY_OZ_IMPLEMENTATION_SLOT), "legacy-oz-slot"),
            )
        if proxy_type == "beacon":
            return self._first((lambda: self._beacon_implementation(address), "beacon"))
        if proxy_type == "diamond":
            logger.info("Diamond proxy %s has facets, not a single implementation.", address)
            return None, None
        if proxy_type == "minimal":
            return self._first((lambda: self._minimal_proxy_target(address), "eip1167-bytecode"))
        getters = [
            (lambda sig=sig: self._call_address(address, sig), f"call:{sig}")
            for sig in COMMON_IMPLEMENTATION_GETTERS
        ]
        getters.append((lambda: self._slot(address, EIP1967_IMPLEMENTATION_SLOT), "eip1967-slot"))
        return self._first(*getters)

    def admin_address(self, address: str) -> Optional[str]:
        admin, _ = self._first(
            (lambda: self._slot(address, EIP1967_ADMIN_SLOT), "eip1967-admin-slot"),
            (lambda: self._slot(address, LEGACY_OZ_ADMIN_SLOT), "legacy-oz-admin-slot"),
        )
        return admin

    def _first(self, *attempts):
        for attempt, method in attempts:
            try:
                found = attempt()
            except Exception as exc:
                logger.debug("Proxy lookup %s failed: %s", method, exc)
                continue
            if found:
                return found, method
        return None, None

    def _slot(self, address: str, slot: str) -> Optional[str]:
        return storage_word_to_address(self.reader.get_storage_at(address, slot))

    def _call_address(self, address: str, signature: str) -> Optional[str]:
        selector = "0x" + keccak(text=signature)[:4].hex()
        return storage_word_to_address(self.reader.eth_call(address, selector))

    def _beacon_implementation(self, address: str) -> Optional[str]:
        beacon = self._slot(address, EIP1967_BEACON_SLOT)
        if not beacon:
            return None
        return self._call_address(beacon, "implementation()")

    def _minimal_proxy_target(self, address: str) -> Optional[str]:
        code = (self.reader.get_code(address) or "").lower()
        code = code[2:] if code.startswith("0x") else code
        start = code.find(MINIMAL_PROXY_PREFIX)
        if start < 0:
            return None
        target_start = start + len(MINIMAL_PROXY_PREFIX)
        target = code[target_start:target_start + 40]
        if len(target) != 40 or not code[target_start + 40:].startswith(MINIMAL_PROXY_SUFFIX):
            return None
        return to_checksum_address("0x" + target)
