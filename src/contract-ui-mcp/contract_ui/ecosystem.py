import logging
import re
import warnings
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .errors import UnknownTypeWarning
from .models import ContractFunction, FieldType, FunctionParameter

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_HEX_BODY_RE = re.compile(r"^[0-9a-fA-F]*$")

TypeMatcher = Callable[[str, Any], Optional[FieldType]]


def humanize(text: Optional[str]) -> str:
    """'transferFrom' -> 'Transfer From', 'amount_in' -> 'Amount In'."""
    words = _WORD_RE.findall(text or "")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def report_unknown_type(type_str: str, where: str) -> None:
    message = f"Unrecognized type '{type_str}' in {where}; using permissive fallback."
    logger.warning(message)
    warnings.warn(message, UnknownTypeWarning, stacklevel=3)


def parse_integer(value: Any) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("Numeric value is required.")
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: '{value}'.")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(f"Invalid numeric value: '{value}' (fractions are not allowed).")

    text = str(value).strip()
    if "_" in text:
        raise ValueError(f"Invalid numeric value: '{text}'.")
    try:
        if text.lower().lstrip("-").startswith("0x"):
            return int(text, 16)
        return int(text, 10)
    except ValueError:
        raise ValueError(f"Invalid numeric value: '{text}'.") from None


def check_integer_range(value: int, low: int, high: int, type_str: str) -> int:
    if value < low or value > high:
        raise ValueError(f"Value {value} is out of range for {type_str} ({low} to {high}).")
    return value


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return bool(value)


def parse_hex_bytes(value: Any, size: Optional[int] = None) -> str:
    """Validate a hex byte string (optional 0x prefix) and return it 0x-prefixed."""
    if isinstance(value, (bytes, bytearray)):
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValueError("Bytes value must be a hex string.")
    text = value.strip()
    body = text[2:] if text[:2].lower() == "0x" else text
    if not _HEX_BODY_RE.match(body):
        raise ValueError(f"Invalid hex string: '{text}'.")
    if len(body) % 2:
        raise ValueError(f"Hex string must have an even number of characters: '{text}'.")
    if size is not None and len(body) // 2 != size:
        raise ValueError(f"Expected {size} bytes, got {len(body) // 2}.")
    return "0x" + body


def integer_bounds(bits: int, signed: bool) -> Tuple[int, int]:
    if signed:
        return -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
    return 0, 2 ** bits - 1


class Ecosystem:
    """
    Per-chain rule set: primitive type table, composite matchers, numeric bounds,
    read-only mutability tags, value parsing and interface transform.
    The type mapper, field generator, codec and formatter stay chain-agnostic.
    """

    name = ""
    null_placeholder = "(null)"
    read_only_mutabilities: FrozenSet[str] = frozenset()
    primitive_types: Dict[str, FieldType] = {}
    safe_integer_bounds: Dict[str, Tuple[int, int]] = {}

    def unwrap_type(self, type_str: str) -> str:
        return type_str

    def is_optional_type(self, type_str: str) -> bool:
        return False

    def type_matchers(self) -> Sequence[TypeMatcher]:
        return ()

    def array_element_type(self, type_str: str) -> Optional[str]:
        return None

    def array_length(self, type_str: str) -> Optional[int]:
        return None

    def struct_components(
        self, param: FunctionParameter, metadata: Dict[str, Any]
    ) -> Optional[Tuple[FunctionParameter, ...]]:
        return None

    def enum_metadata(self, type_str: str, metadata: Dict[str, Any]):
        return None

    def modifies_state(self, mutability: str) -> bool:
        return mutability not in self.read_only_mutabilities

    def parse_value(self, codec: Any, param: FunctionParameter, value: Any, is_recursive: bool) -> Any:
        raise NotImplementedError

    def transform(self, items: List[Any]) -> Tuple[List[ContractFunction], Dict[str, Any]]:
        raise NotImplementedError
