import re
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import is_checksum_address, is_hex_address, remove_0x_prefix, to_checksum_address

from .ecosystem import (
    Ecosystem,
    check_integer_range,
    humanize,
    integer_bounds,
    parse_bool,
    parse_hex_bytes,
    parse_integer,
    report_unknown_type,
)
from .errors import MalformedArtifactError
from .models import ContractFunction, FieldType, FunctionParameter

_ARRAY_RE = re.compile(r"^(.*)\[(\d*)\]$")
_INT_RE = re.compile(r"^(u?)int(\d*)$")
_FIXED_BYTES_RE = re.compile(r"^bytes(\d+)$")

# Widest integer whose full range stays below 2**53 - 1.
MAX_SAFE_INTEGER_BITS = 48


def _build_primitives() -> Dict[str, FieldType]:
    table = {
        "address": FieldType.BLOCKCHAIN_ADDRESS,
        "bool": FieldType.CHECKBOX,
        "string": FieldType.TEXT,
        "bytes": FieldType.TEXTAREA,
        # uint/int are aliases for the 256-bit types
        "uint": FieldType.BIGINT,
        "int": FieldType.BIGINT,
    }
    for bits in range(8, 257, 8):
        kind = FieldType.NUMBER if bits <= MAX_SAFE_INTEGER_BITS else FieldType.BIGINT
        table[f"uint{bits}"] = kind
        table[f"int{bits}"] = kind
    for size in range(1, 33):
        table[f"bytes{size}"] = FieldType.TEXT
    return table


def _build_bounds() -> Dict[str, Tuple[int, int]]:
    bounds = {}
    for bits in range(8, MAX_SAFE_INTEGER_BITS + 1, 8):
        bounds[f"uint{bits}"] = integer_bounds(bits, signed=False)
        bounds[f"int{bits}"] = integer_bounds(bits, signed=True)
    return bounds


def canonical_type(param: FunctionParameter) -> str:
    """ABI signature form of a parameter type, with tuples expanded."""
    if param.type.startswith("tuple"):
        inner = ",".join(canonical_type(item) for item in param.components or ())
        return f"({inner}){param.type[len('tuple'):]}"
    if param.type == "uint":
        return "uint256"
    if param.type == "int":
        return "int256"
    return param.type


def function_signature(function: ContractFunction) -> str:
    return f"{function.name}({','.join(canonical_type(p) for p in function.inputs)})"


def _match_array(type_str: str, mapper: Any) -> Optional[FieldType]:
    match = _ARRAY_RE.match(type_str)
    if not match:
        return None
    element = mapper.map_type(match.group(1))
    return FieldType.ARRAY_OBJECT if element == FieldType.OBJECT else FieldType.ARRAY


def _match_tuple(type_str: str, mapper: Any) -> Optional[FieldType]:
    return FieldType.OBJECT if type_str == "tuple" else None


class EvmEcosystem(Ecosystem):
    name = "evm"
    null_placeholder = "(null)"
    read_only_mutabilities = frozenset({"view", "pure"})
    primitive_types = _build_primitives()
    safe_integer_bounds = _build_bounds()

    def type_matchers(self):
        return (_match_array, _match_tuple)

    def array_element_type(self, type_str: str) -> Optional[str]:
        match = _ARRAY_RE.match(type_str)
        return match.group(1) if match else None

    def array_length(self, type_str: str) -> Optional[int]:
        match = _ARRAY_RE.match(type_str)
        return int(match.group(2)) if match and match.group(2) else None

    def struct_components(self, param, metadata):
        if param.type != "tuple":
            return None
        if not param.components:
            raise ValueError(f"ABI definition is missing components for tuple parameter '{param.name}'.")
        return param.components

    def parse_value(self, codec, param, value, is_recursive):
        type_str = param.type
        if type_str == "bool":
            return parse_bool(value)
        if type_str == "string":
            return str(value)
        if type_str == "address":
            return self.parse_address(value)
        int_match = _INT_RE.match(type_str)
        if int_match:
            number = parse_integer(value)
            bits = int(int_match.group(2) or 256)
            low, high = integer_bounds(bits, signed=not int_match.group(1))
            return check_integer_range(number, low, high, type_str)
        if type_str == "bytes":
            return parse_hex_bytes(value)
        bytes_match = _FIXED_BYTES_RE.match(type_str)
        if bytes_match:
            return parse_hex_bytes(value, int(bytes_match.group(1)))

        report_unknown_type(type_str, f"input '{param.name}'")
        return value

    def parse_address(self, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Address is required.")
        text = value.strip()
        if not is_hex_address(text):
            raise ValueError(f"Invalid address: '{text}'.")
        body = remove_0x_prefix(text)
        # mixed case carries an EIP-55 checksum
        if body not in (body.lower(), body.upper()) and not is_checksum_address(text):
            raise ValueError(f"Invalid address checksum: '{text}'.")
        return to_checksum_address(text)

    def transform(self, items: List[Any]) -> Tuple[List[ContractFunction], Dict[str, Any]]:
        functions = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise MalformedArtifactError(f"ABI item {index} is not an object.")
            if item.get("type", "function") != "function":
                continue
            name = item.get("name")
            if not isinstance(name, str) or not name:
                raise MalformedArtifactError(f"ABI function at index {index} has no name.")

            inputs = tuple(self._parameter(raw, f"{name} input {i}") for i, raw in enumerate(item.get("inputs") or []))
            outputs = tuple(
                self._parameter(raw, f"{name} output {i}") for i, raw in enumerate(item.get("outputs") or [])
            )
            mutability = self._mutability(item)
            functions.append(
                ContractFunction(
                    id=f"{name}_{'_'.join(canonical_type(p) for p in inputs)}",
                    name=name,
                    display_name=humanize(name),
                    inputs=inputs,
                    outputs=outputs,
                    state_mutability=mutability,
                    modifies_state=self.modifies_state(mutability),
                )
            )
        return functions, {}

    def _parameter(self, raw: Any, where: str) -> FunctionParameter:
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
            raise MalformedArtifactError(f"Invalid ABI parameter ({where}): missing type.")
        components = raw.get("components")
        name = raw.get("name") or ""
        return FunctionParameter(
            name=name,
            type=raw["type"],
            display_name=humanize(name),
            components=(
                tuple(self._parameter(c, f"{where} component {i}") for i, c in enumerate(components))
                if isinstance(components, list)
                else None
            ),
        )

    def _mutability(self, item: Dict[str, Any]) -> str:
        mutability = item.get("stateMutability")
        if isinstance(mutability, str) and mutability:
            return mutability
        # pre-0.4.16 ABIs
        if item.get("constant"):
            return "view"
        return "payable" if item.get("payable") else "nonpayable"


def to_abi_value(param: FunctionParameter, value: Any) -> Any:
    """Convert a parsed input into the Python shape eth_abi expects."""
    match = _ARRAY_RE.match(param.type)
    if match:
        element = FunctionParameter(name=param.name, type=match.group(1), components=param.components)
        return [to_abi_value(element, item) for item in value]
    if param.type == "tuple":
        return tuple(to_abi_value(c, value[c.name]) for c in param.components or ())
    if param.type == "bytes" or _FIXED_BYTES_RE.match(param.type):
        return bytes.fromhex(value[2:])
    return value
