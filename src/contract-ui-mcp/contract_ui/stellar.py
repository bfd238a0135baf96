import json
from typing import Any, Dict, List, Optional, Tuple

from stellar_sdk import StrKey

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
from .models import ContractFunction, EnumMetadata, EnumVariant, FieldType, FunctionParameter

_SIMPLE_TYPES = {
    "val": "Val",
    "bool": "Bool",
    "void": "Void",
    "error": "Error",
    "u32": "U32",
    "i32": "I32",
    "u64": "U64",
    "i64": "I64",
    "timepoint": "Timepoint",
    "duration": "Duration",
    "u128": "U128",
    "i128": "I128",
    "u256": "U256",
    "i256": "I256",
    "bytes": "Bytes",
    "string": "ScString",
    "symbol": "ScSymbol",
    "address": "Address",
    "muxed_address": "MuxedAddress",
}

_INTEGER_WIDTHS = {
    "U32": (32, False),
    "I32": (32, True),
    "U64": (64, False),
    "I64": (64, True),
    "Timepoint": (64, False),
    "Duration": (64, False),
    "U128": (128, False),
    "I128": (128, True),
    "U256": (256, False),
    "I256": (256, True),
}

_STRKEY_CHECKS = {
    "G": StrKey.is_valid_ed25519_public_key,
    "C": StrKey.is_valid_contract,
    "M": StrKey.is_valid_med25519_public_key,
}

_PRIMITIVES = {
    "Address": FieldType.BLOCKCHAIN_ADDRESS,
    "MuxedAddress": FieldType.BLOCKCHAIN_ADDRESS,
    "Bool": FieldType.CHECKBOX,
    "ScString": FieldType.TEXT,
    "ScSymbol": FieldType.TEXT,
    "Bytes": FieldType.BYTES,
    "U32": FieldType.NUMBER,
    "I32": FieldType.NUMBER,
    "U64": FieldType.BIGINT,
    "I64": FieldType.BIGINT,
    "Timepoint": FieldType.BIGINT,
    "Duration": FieldType.BIGINT,
    "U128": FieldType.BIGINT,
    "I128": FieldType.BIGINT,
    "U256": FieldType.BIGINT,
    "I256": FieldType.BIGINT,
}


def split_generic(type_str: str) -> Tuple[str, List[str]]:
    """'Map<Address, Vec<U32>>' -> ('Map', ['Address', 'Vec<U32>'])."""
    text = (type_str or "").strip()
    start = text.find("<")
    if start < 0 or not text.endswith(">"):
        return text, []

    args: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text[start + 1:-1]:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    if current:
        args.append("".join(current).strip())
    return text[:start], args


def render_type(spec: Any) -> str:
    """Render a JSON spec type definition as a type string such as 'Vec<Address>'."""
    if isinstance(spec, str):
        return _SIMPLE_TYPES.get(spec, spec)
    if not isinstance(spec, dict) or len(spec) != 1:
        raise MalformedArtifactError(f"Unsupported type definition: {spec!r}")

    kind, body = next(iter(spec.items()))
    body = body if isinstance(body, dict) else {}
    if kind == "vec":
        return f"Vec<{render_type(body.get('element_type'))}>"
    if kind == "map":
        return f"Map<{render_type(body.get('key_type'))}, {render_type(body.get('value_type'))}>"
    if kind == "option":
        return f"Option<{render_type(body.get('value_type'))}>"
    if kind == "result":
        return f"Result<{render_type(body.get('ok_type'))}, {render_type(body.get('error_type'))}>"
    if kind == "tuple":
        return f"Tuple<{', '.join(render_type(item) for item in body.get('value_types') or [])}>"
    if kind == "bytes_n":
        return f"BytesN<{body.get('n')}>"
    if kind == "udt":
        return str(body.get("name"))
    raise MalformedArtifactError(f"Unsupported type definition kind '{kind}'.")


def is_valid_strkey(text: str) -> bool:
    """Account (G), contract (C) or muxed account (M) StrKey with a valid checksum."""
    if not isinstance(text, str) or text[:1] not in _STRKEY_CHECKS:
        return False
    return _STRKEY_CHECKS[text[0]](text)


def _match_bytes_n(type_str: str, mapper: Any) -> Optional[FieldType]:
    return FieldType.BYTES if split_generic(type_str)[0] == "BytesN" else None


def _match_vec(type_str: str, mapper: Any) -> Optional[FieldType]:
    base, args = split_generic(type_str)
    if base != "Vec":
        return None
    if args and mapper.map_type(args[0]) == FieldType.OBJECT:
        return FieldType.ARRAY_OBJECT
    return FieldType.ARRAY


def _match_struct(type_str: str, mapper: Any) -> Optional[FieldType]:
    if split_generic(type_str)[0] == "Tuple" or type_str in mapper.metadata.get("structs", {}):
        return FieldType.OBJECT
    return None


def _match_enum(type_str: str, mapper: Any) -> Optional[FieldType]:
    return FieldType.ENUM if type_str in mapper.metadata.get("enums", {}) else None


def _match_map(type_str: str, mapper: Any) -> Optional[FieldType]:
    return FieldType.MAP if split_generic(type_str)[0] == "Map" else None


class StellarEcosystem(Ecosystem):
    name = "stellar"
    null_placeholder = "(void)"
    read_only_mutabilities = frozenset({"view"})
    primitive_types = _PRIMITIVES
    safe_integer_bounds = {
        "U32": integer_bounds(32, signed=False),
        "I32": integer_bounds(32, signed=True),
    }

    def unwrap_type(self, type_str: str) -> str:
        base, args = split_generic(type_str)
        if base in ("Option", "Result") and args:
            return self.unwrap_type(args[0])
        return type_str

    def is_optional_type(self, type_str: str) -> bool:
        return split_generic(type_str)[0] == "Option"

    def type_matchers(self):
        return (_match_bytes_n, _match_vec, _match_struct, _match_enum, _match_map)

    def array_element_type(self, type_str: str) -> Optional[str]:
        base, args = split_generic(type_str)
        return args[0] if base == "Vec" and args else None

    def struct_components(self, param, metadata):
        structs = metadata.get("structs") or {}
        if param.type in structs:
            return structs[param.type]
        return None

    def enum_metadata(self, type_str, metadata):
        return (metadata.get("enums") or {}).get(type_str)

    def parse_value(self, codec, param, value, is_recursive):
        type_str = param.type
        base, args = split_generic(type_str)

        if base == "Option":
            if value is None or (isinstance(value, str) and not value.strip()):
                return None
            inner = FunctionParameter(name=param.name, type=args[0], components=param.components)
            return codec.parse_input(inner, value, is_recursive=is_recursive)
        if base == "Map":
            return self._parse_map(codec, param, args, value, is_recursive)
        if base == "Tuple":
            items = codec.load_json(value, is_recursive, "array")
            if not isinstance(items, list) or len(items) != len(args):
                raise ValueError(f"Expected an array of {len(args)} values for {type_str}.")
            return [
                codec.parse_input(FunctionParameter(name=f"{param.name}[{i}]", type=t), item, is_recursive=True)
                for i, (t, item) in enumerate(zip(args, items))
            ]
        if base == "BytesN":
            return parse_hex_bytes(value, parse_integer(args[0]) if args else None)
        if type_str == "Bytes":
            return parse_hex_bytes(value)
        if type_str in _INTEGER_WIDTHS:
            bits, signed = _INTEGER_WIDTHS[type_str]
            low, high = integer_bounds(bits, signed)
            return check_integer_range(parse_integer(value), low, high, type_str)
        if type_str == "Bool":
            return parse_bool(value)
        if type_str in ("ScString", "ScSymbol"):
            return str(value)
        if type_str in ("Address", "MuxedAddress"):
            text = str(value or "").strip()
            if not text:
                raise ValueError("Address is required.")
            if not is_valid_strkey(text):
                raise ValueError(f"Invalid Stellar address: '{text}'.")
            return text

        enum = self.enum_metadata(type_str, codec.metadata)
        if enum is not None:
            return self._parse_enum(codec, param, enum, value, is_recursive)

        report_unknown_type(type_str, f"input '{param.name}'")
        return value

    def _parse_map(self, codec, param, args, value, is_recursive):
        if len(args) != 2:
            raise ValueError(f"Malformed map type '{param.type}'.")
        data = codec.load_json(value, is_recursive, "object")
        if isinstance(data, dict):
            entries = list(data.items())
        elif isinstance(data, list):
            entries = []
            for entry in data:
                if isinstance(entry, dict) and "key" in entry and "value" in entry:
                    entries.append((entry["key"], entry["value"]))
                elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                    entries.append((entry[0], entry[1]))
                else:
                    raise ValueError("Map entries must be {\"key\": ..., \"value\": ...} objects.")
        else:
            raise ValueError(f"Expected a JSON object or entry list for {param.type}.")

        pairs = []
        seen = set()
        for index, (raw_key, raw_value) in enumerate(entries):
            key = codec.parse_input(FunctionParameter(name=f"{param.name}.key[{index}]", type=args[0]), raw_key, True)
            marker = json.dumps(key, sort_keys=True, default=str)
            if marker in seen:
                raise ValueError(f"Duplicate map key: {raw_key!r}.")
            seen.add(marker)
            val = codec.parse_input(
                FunctionParameter(name=f"{param.name}[{raw_key}]", type=args[1]), raw_value, True
            )
            pairs.append((key, val))
        return pairs

    def _parse_enum(self, codec, param, enum: EnumMetadata, value, is_recursive):
        if isinstance(value, str) and not is_recursive and value.strip().startswith("{"):
            value = codec.load_json(value, False, "object")

        if isinstance(value, dict):
            tag = value.get("tag")
            payload = value.get("values") or []
        else:
            tag = value
            payload = []

        variant = self._find_variant(enum, tag)
        if variant.kind == "integer":
            return variant.value
        if not isinstance(payload, list) or len(payload) != len(variant.payload_types):
            raise ValueError(
                f"Variant '{variant.name}' of {enum.name} expects {len(variant.payload_types)} value(s)."
            )
        parsed = [
            codec.parse_input(FunctionParameter(name=f"{param.name}.{variant.name}[{i}]", type=t), item, True)
            for i, (t, item) in enumerate(zip(variant.payload_types, payload))
        ]
        return {"tag": variant.name, "values": parsed}

    def _find_variant(self, enum: EnumMetadata, tag: Any) -> EnumVariant:
        for variant in enum.variants:
            if variant.name == tag:
                return variant
            if variant.kind == "integer" and str(variant.value) == str(tag).strip():
                return variant
        names = ", ".join(v.name for v in enum.variants)
        raise ValueError(f"Unknown variant '{tag}' for {enum.name}. Expected one of: {names}.")

    def transform(self, items):
        structs: Dict[str, Tuple[FunctionParameter, ...]] = {}
        enums: Dict[str, EnumMetadata] = {}
        raw_functions = []

        for index, entry in enumerate(items):
            if not isinstance(entry, dict) or len(entry) != 1:
                raise MalformedArtifactError(f"Spec entry {index} must be an object with a single kind key.")
            kind, body = next(iter(entry.items()))
            if not isinstance(body, dict):
                raise MalformedArtifactError(f"Spec entry {index} ({kind}) has no body.")
            if kind == "function_v0":
                raw_functions.append(body)
            elif kind == "udt_struct_v0":
                structs[body["name"]] = tuple(
                    FunctionParameter(
                        name=str(f.get("name")),
                        type=render_type(f.get("type_")),
                        display_name=humanize(str(f.get("name"))),
                        description=f.get("doc") or None,
                    )
                    for f in body.get("fields") or []
                )
            elif kind == "udt_union_v0":
                enums[body["name"]] = self._union_metadata(body)
            elif kind == "udt_enum_v0":
                enums[body["name"]] = EnumMetadata(
                    name=body["name"],
                    variants=tuple(
                        EnumVariant(name=c["name"], kind="integer", value=int(c["value"]))
                        for c in body.get("cases") or []
                    ),
                    is_unit_only=True,
                )

        structs = {name: self._attach_all(fields, structs, {name}) for name, fields in structs.items()}
        functions = [self._function(body, structs) for body in raw_functions]
        return functions, {"structs": structs, "enums": enums}

    def _union_metadata(self, body: Dict[str, Any]) -> EnumMetadata:
        variants = []
        for case in body.get("cases") or []:
            if "tuple_v0" in case:
                inner = case["tuple_v0"]
                variants.append(
                    EnumVariant(
                        name=inner["name"],
                        kind="tuple",
                        payload_types=tuple(render_type(t) for t in inner.get("type_") or []),
                    )
                )
            else:
                inner = case.get("void_v0") or {}
                variants.append(EnumVariant(name=inner.get("name", ""), kind="void"))
        return EnumMetadata(
            name=body["name"],
            variants=tuple(variants),
            is_unit_only=all(v.kind == "void" for v in variants),
        )

    def _function(self, body, structs) -> ContractFunction:
        name = body.get("name")
        if not isinstance(name, str) or not name:
            raise MalformedArtifactError("Spec function entry has no name.")
        inputs = tuple(
            self._attach(
                FunctionParameter(
                    name=raw.get("name") or f"param_{i}",
                    type=render_type(raw.get("type_")),
                    display_name=humanize(raw.get("name") or f"param_{i}"),
                    description=raw.get("doc") or None,
                ),
                structs,
                set(),
            )
            for i, raw in enumerate(body.get("inputs") or [])
        )
        outputs = tuple(
            FunctionParameter(name=f"result_{i}", type=render_type(raw))
            for i, raw in enumerate(body.get("outputs") or [])
        )
        # Soroban specs carry no mutability; getters without arguments are treated as reads.
        mutability = "view" if outputs and not inputs else "nonpayable"
        return ContractFunction(
            id=f"{name}_{'_'.join(p.type for p in inputs)}",
            name=name,
            display_name=humanize(name),
            inputs=inputs,
            outputs=outputs,
            state_mutability=mutability,
            modifies_state=self.modifies_state(mutability),
            description=body.get("doc") or None,
        )

    def _attach_all(self, fields, structs, seen):
        return tuple(self._attach(f, structs, seen) for f in fields)

    def _attach(self, param: FunctionParameter, structs, seen) -> FunctionParameter:
        target = self.unwrap_type(param.type)
        element = self.array_element_type(target)
        if element is not None:
            target = self.unwrap_type(element)
        if target not in structs or target in seen:
            return param
        return FunctionParameter(
            name=param.name,
            type=param.type,
            display_name=param.display_name,
            components=self._attach_all(structs[target], structs, seen | {target}),
            description=param.description,
        )
