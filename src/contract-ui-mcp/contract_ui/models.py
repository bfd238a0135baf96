from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    BIGINT = "bigint"
    AMOUNT = "amount"
    CHECKBOX = "checkbox"
    SELECT = "select"
    RADIO = "radio"
    BLOCKCHAIN_ADDRESS = "blockchain-address"
    BYTES = "bytes"
    ARRAY = "array"
    ARRAY_OBJECT = "array-object"
    OBJECT = "object"
    ENUM = "enum"
    MAP = "map"


@dataclass(frozen=True)
class NetworkDescriptor:
    id: str
    ecosystem: str
    name: str
    chain_id: Optional[int] = None
    capabilities: FrozenSet[str] = frozenset()
    endpoints: Dict[str, str] = field(default_factory=dict)

    def has_capability(self, capability: Optional[str]) -> bool:
        return capability is None or capability in self.capabilities

    def endpoint(self, key: str) -> Optional[str]:
        value = self.endpoints.get(key)
        return value.rstrip("/") if value else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ecosystem": self.ecosystem,
            "name": self.name,
            "chain_id": self.chain_id,
            "capabilities": sorted(self.capabilities),
            "endpoints": dict(self.endpoints),
        }


@dataclass(frozen=True)
class ContractArtifactSource:
    address: str
    forced_provider: Optional[str] = None
    inline_artifact: Any = None
    skip_proxy_detection: bool = False


@dataclass(frozen=True)
class RawProviderArtifact:
    provider: str
    url: Optional[str]
    payload: Any
    contract_name: Optional[str] = None
    hints: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    reason: str
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"provider": self.provider, "reason": self.reason, "timed_out": self.timed_out}


@dataclass(frozen=True)
class Resolution:
    artifact: RawProviderArtifact
    failures: Tuple[ProviderFailure, ...] = ()


@dataclass(frozen=True)
class FunctionParameter:
    name: str
    type: str
    display_name: str = ""
    components: Optional[Tuple["FunctionParameter", ...]] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.display_name:
            data["display_name"] = self.display_name
        if self.components is not None:
            data["components"] = [item.to_dict() for item in self.components]
        if self.description:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class ContractFunction:
    id: str
    name: str
    display_name: str
    inputs: Tuple[FunctionParameter, ...] = ()
    outputs: Tuple[FunctionParameter, ...] = ()
    state_mutability: str = "nonpayable"
    modifies_state: bool = True
    type: str = "function"
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "type": self.type,
            "state_mutability": self.state_mutability,
            "modifies_state": self.modifies_state,
            "inputs": [item.to_dict() for item in self.inputs],
            "outputs": [item.to_dict() for item in self.outputs],
        }
        if self.description:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class ContractSchema:
    ecosystem: str
    name: str
    address: Optional[str]
    functions: Tuple[ContractFunction, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_function(self, function_ref: str) -> ContractFunction:
        """Look a function up by id, or by name when the name is not overloaded."""
        for fn in self.functions:
            if fn.id == function_ref:
                return fn
        by_name = [fn for fn in self.functions if fn.name == function_ref]
        if len(by_name) == 1:
            return by_name[0]
        if by_name:
            ids = ", ".join(fn.id for fn in by_name)
            raise ValueError(f"Function '{function_ref}' is overloaded; use one of: {ids}.")
        raise ValueError(f"Function '{function_ref}' not found in contract '{self.name}'.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ecosystem": self.ecosystem,
            "name": self.name,
            "address": self.address,
            "functions": [fn.to_dict() for fn in self.functions],
            "metadata": _plain(self.metadata),
        }


@dataclass(frozen=True)
class EnumVariant:
    name: str
    kind: str = "void"
    payload_types: Tuple[str, ...] = ()
    value: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.kind}
        if self.payload_types:
            data["payload_types"] = list(self.payload_types)
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class EnumMetadata:
    name: str
    variants: Tuple[EnumVariant, ...] = ()
    is_unit_only: bool = True

    def variant(self, name: str) -> Optional[EnumVariant]:
        for item in self.variants:
            if item.name == name:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "variants": [item.to_dict() for item in self.variants],
            "is_unit_only": self.is_unit_only,
        }


@dataclass
class FieldValidation:
    required: bool = True
    min: Optional[int] = None
    max: Optional[int] = None
    pattern: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"required": self.required}
        for key in ("min", "max", "pattern"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class FormField:
    id: str
    name: str
    label: str
    type: FieldType
    placeholder: str = ""
    helper_text: str = ""
    default_value: Any = ""
    validation: FieldValidation = field(default_factory=FieldValidation)
    width: str = "full"
    original_parameter_type: Optional[str] = None
    element_type: Optional[FieldType] = None
    element_field_config: Optional[Dict[str, Any]] = None
    components: Optional[Tuple[FunctionParameter, ...]] = None
    enum_metadata: Optional[EnumMetadata] = None
    options: Optional[List[Dict[str, str]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "type": self.type.value,
            "placeholder": self.placeholder,
            "helper_text": self.helper_text,
            "default_value": self.default_value,
            "validation": self.validation.to_dict(),
            "width": self.width,
        }
        if self.original_parameter_type:
            data["original_parameter_type"] = self.original_parameter_type
        if self.element_type is not None:
            data["element_type"] = self.element_type.value
        if self.element_field_config is not None:
            data["element_field_config"] = self.element_field_config
        if self.components is not None:
            data["components"] = [item.to_dict() for item in self.components]
        if self.enum_metadata is not None:
            data["enum_metadata"] = self.enum_metadata.to_dict()
        if self.options is not None:
            data["options"] = list(self.options)
        return data


@dataclass(frozen=True)
class ProxyInfo:
    is_proxy: bool
    proxy_type: Optional[str] = None
    proxy_address: Optional[str] = None
    implementation_address: Optional[str] = None
    admin_address: Optional[str] = None
    detection_method: Optional[str] = None
    indicators: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_proxy": self.is_proxy,
            "proxy_type": self.proxy_type,
            "proxy_address": self.proxy_address,
            "implementation_address": self.implementation_address,
            "admin_address": self.admin_address,
            "detection_method": self.detection_method,
            "indicators": list(self.indicators),
        }


@dataclass(frozen=True)
class ContractLoadResult:
    schema: ContractSchema
    source: str
    provenance: Dict[str, Any] = field(default_factory=dict)
    proxy_info: Optional[ProxyInfo] = None
    warnings: Tuple[str, ...] = ()
    failures: Tuple[ProviderFailure, ...] = ()
    original_definition: Optional[str] = None
    definition_hash: Optional[str] = None

    def to_dict(self, include_definition: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source": self.source,
            "provenance": dict(self.provenance),
            "schema": self.schema.to_dict(),
            "proxy_info": self.proxy_info.to_dict() if self.proxy_info else None,
            "warnings": list(self.warnings),
            "failures": [item.to_dict() for item in self.failures],
            "definition_hash": self.definition_hash,
        }
        if include_definition:
            data["original_definition"] = self.original_definition
        return data
