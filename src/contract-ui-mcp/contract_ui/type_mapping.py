from typing import Any, Dict, List, Optional, Union

from .ecosystem import Ecosystem, report_unknown_type
from .ecosystems import get_ecosystem
from .models import EnumMetadata, FieldType

_COMPATIBLE: Dict[FieldType, List[FieldType]] = {
    FieldType.BIGINT: [FieldType.BIGINT, FieldType.NUMBER, FieldType.AMOUNT, FieldType.TEXT],
    FieldType.NUMBER: [FieldType.NUMBER, FieldType.AMOUNT, FieldType.TEXT],
    FieldType.BLOCKCHAIN_ADDRESS: [FieldType.BLOCKCHAIN_ADDRESS, FieldType.TEXT],
    FieldType.CHECKBOX: [FieldType.CHECKBOX, FieldType.SELECT, FieldType.RADIO, FieldType.TEXT],
    FieldType.TEXT: [FieldType.TEXT, FieldType.TEXTAREA],
    FieldType.TEXTAREA: [FieldType.TEXTAREA, FieldType.TEXT],
    FieldType.BYTES: [FieldType.BYTES, FieldType.TEXTAREA, FieldType.TEXT],
    FieldType.ARRAY: [FieldType.ARRAY, FieldType.TEXTAREA, FieldType.TEXT],
    FieldType.ARRAY_OBJECT: [FieldType.ARRAY_OBJECT, FieldType.TEXTAREA, FieldType.TEXT],
    FieldType.OBJECT: [FieldType.OBJECT, FieldType.TEXTAREA, FieldType.TEXT],
    FieldType.ENUM: [FieldType.ENUM, FieldType.SELECT, FieldType.RADIO, FieldType.TEXT],
    FieldType.MAP: [FieldType.MAP, FieldType.TEXTAREA, FieldType.TEXT],
}


class TypeMapper:
    """
    Maps native type strings to form field types.
    - Stage 1: exact lookup in the ecosystem's primitive table.
    - Stage 2: the ecosystem's composite matchers, in order.
    - Anything else falls back to a text field and is reported.
    """

    def __init__(self, ecosystem: Union[str, Ecosystem], metadata: Optional[Dict[str, Any]] = None) -> None:
        self.ecosystem = get_ecosystem(ecosystem)
        self.metadata = metadata or {}

    def map_type(self, type_str: str) -> FieldType:
        resolved = self.resolve(type_str)
        if resolved is None:
            report_unknown_type(type_str, f"{self.ecosystem.name} type mapping")
            return FieldType.TEXT
        return resolved

    def resolve(self, type_str: str) -> Optional[FieldType]:
        """Like map_type, but returns None instead of falling back."""
        candidate = self.ecosystem.unwrap_type((type_str or "").strip())
        exact = self.ecosystem.primitive_types.get(candidate)
        if exact is not None:
            return exact
        for matcher in self.ecosystem.type_matchers():
            matched = matcher(candidate, self)
            if matched is not None:
                return matched
        return None

    def compatible_field_types(self, type_str: str) -> List[FieldType]:
        """Alternative field types for a parameter, recommended one first."""
        return list(_COMPATIBLE.get(self.map_type(type_str), [FieldType.TEXT, FieldType.TEXTAREA]))

    def enum_metadata(self, type_str: str) -> Optional[EnumMetadata]:
        return self.ecosystem.enum_metadata(self.ecosystem.unwrap_type(type_str), self.metadata)


def map_parameter_type(type_str: str, ecosystem: Union[str, Ecosystem] = "evm") -> FieldType:
    return TypeMapper(ecosystem).map_type(type_str)
