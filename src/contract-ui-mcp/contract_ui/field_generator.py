import uuid
from typing import Any, Dict, List, Optional, Union

from .ecosystem import Ecosystem, humanize
from .ecosystems import get_ecosystem
from .models import (
    ContractFunction,
    ContractSchema,
    EnumMetadata,
    FieldType,
    FieldValidation,
    FormField,
    FunctionParameter,
)
from .type_mapping import TypeMapper

_OBJECT_KINDS = (FieldType.OBJECT, FieldType.ARRAY_OBJECT)
_ARRAY_KINDS = (FieldType.ARRAY, FieldType.ARRAY_OBJECT)


def default_value_for(field_type: FieldType) -> Any:
    if field_type == FieldType.CHECKBOX:
        return False
    if field_type in (FieldType.NUMBER, FieldType.AMOUNT):
        return 0
    if field_type == FieldType.BIGINT:
        return "0"
    return ""


def _bounded_validation(rules: Ecosystem, type_str: str, required: bool = True) -> FieldValidation:
    validation = FieldValidation(required=required)
    bounds = rules.safe_integer_bounds.get(rules.unwrap_type(type_str))
    if bounds is not None:
        validation.min, validation.max = bounds
    return validation


def generate_field(
    parameter: FunctionParameter,
    ecosystem: Union[str, Ecosystem],
    schema: Optional[ContractSchema] = None,
) -> FormField:
    """Build the default form field for one function parameter."""
    rules = get_ecosystem(ecosystem)
    mapper = TypeMapper(rules, schema.metadata if schema else None)
    field_type = mapper.map_type(parameter.type)
    mapped_type = field_type

    enum_metadata: Optional[EnumMetadata] = None
    options: Optional[List[Dict[str, str]]] = None
    if field_type == FieldType.ENUM:
        enum_metadata = mapper.enum_metadata(parameter.type)
        if enum_metadata is None:
            enum_metadata = EnumMetadata(name=parameter.type, variants=(), is_unit_only=False)
        elif enum_metadata.is_unit_only:
            field_type = FieldType.SELECT
            options = [
                {"label": v.name, "value": str(v.value) if v.kind == "integer" else v.name}
                for v in enum_metadata.variants
            ]

    subject = parameter.display_name or parameter.name or parameter.type
    field = FormField(
        id=f"field-{uuid.uuid4().hex[:7]}",
        name=parameter.name or parameter.type,
        label=humanize(parameter.name) or parameter.type,
        type=field_type,
        placeholder=f"Select {subject}" if enum_metadata else f"Enter {subject}",
        helper_text=parameter.description or "",
        default_value=default_value_for(field_type),
        validation=_bounded_validation(rules, parameter.type, not rules.is_optional_type(parameter.type)),
        original_parameter_type=parameter.type,
        enum_metadata=enum_metadata,
        options=options,
    )

    if mapped_type in _ARRAY_KINDS:
        element = rules.array_element_type(rules.unwrap_type(parameter.type))
        if element is not None:
            element_type = mapper.map_type(element)
            field.element_type = element_type
            field.element_field_config = {
                "type": element_type.value,
                "validation": _bounded_validation(rules, element).to_dict(),
                "placeholder": f"Enter {element}",
            }

    if mapped_type in _OBJECT_KINDS and parameter.components is not None:
        field.components = parameter.components

    return field


def generate_fields(
    function: ContractFunction,
    ecosystem: Union[str, Ecosystem],
    schema: Optional[ContractSchema] = None,
) -> List[FormField]:
    return [generate_field(param, ecosystem, schema) for param in function.inputs]
