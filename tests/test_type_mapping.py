import pytest

from contract_ui.errors import UnknownTypeWarning
from contract_ui.evm import MAX_SAFE_INTEGER_BITS
from contract_ui.models import FieldType
from contract_ui.type_mapping import TypeMapper, map_parameter_type

MAX_SAFE_INTEGER = 2 ** 53 - 1


@pytest.mark.parametrize(
    "type_str,expected",
    [
        ("address", FieldType.BLOCKCHAIN_ADDRESS),
        ("bool", FieldType.CHECKBOX),
        ("string", FieldType.TEXT),
        ("bytes", FieldType.TEXTAREA),
        ("bytes32", FieldType.TEXT),
        ("uint8", FieldType.NUMBER),
        ("int32", FieldType.NUMBER),
        ("uint48", FieldType.NUMBER),
        ("uint64", FieldType.BIGINT),
        ("uint256", FieldType.BIGINT),
        ("int256", FieldType.BIGINT),
        ("uint", FieldType.BIGINT),
        ("uint256[]", FieldType.ARRAY),
        ("address[3]", FieldType.ARRAY),
        ("tuple", FieldType.OBJECT),
        ("tuple[]", FieldType.ARRAY_OBJECT),
        ("uint8[][]", FieldType.ARRAY),
    ],
)
def test_evm_type_table(type_str, expected):
    assert map_parameter_type(type_str) == expected


@pytest.mark.parametrize("bits", range(8, 257, 8))
@pytest.mark.parametrize("prefix", ["uint", "int"])
def test_integers_wider_than_safe_range_are_bigint(prefix, bits):
    signed = prefix == "int"
    high = 2 ** (bits - 1) - 1 if signed else 2 ** bits - 1
    field_type = map_parameter_type(f"{prefix}{bits}")
    if high > MAX_SAFE_INTEGER:
        assert field_type == FieldType.BIGINT
    else:
        assert field_type == FieldType.NUMBER
        assert bits <= MAX_SAFE_INTEGER_BITS


def test_unknown_type_falls_back_to_text_with_warning():
    with pytest.warns(UnknownTypeWarning, match="fixed128x18"):
        assert map_parameter_type("fixed128x18") == FieldType.TEXT


def test_resolve_returns_none_for_unknown():
    assert TypeMapper("evm").resolve("function") is None


def test_compatible_field_types_recommended_first():
    mapper = TypeMapper("evm")
    assert mapper.compatible_field_types("uint256") == [
        FieldType.BIGINT,
        FieldType.NUMBER,
        FieldType.AMOUNT,
        FieldType.TEXT,
    ]
    assert mapper.compatible_field_types("bool")[0] == FieldType.CHECKBOX
    assert FieldType.SELECT in mapper.compatible_field_types("bool")


@pytest.mark.parametrize(
    "type_str,expected",
    [
        ("Address", FieldType.BLOCKCHAIN_ADDRESS),
        ("U32", FieldType.NUMBER),
        ("I32", FieldType.NUMBER),
        ("U64", FieldType.BIGINT),
        ("I128", FieldType.BIGINT),
        ("U256", FieldType.BIGINT),
        ("Bool", FieldType.CHECKBOX),
        ("ScSymbol", FieldType.TEXT),
        ("Bytes", FieldType.BYTES),
        ("BytesN<32>", FieldType.BYTES),
        ("Vec<Address>", FieldType.ARRAY),
        ("Map<ScSymbol, U32>", FieldType.MAP),
        ("Tuple<U32, Bool>", FieldType.OBJECT),
        ("Option<U64>", FieldType.BIGINT),
        ("Result<Address, Error>", FieldType.BLOCKCHAIN_ADDRESS),
    ],
)
def test_stellar_type_table(type_str, expected):
    assert map_parameter_type(type_str, "stellar") == expected


def test_stellar_user_defined_types_use_metadata():
    metadata = {"structs": {"Config": ()}, "enums": {"Color": object()}}
    mapper = TypeMapper("stellar", metadata)
    assert mapper.map_type("Config") == FieldType.OBJECT
    assert mapper.map_type("Vec<Config>") == FieldType.ARRAY_OBJECT
    assert mapper.map_type("Color") == FieldType.ENUM
