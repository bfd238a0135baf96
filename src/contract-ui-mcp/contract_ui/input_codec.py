import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .ecosystem import Ecosystem
from .ecosystems import get_ecosystem
from .errors import ParameterParseError
from .models import ContractFunction, FunctionParameter


class InputCodec:
    """
    Converts submitted form values into native call arguments.

    parse_input() is the single recursive entry point. Top-level composite values
    arrive as JSON text; nested calls get already-structured values
    (is_recursive=True). Every failure is re-raised as ParameterParseError naming
    the parameter at each level, so deep errors stay attributable.
    """

    def __init__(self, ecosystem: Union[str, Ecosystem], metadata: Optional[Dict[str, Any]] = None) -> None:
        self.ecosystem = get_ecosystem(ecosystem)
        self.metadata = metadata or {}

    def parse_input(self, param: FunctionParameter, raw: Any, is_recursive: bool = False) -> Any:
        try:
            return self._parse(param, raw, is_recursive)
        except (ValueError, TypeError) as exc:
            raise ParameterParseError(param.name or param.type, param.type, str(exc)) from exc

    def parse_inputs(self, function: ContractFunction, values: Union[Mapping[str, Any], Sequence[Any]]) -> List[Any]:
        """Parse a whole submission, by parameter name or by position, in declared order."""
        if isinstance(values, Mapping):
            missing = [p.name or str(i) for i, p in enumerate(function.inputs) if (p.name or str(i)) not in values]
            if missing:
                raise ValueError(f"Missing values for {function.name}: {', '.join(missing)}.")
            ordered = [values[p.name or str(i)] for i, p in enumerate(function.inputs)]
        else:
            ordered = list(values)
            if len(ordered) != len(function.inputs):
                raise ValueError(
                    f"{function.name} expects {len(function.inputs)} argument(s), got {len(ordered)}."
                )
        return [self.parse_input(param, value) for param, value in zip(function.inputs, ordered)]

    def load_json(self, raw: Any, is_recursive: bool, expected: str) -> Any:
        if is_recursive or not isinstance(raw, str):
            return raw
        text = raw.strip()
        if not text:
            raise ValueError(f"Expected a JSON {expected}, got an empty string.")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON for {expected}: {exc.msg}.") from exc

    def _parse(self, param: FunctionParameter, raw: Any, is_recursive: bool) -> Any:
        element_type = self.ecosystem.array_element_type(param.type)
        if element_type is not None:
            return self._parse_array(param, element_type, raw, is_recursive)

        components = self.ecosystem.struct_components(param, self.metadata)
        if components is not None:
            return self._parse_struct(param, components, raw, is_recursive)

        return self.ecosystem.parse_value(self, param, raw, is_recursive)

    def _parse_array(self, param: FunctionParameter, element_type: str, raw: Any, is_recursive: bool) -> List[Any]:
        items = self.load_json(raw, is_recursive, "array")
        if not isinstance(items, list):
            raise ValueError(f"Expected an array, got {type(items).__name__}.")
        length = self.ecosystem.array_length(param.type)
        if length is not None and len(items) != length:
            raise ValueError(f"Expected exactly {length} elements, got {len(items)}.")

        parsed = []
        for index, item in enumerate(items):
            element = FunctionParameter(
                name=f"{param.name}[{index}]", type=element_type, components=param.components
            )
            parsed.append(self.parse_input(element, item, is_recursive=True))
        return parsed

    def _parse_struct(self, param, components, raw, is_recursive) -> Dict[str, Any]:
        data = self.load_json(raw, is_recursive, "object")
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}.")

        expected = [component.name for component in components]
        unnamed = [str(index) for index, key in enumerate(expected) if not key]
        if unnamed:
            raise ValueError(f"Components at position(s) {', '.join(unnamed)} have no name; cannot map object keys.")
        duplicates = sorted({key for key in expected if expected.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate component names: {', '.join(duplicates)}.")

        missing = [key for key in expected if key not in data]
        extra = [key for key in data if key not in expected]
        if missing or extra or len(data) != len(expected):
            problems = []
            if missing:
                problems.append(f"missing keys: {', '.join(missing)}")
            if extra:
                problems.append(f"unexpected keys: {', '.join(extra)}")
            raise ValueError(
                f"Object must have exactly {len(expected)} keys ({', '.join(expected)}); {'; '.join(problems)}."
            )

        return {
            component.name: self.parse_input(component, data[component.name], is_recursive=True)
            for component in components
        }


def parse_input(
    param: FunctionParameter,
    raw: Any,
    ecosystem: Union[str, Ecosystem] = "evm",
    is_recursive: bool = False,
    metadata: Optional[Dict[str, Any]] = None,
) -> Any:
    return InputCodec(ecosystem, metadata).parse_input(param, raw, is_recursive)
