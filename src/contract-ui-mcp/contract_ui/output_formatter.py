import json
import logging
from decimal import Decimal
from typing import Any, Union

from .ecosystem import Ecosystem
from .ecosystems import get_ecosystem
from .models import ContractFunction

logger = logging.getLogger(__name__)


def _prepare(value: Any) -> Any:
    # Integers become decimal strings at every depth so no precision is lost.
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict):
        return {str(key): _prepare(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_prepare(item) for item in value]
    return value


def format_value(value: Any, placeholder: str = "(null)") -> str:
    if value is None:
        return placeholder
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return json.dumps(_prepare(value), indent=2, default=str)


def format_function_result(decoded: Any, function: ContractFunction, ecosystem: Union[str, Ecosystem] = "evm") -> str:
    """Render a decoded call result for display. Never raises."""
    try:
        placeholder = get_ecosystem(ecosystem).null_placeholder
        value = decoded
        if isinstance(value, (list, tuple)) and len(function.outputs) == 1 and len(value) == 1:
            value = value[0]
        return format_value(value, placeholder)
    except Exception as exc:
        logger.warning("Failed to format result of %s: %s", function.name, exc)
        return f"[Error formatting result: {exc}]"
