import json
import logging
from typing import Any, Callable, List, Optional, Sequence, Union

from eth_utils import keccak

from .ecosystem import Ecosystem
from .ecosystems import get_ecosystem
from .errors import MalformedArtifactError
from .models import ContractSchema, RawProviderArtifact

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_NAME = "ContractFromABI"
_MAX_DEPTH = 5

ShapeMatcher = Callable[[Any, int], Optional[List[Any]]]


def _direct_list(payload: Any, depth: int) -> Optional[List[Any]]:
    return payload if isinstance(payload, list) else None


def _json_text(payload: Any, depth: int) -> Optional[List[Any]]:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if not isinstance(payload, str):
        return None
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedArtifactError(f"Contract definition is not valid JSON: {exc.msg}.") from exc
    return unwrap_interface(parsed, depth + 1)


def _abi_key(payload: Any, depth: int) -> Optional[List[Any]]:
    if isinstance(payload, dict) and "abi" in payload:
        return unwrap_interface(payload["abi"], depth + 1)
    return None


def _metadata_output(payload: Any, depth: int) -> Optional[List[Any]]:
    if not isinstance(payload, dict) or "metadata" not in payload:
        return None
    metadata = payload["metadata"]
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError:
            return None
    output = metadata.get("output") if isinstance(metadata, dict) else None
    if isinstance(output, dict) and "abi" in output:
        return unwrap_interface(output["abi"], depth + 1)
    return None


def _output_abi(payload: Any, depth: int) -> Optional[List[Any]]:
    output = payload.get("output") if isinstance(payload, dict) else None
    if isinstance(output, dict) and "abi" in output:
        return unwrap_interface(output["abi"], depth + 1)
    return None


def _explorer_result(payload: Any, depth: int) -> Optional[List[Any]]:
    if isinstance(payload, dict) and "result" in payload:
        return unwrap_interface(payload["result"], depth + 1)
    return None


SHAPE_MATCHERS: Sequence[ShapeMatcher] = (
    _direct_list,
    _json_text,
    _abi_key,
    _metadata_output,
    _output_abi,
    _explorer_result,
)


def unwrap_interface(payload: Any, _depth: int = 0) -> List[Any]:
    """Reduce a provider payload of any known shape to the list of interface items."""
    if _depth > _MAX_DEPTH:
        raise MalformedArtifactError("Contract definition is nested too deeply.")
    for matcher in SHAPE_MATCHERS:
        items = matcher(payload, _depth)
        if items is not None:
            return items
    raise MalformedArtifactError(
        f"Contract definition must resolve to a JSON array, got {type(payload).__name__}."
    )


def schema_from_items(
    items: List[Any],
    ecosystem: Union[str, Ecosystem],
    name: Optional[str] = None,
    address: Optional[str] = None,
) -> ContractSchema:
    rules = get_ecosystem(ecosystem)
    functions, metadata = rules.transform(items)
    logger.debug("Normalized %d functions for %s.", len(functions), address or name)
    return ContractSchema(
        ecosystem=rules.name,
        name=name or DEFAULT_CONTRACT_NAME,
        address=address,
        functions=tuple(functions),
        metadata=metadata,
    )


def normalize(
    payload: Any,
    ecosystem: Union[str, Ecosystem],
    name: Optional[str] = None,
    address: Optional[str] = None,
) -> ContractSchema:
    return schema_from_items(unwrap_interface(payload), ecosystem, name, address)


def normalize_artifact(
    artifact: RawProviderArtifact, ecosystem: Union[str, Ecosystem], address: Optional[str] = None
) -> ContractSchema:
    return normalize(artifact.payload, ecosystem, artifact.contract_name, address)


def definition_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return json.dumps(payload, sort_keys=True)


def definition_hash(payload: Any) -> str:
    return "0x" + keccak(text=definition_text(payload)).hex()
