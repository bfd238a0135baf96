from typing import Dict, Union

from .ecosystem import Ecosystem
from .evm import EvmEcosystem
from .stellar import StellarEcosystem

_ECOSYSTEMS: Dict[str, Ecosystem] = {
    "evm": EvmEcosystem(),
    "stellar": StellarEcosystem(),
}


def get_ecosystem(ecosystem: Union[str, Ecosystem]) -> Ecosystem:
    if isinstance(ecosystem, Ecosystem):
        return ecosystem
    key = (ecosystem or "").strip().lower()
    if key not in _ECOSYSTEMS:
        supported = ", ".join(sorted(_ECOSYSTEMS))
        raise ValueError(f"Unsupported ecosystem '{ecosystem}'. Supported: {supported}.")
    return _ECOSYSTEMS[key]
