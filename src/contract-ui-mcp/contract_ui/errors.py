from typing import Iterable, List, Optional


class ContractUIError(Exception):
    """Base class for contract loading and form codec failures."""


class ProviderFetchError(ContractUIError):
    """One provider attempt failed, timed out, or could not run."""

    def __init__(self, provider: str, reason: str, timed_out: bool = False) -> None:
        self.provider = provider
        self.reason = reason
        self.timed_out = timed_out
        super().__init__(f"Provider '{provider}' failed: {reason}")


class AllProvidersExhaustedError(ContractUIError):
    """Every candidate in the provider chain failed."""

    def __init__(self, failures: Iterable, address: Optional[str] = None) -> None:
        self.failures: List = list(failures)
        self.address = address
        if self.failures:
            detail = "; ".join(f"{item.provider}: {item.reason}" for item in self.failures)
        else:
            detail = "no provider supports this network"
        target = f" for {address}" if address else ""
        super().__init__(f"Failed to load contract definition{target} from any provider ({detail}).")


class MalformedArtifactError(ContractUIError, ValueError):
    """A fetched or pasted artifact cannot be turned into a contract schema."""


class ParameterParseError(ContractUIError, ValueError):
    """A submitted value cannot be converted to its declared native type."""

    def __init__(self, param_name: str, param_type: str, reason: str) -> None:
        self.param_name = param_name
        self.param_type = param_type
        self.reason = reason
        super().__init__(
            f"Failed to parse value for parameter '{param_name}' (type '{param_type}'): {reason}"
        )


class UnknownTypeWarning(UserWarning):
    """A parameter or result type is not recognised; a permissive fallback was used."""
