import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"
DEFAULT_SOURCIFY_SERVER_URL = "https://sourcify.dev/server"
DEFAULT_SOURCIFY_REPO_URL = "https://repo.sourcify.dev"
DEFAULT_PROVIDER_TIMEOUT = 4.0

CONTRACT_DEFINITIONS_SERVICE = "contract-definitions"


@dataclass
class Config:
    etherscan_api_key: Optional[str] = None
    etherscan_base_url: str = DEFAULT_ETHERSCAN_BASE_URL
    sourcify_server_url: str = DEFAULT_SOURCIFY_SERVER_URL
    sourcify_repo_url: str = DEFAULT_SOURCIFY_REPO_URL
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    default_provider: Optional[str] = None
    user_service_config: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    rpc_overrides: Dict[str, str] = field(default_factory=dict)
    log_level: str = "WARNING"


class ServiceConfigLookup:
    """
    Read-only two-tier lookup for per-network service settings.
    - User overrides keyed by network id, then service name.
    - Application-wide defaults keyed by service name.
    """

    def __init__(
        self,
        user_config: Optional[Dict[str, Dict[str, Any]]] = None,
        app_defaults: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self._user = {
            str(network_id): {str(k): dict(v) for k, v in (services or {}).items() if isinstance(v, dict)}
            for network_id, services in (user_config or {}).items()
            if isinstance(services, dict)
        }
        self._app = {str(k): dict(v) for k, v in (app_defaults or {}).items()}

    def user_setting(self, network_id: str, service: str, key: str) -> Any:
        return self._user.get(network_id, {}).get(service, {}).get(key)

    def app_setting(self, service: str, key: str) -> Any:
        return self._app.get(service, {}).get(key)

    def user_default_provider(self, network_id: str) -> Optional[str]:
        return _clean(self.user_setting(network_id, CONTRACT_DEFINITIONS_SERVICE, "defaultProvider"))

    def app_default_provider(self) -> Optional[str]:
        return _clean(self.app_setting(CONTRACT_DEFINITIONS_SERVICE, "defaultProvider"))


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip().lower()
    return None


def _load_user_service_config(path: Optional[str]) -> Dict[str, Dict[str, Any]]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ValueError(f"Cannot read USER_SERVICE_CONFIG '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"USER_SERVICE_CONFIG '{path}' is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("USER_SERVICE_CONFIG must contain a JSON object keyed by network id.")
    return data


def _load_rpc_overrides() -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for key, value in os.environ.items():
        if key.startswith("RPC_URL_") and value.strip():
            network_id = key[len("RPC_URL_"):].lower().replace("_", "-")
            overrides[network_id] = value.strip()
    return overrides


def load_config() -> Config:
    """Load configuration from environment variables."""
    api_key = (os.getenv("ETHERSCAN_API_KEY") or "").strip() or None
    base_url = os.getenv("ETHERSCAN_BASE_URL", DEFAULT_ETHERSCAN_BASE_URL).rstrip("/")
    sourcify_server = os.getenv("SOURCIFY_SERVER_URL", DEFAULT_SOURCIFY_SERVER_URL).rstrip("/")
    sourcify_repo = os.getenv("SOURCIFY_REPO_URL", DEFAULT_SOURCIFY_REPO_URL).rstrip("/")
    timeout = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", str(DEFAULT_PROVIDER_TIMEOUT)))
    if timeout <= 0:
        raise ValueError("PROVIDER_TIMEOUT_SECONDS must be positive.")
    default_provider = _clean(os.getenv("CONTRACT_DEFINITION_DEFAULT_PROVIDER"))

    return Config(
        etherscan_api_key=api_key,
        etherscan_base_url=base_url,
        sourcify_server_url=sourcify_server,
        sourcify_repo_url=sourcify_repo,
        provider_timeout=timeout,
        default_provider=default_provider,
        user_service_config=_load_user_service_config(os.getenv("USER_SERVICE_CONFIG")),
        rpc_overrides=_load_rpc_overrides(),
        log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
    )


def build_lookup(config: Config) -> ServiceConfigLookup:
    app_defaults: Dict[str, Dict[str, Any]] = {}
    if config.default_provider:
        app_defaults[CONTRACT_DEFINITIONS_SERVICE] = {"defaultProvider": config.default_provider}
    return ServiceConfigLookup(config.user_service_config, app_defaults)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "WARNING").upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
