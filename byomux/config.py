"""
Configuration for byomux.

Runtime defaults come from environment variables (a local `.env` file is
honoured through python-dotenv). Provider configurations and API keys are
owned by external stores injected into the client; this module defines their
contracts and simple in-memory / environment-backed implementations.
"""
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol
from urllib.parse import urlparse

import dotenv

from .errors import ConfigurationError
from .types import ProviderConfig, generate_provider_id, is_valid_api_format

DEFAULT_THINKING_BUDGET = 8192
DEFAULT_MAX_OUTPUT_TOKENS = 16000
DEFAULT_MAX_INPUT_TOKENS = 128000
DEFAULT_REASONING_EFFORT = "medium"
DEFAULT_REQUEST_TIMEOUT = 120.0

ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class Settings:
    """
    Process-wide defaults used when a request does not override them.
    """
    thinking_budget: int = DEFAULT_THINKING_BUDGET
    default_max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    reasoning_effort: str = DEFAULT_REASONING_EFFORT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = "WARNING"


def _env(name: str, env_file: Optional[str]) -> Optional[str]:
    value = os.environ.get(name)
    if value is None and env_file and os.path.exists(env_file):
        value = dotenv.get_key(env_file, name)
    return value


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """
    Build Settings from BYOMUX_* environment variables.

    Args:
        env_file: Optional dotenv file consulted for variables missing from
                  the process environment.

    Raises:
        ConfigurationError: If a numeric variable cannot be parsed.
    """
    def number(name: str, default, cast):
        raw = _env(name, env_file)
        if raw is None or raw == "":
            return default
        try:
            return cast(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be a number, got {raw!r}")

    return Settings(
        thinking_budget=number("BYOMUX_THINKING_BUDGET", DEFAULT_THINKING_BUDGET, int),
        default_max_output_tokens=number("BYOMUX_DEFAULT_MAX_OUTPUT_TOKENS", DEFAULT_MAX_OUTPUT_TOKENS, int),
        reasoning_effort=_env("BYOMUX_REASONING_EFFORT", env_file) or DEFAULT_REASONING_EFFORT,
        request_timeout=number("BYOMUX_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
        log_level=(_env("BYOMUX_LOG_LEVEL", env_file) or "WARNING").upper(),
    )


# =============================================================================
# Store Contracts
# =============================================================================

class ProviderStore(Protocol):
    """
    Persistence for provider configurations, keyed by provider id.
    """

    def get(self, provider_id: str) -> Optional[ProviderConfig]: ...

    def put(self, provider_id: str, config: ProviderConfig) -> None: ...

    def delete(self, provider_id: str) -> None: ...

    def all(self) -> Dict[str, ProviderConfig]: ...


class KeyStore(Protocol):
    """
    Secret lookup for provider API keys.
    """

    def get_api_key(self, provider_id: str) -> Optional[str]: ...


class InMemoryProviderStore:
    def __init__(self, configs: Optional[Iterable[ProviderConfig]] = None):
        self._configs: Dict[str, ProviderConfig] = {}
        for config in configs or []:
            self._configs[generate_provider_id(config.name)] = config

    def get(self, provider_id: str) -> Optional[ProviderConfig]:
        return self._configs.get(provider_id)

    def put(self, provider_id: str, config: ProviderConfig) -> None:
        self._configs[provider_id] = config

    def delete(self, provider_id: str) -> None:
        self._configs.pop(provider_id, None)

    def all(self) -> Dict[str, ProviderConfig]:
        return dict(self._configs)


class InMemoryKeyStore:
    def __init__(self, keys: Optional[Dict[str, str]] = None):
        self._keys = dict(keys or {})

    def get_api_key(self, provider_id: str) -> Optional[str]:
        return self._keys.get(provider_id)

    def set_api_key(self, provider_id: str, api_key: Optional[str]) -> None:
        if api_key:
            self._keys[provider_id] = api_key
        else:
            self._keys.pop(provider_id, None)


class EnvKeyStore:
    """
    Reads keys from BYOMUX_KEY_<PROVIDER_ID> variables.

    The provider id is upper-cased and dashes become underscores, so
    'custom-my-proxy' is looked up as BYOMUX_KEY_CUSTOM_MY_PROXY.
    """

    def __init__(self, env_file: Optional[str] = ".env"):
        self.env_file = env_file

    @staticmethod
    def variable_name(provider_id: str) -> str:
        return "BYOMUX_KEY_" + provider_id.upper().replace("-", "_")

    def get_api_key(self, provider_id: str) -> Optional[str]:
        return _env(self.variable_name(provider_id), self.env_file) or None


# =============================================================================
# Validation
# =============================================================================

def validate_provider_config(
    config: ProviderConfig,
    existing: Optional[Dict[str, ProviderConfig]] = None,
    *,
    ignore_id: Optional[str] = None,
) -> None:
    """
    Reject a configuration before any network call is made.

    Args:
        config: The configuration to check.
        existing: Already registered configurations keyed by provider id.
        ignore_id: Provider id excluded from the duplicate check (updates).

    Raises:
        ConfigurationError: Empty/duplicate name, unsupported format, or a
                            base URL that is not an absolute http(s) URL.
    """
    name = (config.name or "").strip()
    if not name:
        raise ConfigurationError("Provider name must not be empty")

    if not is_valid_api_format(config.api_format):
        raise ConfigurationError(f"Unsupported API format: {config.api_format!r}", provider=name)

    parsed = urlparse(config.base_url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"Invalid base URL: {config.base_url!r}", provider=name)

    for provider_id, other in (existing or {}).items():
        if provider_id == ignore_id:
            continue
        if other.name.strip().lower() == name.lower():
            raise ConfigurationError(f"A provider named '{other.name}' already exists", provider=name)

    new_id = generate_provider_id(name)
    if new_id == "custom-":
        raise ConfigurationError("Provider name must contain at least one letter or digit", provider=name)
    if existing and new_id in existing and new_id != ignore_id:
        raise ConfigurationError(f"Provider id '{new_id}' is already in use", provider=name)


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes from a base URL."""
    return base_url.rstrip("/")


__all__: List[str] = [
    "Settings",
    "load_settings",
    "ProviderStore",
    "KeyStore",
    "InMemoryProviderStore",
    "InMemoryKeyStore",
    "EnvKeyStore",
    "validate_provider_config",
    "normalize_base_url",
    "ANTHROPIC_VERSION",
    "DEFAULT_THINKING_BUDGET",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "DEFAULT_MAX_INPUT_TOKENS",
]
