"""Gateway configuration from environment."""

import os
from dataclasses import dataclass
from typing import Protocol

from .credentials import TenantCredentials

DEFAULT_ATTEMPT_TIMEOUT = 12.0
DEFAULT_MAX_RETRIES = 1
DEFAULT_RETRY_DELAY = 0.2
DEFAULT_REQUEST_DEADLINE = 30.0


@dataclass(frozen=True)
class GatewaySettings:
    """Tunables shared by every cascade.

    attempt_timeout bounds a single candidate, request_deadline bounds a
    whole dashboard request when the caller supplies no deadline.
    """

    attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    request_deadline: float = DEFAULT_REQUEST_DEADLINE


class CredentialsSource(Protocol):
    def get_credentials(self, tenant_id: str | None = None) -> TenantCredentials: ...


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"Invalid {name}: expected a number") from None


def load_settings() -> GatewaySettings:
    """Read gateway tunables.

    Optional env vars:
    - GATEWAY_ATTEMPT_TIMEOUT: per-candidate timeout in seconds (default 12)
    - GATEWAY_MAX_RETRIES: cascade retries for read operations (default 1)
    - GATEWAY_RETRY_DELAY: base backoff in seconds (default 0.2)
    - GATEWAY_REQUEST_DEADLINE: default request deadline in seconds (default 30)
    """
    return GatewaySettings(
        attempt_timeout=_float_env("GATEWAY_ATTEMPT_TIMEOUT", DEFAULT_ATTEMPT_TIMEOUT),
        max_retries=int(_float_env("GATEWAY_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
        retry_delay=_float_env("GATEWAY_RETRY_DELAY", DEFAULT_RETRY_DELAY),
        request_deadline=_float_env("GATEWAY_REQUEST_DEADLINE", DEFAULT_REQUEST_DEADLINE),
    )


class EnvCredentialsSource:
    """Single-tenant credentials from the environment.

    Required env vars:
    - EVOLUTION_BASE_URL: Base URL (e.g., http://localhost:8080)
    - EVOLUTION_API_KEY: API token
    - EVOLUTION_INSTANCE: Instance name
    """

    def get_credentials(self, tenant_id: str | None = None) -> TenantCredentials:
        base_url = os.environ.get("EVOLUTION_BASE_URL", "")
        api_key = os.environ.get("EVOLUTION_API_KEY", "")
        instance = os.environ.get("EVOLUTION_INSTANCE", "")

        missing = [
            name
            for name, value in (
                ("EVOLUTION_BASE_URL", base_url),
                ("EVOLUTION_API_KEY", api_key),
                ("EVOLUTION_INSTANCE", instance),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"Missing Evolution config: {', '.join(missing)}")

        return TenantCredentials(base_url=base_url, token=api_key, instance_id=instance)
