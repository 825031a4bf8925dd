"""Outbound authentication for provider requests.

Deployments of the same provider disagree on the auth header: the current
generation reads `apikey`, older ones want `Authorization: Bearer`, and some
container images read `AUTHENTICATION_API_KEY`. Every request carries all
three.
"""

from dataclasses import dataclass

BEARER_HEADER = "Authorization"
API_KEY_HEADER = "apikey"
CUSTOM_AUTH_HEADER = "AUTHENTICATION_API_KEY"


@dataclass(frozen=True)
class TenantCredentials:
    """Provider coordinates for one tenant."""

    base_url: str
    token: str
    instance_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def __repr__(self) -> str:
        return (
            f"TenantCredentials(base_url={self.base_url!r}, "
            f"token='***', instance_id={self.instance_id!r})"
        )


def build_auth_headers(token: str) -> dict[str, str]:
    """Header map with the token under every known convention."""
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        BEARER_HEADER: f"Bearer {token}",
        API_KEY_HEADER: token,
        CUSTOM_AUTH_HEADER: token,
    }
