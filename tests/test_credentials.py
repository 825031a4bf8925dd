"""Tests for outbound auth headers and tenant credentials."""

from chatgate.gateway.credentials import (
    API_KEY_HEADER,
    BEARER_HEADER,
    CUSTOM_AUTH_HEADER,
    TenantCredentials,
    build_auth_headers,
)


class TestBuildAuthHeaders:
    def test_token_under_every_convention(self):
        headers = build_auth_headers("abc123")

        assert headers[BEARER_HEADER] == "Bearer abc123"
        assert headers[API_KEY_HEADER] == "abc123"
        assert headers[CUSTOM_AUTH_HEADER] == "abc123"
        assert headers["Content-Type"] == "application/json"

    def test_pure_and_total(self):
        assert build_auth_headers("") == build_auth_headers("")
        assert build_auth_headers("x") is not build_auth_headers("x")


class TestTenantCredentials:
    def test_trailing_slashes_removed(self):
        creds = TenantCredentials(base_url="https://api.example.com///", token="t", instance_id="i")
        assert creds.base_url == "https://api.example.com"

    def test_repr_hides_token(self):
        creds = TenantCredentials(base_url="https://api.example.com", token="supersecret", instance_id="i")
        assert "supersecret" not in repr(creds)
