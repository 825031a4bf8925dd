"""Tests for observability utilities and PII-free gateway logs."""

import json
import logging
from unittest.mock import patch

import pytest

from chatgate.gateway.config import GatewaySettings
from chatgate.gateway.errors import CascadeExhaustedError
from chatgate.gateway.facade import Gateway
from chatgate.gateway.prober import CascadeProber
from chatgate.observability.correlation import correlation_scope, get_correlation_id
from chatgate.observability.logging import JsonFormatter
from chatgate.observability.redaction import (
    hash_identifier,
    redact_string,
    redact_value,
    safe_log_context,
)


class LogRecorder:
    """Simple recorder to capture log calls deterministically."""

    def __init__(self):
        self.calls: list[tuple[str, tuple, dict]] = []

    def _record(self, level: str, *args, **kwargs):
        self.calls.append((level, args, kwargs))

    def info(self, *args, **kwargs):
        self._record("info", *args, **kwargs)

    def warning(self, *args, **kwargs):
        self._record("warning", *args, **kwargs)

    def error(self, *args, **kwargs):
        self._record("error", *args, **kwargs)

    def get_all_logged_content(self) -> str:
        return " ".join(f"{args} {kwargs}" for _, args, kwargs in self.calls)

    def has_extra_field(self, key: str) -> bool:
        for _, _, kwargs in self.calls:
            if key in kwargs.get("extra", {}).get("extra_fields", {}):
                return True
        return False


class TestRedaction:
    def test_redact_jid(self):
        result = redact_string("chat 5511999998888@s.whatsapp.net failed")
        assert "5511999998888" not in result
        assert "[REDACTED]" in result

    def test_redact_bearer(self):
        result = redact_string("Authorization: Bearer tok_abc.def")
        assert "tok_abc" not in result

    def test_redact_phone_number(self):
        assert "99999" not in redact_string("Call +55 11 99999-8888")

    def test_redact_email(self):
        assert "user@example.com" not in redact_string("Email: user@example.com")

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"text": "secret", "number": "5511"})
        assert "secret" not in result
        assert "text" in result

    def test_redact_value_list_only_len(self):
        assert redact_value(["a", "b"]) == "list(len=2)"

    def test_safe_log_context(self):
        ctx = safe_log_context(jid="5511999998888@s.whatsapp.net", attempt=2, status_code=None)
        assert ctx == {"jid": "[REDACTED]", "attempt": "2", "status_code": "null"}

    def test_hash_identifier(self):
        value = hash_identifier("5511999998888")
        assert len(value) == 12
        assert value == hash_identifier("5511999998888")
        assert "5511999998888" not in value


class TestCorrelation:
    def test_scope_sets_and_restores(self):
        assert get_correlation_id() == ""
        with correlation_scope("cid-1") as cid:
            assert cid == "cid-1"
            assert get_correlation_id() == "cid-1"
        assert get_correlation_id() == ""

    def test_scope_generates(self):
        with correlation_scope() as cid:
            assert cid
            assert get_correlation_id() == cid


class TestJsonFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("chatgate.test", logging.WARNING, __file__, 1, "candidate rejected", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_format_with_extra_fields(self):
        output = JsonFormatter().format(self._record(extra_fields={"kind": "auth"}))

        data = json.loads(output)
        assert data["level"] == "WARNING"
        assert data["message"] == "candidate rejected"
        assert data["kind"] == "auth"
        assert "correlationId" not in data

    def test_format_with_correlation_id(self):
        with correlation_scope("cid-9"):
            data = json.loads(JsonFormatter().format(self._record()))
        assert data["correlationId"] == "cid-9"


class TestNoPiiInGatewayLogs:
    """Contact ids, message text and the token never reach the logs."""

    PHONE = "5511999998888"
    TEXT = "Segredo do hóspede"

    @pytest.fixture
    def recorders(self):
        facade_logger, prober_logger = LogRecorder(), LogRecorder()
        with patch("chatgate.gateway.facade.logger", facade_logger), patch(
            "chatgate.gateway.prober.logger", prober_logger
        ):
            yield facade_logger, prober_logger

    def _gateway(self, credentials, session):
        return Gateway(
            credentials,
            prober=CascadeProber(session=session),
            settings=GatewaySettings(max_retries=0),
            sleep=lambda _: None,
        )

    def test_failed_send(self, recorders, credentials, fake_session):
        facade_logger, prober_logger = recorders

        with pytest.raises(CascadeExhaustedError):
            self._gateway(credentials, fake_session()).send_message(self.PHONE, self.TEXT)

        content = facade_logger.get_all_logged_content() + prober_logger.get_all_logged_content()
        assert self.PHONE not in content
        assert self.TEXT not in content
        assert credentials.token not in content
        assert facade_logger.has_extra_field("contact_hash")
        assert facade_logger.has_extra_field("text_len")
        assert prober_logger.has_extra_field("candidate")

    def test_successful_send(self, recorders, credentials, fake_session, response_factory):
        facade_logger, _ = recorders
        session = fake_session([response_factory(201, {"key": {"id": "X", "remoteJid": f"{self.PHONE}@s.whatsapp.net"}})])

        self._gateway(credentials, session).send_message(self.PHONE, self.TEXT)

        content = facade_logger.get_all_logged_content()
        assert self.PHONE not in content
        assert self.TEXT not in content
