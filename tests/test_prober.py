"""Tests for the cascade prober - candidate order, failure kinds, deadlines."""

import time

import pytest
import requests

from chatgate.gateway.candidates import DEFAULT_TABLE, Operation
from chatgate.gateway.credentials import API_KEY_HEADER, BEARER_HEADER, CUSTOM_AUTH_HEADER
from chatgate.gateway.deadline import Deadline
from chatgate.gateway.errors import (
    CascadeAbandonedError,
    CascadeExhaustedError,
    StructuralMismatchError,
)
from chatgate.gateway.prober import CascadeProber, decode_body

CONTACTS = DEFAULT_TABLE.for_operation(Operation.LIST_CONTACTS)
SEND = DEFAULT_TABLE.for_operation(Operation.SEND_MESSAGE)

CONTACTS_BODY = [{"remoteJid": "5511999998888@s.whatsapp.net", "pushName": "Ana"}]
SEND_PARAMS = {
    "contact_id": "5511999998888",
    "jid": "5511999998888@s.whatsapp.net",
    "phone": "5511999998888",
    "text": "hello",
}


class TestCascadeOrder:
    def test_first_valid_candidate_wins_after_k_calls(self, credentials, fake_session, response_factory):
        session = fake_session(
            [
                response_factory(404, {"error": "Not Found"}),
                response_factory(200, CONTACTS_BODY),
            ]
        )
        prober = CascadeProber(session=session)

        result = prober.run(Operation.LIST_CONTACTS, CONTACTS, credentials, {})

        assert result.attempts == 2
        assert result.candidate is CONTACTS[1]
        assert result.body == CONTACTS_BODY
        assert len(session.calls) == 2
        assert session.calls[0]["url"] == "http://evolution.test/chat/findContacts/acme"
        assert session.calls[1]["url"] == "http://evolution.test/chat/findChats/acme"

    def test_exhaustion_reports_every_candidate(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(404, {"error": "Not Found"}) for _ in CONTACTS])
        prober = CascadeProber(session=session)

        with pytest.raises(CascadeExhaustedError) as exc_info:
            prober.run(Operation.LIST_CONTACTS, CONTACTS, credentials, {})

        failures = exc_info.value.failures
        assert len(failures) == len(CONTACTS) == len(session.calls)
        assert [f.candidate for f in failures] == [c.label for c in CONTACTS]
        assert all(f.kind == "http_status" and f.status_code == 404 for f in failures)
        assert exc_info.value.retryable is False
        assert not isinstance(exc_info.value, CascadeAbandonedError)

    def test_empty_candidate_list_exhausts_immediately(self, credentials, fake_session):
        session = fake_session()
        with pytest.raises(CascadeExhaustedError) as exc_info:
            CascadeProber(session=session).run(Operation.LIST_CONTACTS, (), credentials, {})
        assert exc_info.value.failures == []
        assert session.calls == []


class TestFailureKinds:
    def _single_failure(self, credentials, session, candidates=CONTACTS[:1], operation=Operation.LIST_CONTACTS, params=None):
        with pytest.raises(CascadeExhaustedError) as exc_info:
            CascadeProber(session=session).run(operation, candidates, credentials, params or {})
        return exc_info.value.failures[0]

    def test_auth_rejection(self, credentials, fake_session, response_factory):
        failure = self._single_failure(credentials, fake_session([response_factory(401, {"error": "Unauthorized"})]))
        assert failure.kind == "auth"
        assert failure.status_code == 401

    def test_connection_error_is_transport(self, credentials, fake_session):
        failure = self._single_failure(credentials, fake_session([requests.ConnectionError("refused")]))
        assert failure.kind == "transport"
        assert failure.status_code is None

    def test_timeout_is_transport(self, credentials, fake_session):
        failure = self._single_failure(credentials, fake_session([requests.Timeout("slow")]))
        assert failure.kind == "transport"
        assert "timeout" in failure.detail

    def test_unrecognized_shape_is_structural(self, credentials, fake_session, response_factory):
        failure = self._single_failure(credentials, fake_session([response_factory(200, {"foo": "bar"})]))
        assert failure.kind == "structural"
        assert failure.status_code == 200

    def test_error_string_list_is_structural(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(200, {"status": 200, "message": ["Instance not found"]})])
        failure = self._single_failure(credentials, session)
        assert failure.kind == "structural"

    def test_html_page_is_structural(self, credentials, fake_session, response_factory):
        html = "<!DOCTYPE html><html><body>Login</body></html>"
        failure = self._single_failure(credentials, fake_session([response_factory(200, text=html)]))
        assert failure.kind == "structural"
        assert "HTML" in failure.detail

    def test_send_with_error_marker_is_structural(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(200, {"status": "error", "message": "bad number"})])
        failure = self._single_failure(
            credentials, session, candidates=SEND[:1], operation=Operation.SEND_MESSAGE, params=SEND_PARAMS
        )
        assert failure.kind == "structural"

    def test_transport_failures_are_retryable(self, credentials, fake_session, response_factory):
        session = fake_session([requests.ConnectionError("x"), response_factory(503, {})])
        with pytest.raises(CascadeExhaustedError) as exc_info:
            CascadeProber(session=session).run(Operation.LIST_CONTACTS, CONTACTS[:2], credentials, {})
        assert exc_info.value.retryable is True


class TestRequestShape:
    def test_token_sent_under_every_header(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(200, CONTACTS_BODY)])
        CascadeProber(session=session).run(Operation.LIST_CONTACTS, CONTACTS, credentials, {})

        headers = session.calls[0]["headers"]
        assert headers[BEARER_HEADER] == "Bearer tok_test_secret"
        assert headers[API_KEY_HEADER] == "tok_test_secret"
        assert headers[CUSTOM_AUTH_HEADER] == "tok_test_secret"

    def test_post_body_sent_as_json(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(201, {"key": {"id": "ABC"}})])
        CascadeProber(session=session).run(Operation.SEND_MESSAGE, SEND, credentials, SEND_PARAMS)

        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["json"] == {"number": "5511999998888", "text": "hello"}
        assert "params" not in call

    def test_get_without_body_sends_neither(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(404), response_factory(200, CONTACTS_BODY)])
        CascadeProber(session=session).run(Operation.LIST_CONTACTS, CONTACTS, credentials, {})

        call = session.calls[1]
        assert call["method"] == "GET"
        assert "json" not in call and "params" not in call


class TestDeadline:
    def test_expired_deadline_abandons_without_calls(self, credentials, fake_session):
        session = fake_session()
        expired = Deadline(at=time.monotonic() - 1)

        with pytest.raises(CascadeAbandonedError) as exc_info:
            CascadeProber(session=session).run(Operation.LIST_CONTACTS, CONTACTS, credentials, {}, expired)

        assert session.calls == []
        assert exc_info.value.failures[0].kind == "deadline"
        assert exc_info.value.retryable is False

    def test_attempt_timeout_capped_by_deadline(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(200, CONTACTS_BODY)])
        prober = CascadeProber(session=session, attempt_timeout=12.0)

        prober.run(Operation.LIST_CONTACTS, CONTACTS, credentials, {}, Deadline.after(5.0))

        assert 0 < session.calls[0]["timeout"] <= 5.0

    def test_attempt_timeout_used_without_deadline(self, credentials, fake_session, response_factory):
        session = fake_session([response_factory(200, CONTACTS_BODY)])
        CascadeProber(session=session, attempt_timeout=7.0).run(Operation.LIST_CONTACTS, CONTACTS, credentials, {})
        assert session.calls[0]["timeout"] == 7.0


class TestDecodeBody:
    def test_json(self, response_factory):
        assert decode_body(response_factory(200, {"a": 1})) == {"a": 1}

    def test_empty(self, response_factory):
        assert decode_body(response_factory(200, text="")) is None

    def test_plain_text(self, response_factory):
        assert decode_body(response_factory(200, text="2@qr-code-data")) == "2@qr-code-data"

    def test_html_rejected(self, response_factory):
        with pytest.raises(StructuralMismatchError):
            decode_body(response_factory(200, text="<html><head></head></html>"))
