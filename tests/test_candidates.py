"""Tests for the endpoint candidate table."""

from chatgate.gateway.candidates import (
    DEFAULT_TABLE,
    CandidateTable,
    EndpointCandidate,
    Operation,
    empty_body,
)


class TestDefaultTable:
    def test_every_operation_has_candidates(self):
        for operation in Operation:
            assert DEFAULT_TABLE.for_operation(operation), operation

    def test_list_contacts_has_four_candidates(self):
        assert len(DEFAULT_TABLE.for_operation(Operation.LIST_CONTACTS)) == 4

    def test_ordered_by_priority(self):
        for operation in Operation:
            priorities = [c.priority for c in DEFAULT_TABLE.for_operation(operation)]
            assert priorities == sorted(priorities)

    def test_most_recent_generation_first(self):
        first = DEFAULT_TABLE.for_operation(Operation.SEND_MESSAGE)[0]
        assert first.path_template == "/message/sendText/{instance}"
        assert first.verb == "POST"


class TestBodyBuilders:
    PARAMS = {
        "contact_id": "5511999998888",
        "jid": "5511999998888@s.whatsapp.net",
        "phone": "5511999998888",
        "page_size": 20,
        "sort_order": "desc",
        "text": "hello",
    }

    def test_paged_find_messages_body(self):
        candidate = DEFAULT_TABLE.for_operation(Operation.LIST_MESSAGES)[0]
        body = candidate.build_body(self.PARAMS)

        assert body == {
            "where": {"key": {"remoteJid": "5511999998888@s.whatsapp.net"}},
            "limit": 20,
            "sort": {"messageTimestamp": "desc"},
        }

    def test_send_text_generations_differ(self):
        v2, v1 = DEFAULT_TABLE.for_operation(Operation.SEND_MESSAGE)[:2]

        assert v2.build_body(self.PARAMS) == {"number": "5511999998888", "text": "hello"}
        assert v1.build_body(self.PARAMS)["textMessage"] == {"text": "hello"}

    def test_path_substitutes_instance_and_jid(self):
        candidate = next(
            c
            for c in DEFAULT_TABLE.for_operation(Operation.LIST_MESSAGES)
            if "{jid}" in c.path_template
        )
        path = candidate.build_path("acme", self.PARAMS)

        assert "acme" in path
        assert "5511999998888@s.whatsapp.net" in path

    def test_instance_is_url_quoted(self):
        candidate = DEFAULT_TABLE.for_operation(Operation.CONNECTION_STATUS)[0]
        assert candidate.build_path("my instance", {}) == "/instance/connectionState/my%20instance"


class TestExtension:
    def test_extended_table_inserts_by_priority(self):
        extra = EndpointCandidate(Operation.LIST_CONTACTS, "/v3/contacts/{instance}", "POST", empty_body, 5)
        table = DEFAULT_TABLE.extended(extra)

        assert table.for_operation(Operation.LIST_CONTACTS)[0] is extra
        assert len(table) == len(DEFAULT_TABLE) + 1
        # Original table untouched
        assert extra not in DEFAULT_TABLE.for_operation(Operation.LIST_CONTACTS)

    def test_equal_priority_keeps_declaration_order(self):
        a = EndpointCandidate(Operation.DISCONNECT, "/a/{instance}", priority=1)
        b = EndpointCandidate(Operation.DISCONNECT, "/b/{instance}", priority=1)
        table = CandidateTable([a, b])

        assert table.for_operation(Operation.DISCONNECT) == (a, b)

    def test_label(self):
        candidate = EndpointCandidate(Operation.DISCONNECT, "/x/{instance}", "DELETE")
        assert candidate.label == "DELETE /x/{instance}"


class TestConnectCandidates:
    def test_qrcode_generation_after_connect_paths(self):
        paths = [c.path_template for c in DEFAULT_TABLE.for_operation(Operation.CONNECT)]
        assert paths == [
            "/instance/connect/{instance}",
            "/manager/instance/connect/{instance}",
            "/instance/qrcode/{instance}",
        ]
