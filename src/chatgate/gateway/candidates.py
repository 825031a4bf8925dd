"""Endpoint candidate table.

Each logical operation maps to an ordered list of (path, verb, body shape)
candidates, most recent provider generation first and generic fallbacks last.
New provider variants are supported by adding rows here; the prober never
needs to change.

Body builders receive the operation's logical parameters:
- contact_id: identifier as supplied by the caller
- jid: contact_id as a WhatsApp JID
- phone: digits only
- page_size, sort_order: list_messages paging
- text: outbound message text
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote


class Operation(str, Enum):
    LIST_CONTACTS = "list-contacts"
    LIST_MESSAGES = "list-messages"
    SEND_MESSAGE = "send-message"
    CONNECTION_STATUS = "connection-status"
    DISCONNECT = "disconnect"
    CONNECT = "connect"
    PROFILE_PICTURE = "profile-picture"


BodyBuilder = Callable[[Mapping[str, Any]], dict[str, Any] | None]


def no_body(params: Mapping[str, Any]) -> None:
    return None


def empty_body(params: Mapping[str, Any]) -> dict[str, Any]:
    return {}


@dataclass(frozen=True)
class EndpointCandidate:
    """One concrete way an operation might be served by some deployment.

    For GET candidates the built body is sent as query parameters.
    """

    operation: Operation
    path_template: str
    verb: str = "GET"
    body_builder: BodyBuilder = no_body
    priority: int = 100

    @property
    def label(self) -> str:
        return f"{self.verb} {self.path_template}"

    def build_path(self, instance_id: str, params: Mapping[str, Any]) -> str:
        values = {
            key: quote(str(value), safe="@.")
            for key, value in params.items()
            if isinstance(value, (str, int))
        }
        values["instance"] = quote(instance_id, safe="")
        return self.path_template.format(**values)

    def build_body(self, params: Mapping[str, Any]) -> dict[str, Any] | None:
        return self.body_builder(params)


# -- list-messages bodies ------------------------------------------------------


def _find_messages_paged(params: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "where": {"key": {"remoteJid": params["jid"]}},
        "limit": params["page_size"],
        "sort": {"messageTimestamp": params["sort_order"]},
    }


def _find_messages_plain(params: Mapping[str, Any]) -> dict[str, Any]:
    return {"where": {"key": {"remoteJid": params["jid"]}}}


def _page_query(params: Mapping[str, Any]) -> dict[str, Any]:
    return {"limit": params["page_size"], "sort": params["sort_order"]}


# -- send-message bodies -------------------------------------------------------


def _send_text_v2(params: Mapping[str, Any]) -> dict[str, Any]:
    return {"number": params["phone"], "text": params["text"]}


def _send_text_v1(params: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "number": params["phone"],
        "options": {"delay": 1200, "presence": "composing"},
        "textMessage": {"text": params["text"]},
    }


def _chat_send_message(params: Mapping[str, Any]) -> dict[str, Any]:
    return {"chatId": params["jid"], "contentType": "text", "content": params["text"]}


def _legacy_send(params: Mapping[str, Any]) -> dict[str, Any]:
    # Legacy builds disagree on "message" vs "text"
    return {
        "phone": params["phone"],
        "chatId": params["jid"],
        "message": params["text"],
        "text": params["text"],
    }


# -- profile-picture bodies ----------------------------------------------------


def _number_body(params: Mapping[str, Any]) -> dict[str, Any]:
    return {"number": params["phone"]}


_DEFAULT_CANDIDATES: tuple[EndpointCandidate, ...] = (
    # list-contacts
    EndpointCandidate(Operation.LIST_CONTACTS, "/chat/findContacts/{instance}", "POST", empty_body, 10),
    EndpointCandidate(Operation.LIST_CONTACTS, "/chat/findChats/{instance}", "GET", no_body, 20),
    EndpointCandidate(Operation.LIST_CONTACTS, "/instance/fetchContacts/{instance}", "GET", no_body, 30),
    EndpointCandidate(Operation.LIST_CONTACTS, "/contacts/{instance}", "GET", no_body, 40),
    # list-messages
    EndpointCandidate(Operation.LIST_MESSAGES, "/chat/findMessages/{instance}", "POST", _find_messages_paged, 10),
    EndpointCandidate(Operation.LIST_MESSAGES, "/chat/findMessages/{instance}", "POST", _find_messages_plain, 20),
    EndpointCandidate(Operation.LIST_MESSAGES, "/instance/fetchMessages/{instance}/{jid}", "GET", _page_query, 30),
    EndpointCandidate(Operation.LIST_MESSAGES, "/api/instances/{instance}/chats/{jid}/messages", "GET", _page_query, 40),
    # send-message
    EndpointCandidate(Operation.SEND_MESSAGE, "/message/sendText/{instance}", "POST", _send_text_v2, 10),
    EndpointCandidate(Operation.SEND_MESSAGE, "/message/sendText/{instance}", "POST", _send_text_v1, 20),
    EndpointCandidate(Operation.SEND_MESSAGE, "/chat/sendMessage/{instance}", "POST", _chat_send_message, 30),
    EndpointCandidate(Operation.SEND_MESSAGE, "/instance/sendText/{instance}", "POST", _legacy_send, 40),
    # connection-status
    EndpointCandidate(Operation.CONNECTION_STATUS, "/instance/connectionState/{instance}", "GET", no_body, 10),
    EndpointCandidate(Operation.CONNECTION_STATUS, "/manager/instance/connectionState/{instance}", "GET", no_body, 20),
    EndpointCandidate(Operation.CONNECTION_STATUS, "/connection/status/{instance}", "GET", no_body, 30),
    EndpointCandidate(Operation.CONNECTION_STATUS, "/status/{instance}", "GET", no_body, 40),
    # disconnect
    EndpointCandidate(Operation.DISCONNECT, "/instance/logout/{instance}", "DELETE", no_body, 10),
    EndpointCandidate(Operation.DISCONNECT, "/instance/logout/{instance}", "POST", empty_body, 20),
    EndpointCandidate(Operation.DISCONNECT, "/manager/instance/logout/{instance}", "POST", empty_body, 30),
    EndpointCandidate(Operation.DISCONNECT, "/disconnect/{instance}", "POST", empty_body, 40),
    # connect (QR pairing)
    EndpointCandidate(Operation.CONNECT, "/instance/connect/{instance}", "GET", no_body, 10),
    EndpointCandidate(Operation.CONNECT, "/manager/instance/connect/{instance}", "GET", no_body, 20),
    EndpointCandidate(Operation.CONNECT, "/instance/qrcode/{instance}", "GET", no_body, 30),
    # profile-picture
    EndpointCandidate(Operation.PROFILE_PICTURE, "/chat/fetchProfilePictureUrl/{instance}", "POST", _number_body, 10),
    EndpointCandidate(Operation.PROFILE_PICTURE, "/chat/fetchProfilePictureUrl/{instance}", "GET", _number_body, 20),
)


class CandidateTable:
    """Immutable per-operation candidate lists, ordered by priority.

    Candidates with equal priority keep their declaration order.
    """

    def __init__(self, candidates: Iterable[EndpointCandidate]):
        grouped: dict[Operation, list[EndpointCandidate]] = {}
        for candidate in candidates:
            grouped.setdefault(candidate.operation, []).append(candidate)
        self._by_operation: dict[Operation, tuple[EndpointCandidate, ...]] = {
            op: tuple(sorted(items, key=lambda c: c.priority))
            for op, items in grouped.items()
        }

    def for_operation(self, operation: Operation) -> tuple[EndpointCandidate, ...]:
        return self._by_operation.get(operation, ())

    def extended(self, *candidates: EndpointCandidate) -> "CandidateTable":
        """New table with extra candidates merged in by priority."""
        existing = [c for items in self._by_operation.values() for c in items]
        return CandidateTable([*existing, *candidates])

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_operation.values())


DEFAULT_TABLE = CandidateTable(_DEFAULT_CANDIDATES)
