"""Canonical gateway entities.

All of these are request-scoped: built fresh on every facade call and never
cached by the gateway itself.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Direction(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    UNKNOWN = "unknown"


class ConnectionState(str, Enum):
    """Session state as reported by the provider on one poll.

    `connecting` means a pairing QR code is outstanding.
    """

    UNKNOWN = "unknown"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Contact:
    """A chat partner or group as listed by the provider.

    `id` is the opaque upstream identifier and is never empty.
    """

    id: str
    display_name: str
    phone_number: str
    is_group: bool
    avatar_url: str | None = None
    last_message_preview: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0


@dataclass(frozen=True)
class Message:
    """A single chat message.

    `id` is None when the provider omitted it. `timestamp` is always set.
    """

    id: str | None
    direction: Direction
    body: str
    timestamp: datetime
    status: MessageStatus


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState
    qr_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class CandidateFailure:
    """Why one candidate of a cascade was rejected."""

    candidate: str
    kind: str  # transport, http_status, auth, structural, deadline
    detail: str
    status_code: int | None = None

    def as_dict(self) -> dict:
        return {
            "candidate": self.candidate,
            "kind": self.kind,
            "detail": self.detail,
            "statusCode": self.status_code,
        }


@dataclass(frozen=True)
class ContactList:
    """Result of list_contacts.

    When `is_degraded` is true the list is a placeholder, not upstream data,
    and `diagnostics` explains why.
    """

    contacts: list[Contact]
    is_degraded: bool = False
    diagnostics: list[CandidateFailure] = field(default_factory=list)


@dataclass(frozen=True)
class MessageList:
    messages: list[Message]
    is_degraded: bool = False
    diagnostics: list[CandidateFailure] = field(default_factory=list)


@dataclass(frozen=True)
class SendReceipt:
    message_id: str | None
    timestamp: datetime
