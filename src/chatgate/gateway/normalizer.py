"""Response normalizer - map provider payloads to canonical entities.

Pure functions only: no I/O, no logging. Every field read tries several
upstream names before falling back to a safe default, and message content
extraction never raises.
"""

import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from . import connection_state
from .candidates import Operation
from .models import (
    ConnectionState,
    ConnectionStatus,
    Contact,
    Direction,
    Message,
    MessageStatus,
    SendReceipt,
)

UNKNOWN_CONTACT_NAME = "Unknown contact"
UNSUPPORTED_CONTENT = "[unsupported content]"
GROUP_SUFFIX = "@g.us"
DEFAULT_JID_SUFFIX = "@s.whatsapp.net"

# Epoch values above this are milliseconds (1e11 s is year 5138)
_MILLIS_THRESHOLD = 1e11
_NUMERIC_PATTERN = re.compile(r"^\d+(\.\d+)?$")

LIST_KEYS: dict[Operation, tuple[str, ...]] = {
    Operation.LIST_CONTACTS: ("contacts", "chats"),
    Operation.LIST_MESSAGES: ("messages",),
}

_CONTACT_ID_FIELDS = ("remoteJid", "jid", "id", "number")
_CONTACT_NAME_FIELDS = ("name", "pushName", "pushname", "verifiedName", "notify", "subject", "title")
_AVATAR_FIELDS = ("profilePicUrl", "profilePictureUrl", "profilePicture", "imgUrl")
_UNREAD_FIELDS = ("unreadCount", "unreadMessages", "unread")
_LAST_AT_FIELDS = ("lastMessageAt", "lastMessageTime", "lastMessageTimestamp", "conversationTimestamp", "updatedAt")

_MESSAGE_ID_FIELDS = ("key.id", "id", "_id", "messageId")
_MESSAGE_TS_FIELDS = ("messageTimestamp", "timestamp", "t", "date", "createdAt", "created_at")
_OWNERSHIP_FIELDS = ("key.fromMe", "fromMe", "isFromMe", "isSent")
_PLAIN_BODY_FIELDS = ("body", "text", "content", "conversation", "message")

# Checked in order; caption wins over the marker
_MEDIA_MARKERS: tuple[tuple[str, str], ...] = (
    ("imageMessage", "[image]"),
    ("videoMessage", "[video]"),
    ("documentMessage", "[document]"),
    ("audioMessage", "[audio]"),
    ("stickerMessage", "[sticker]"),
    ("locationMessage", "[location]"),
    ("contactMessage", "[contact]"),
)
_WRAPPER_FIELDS = ("ephemeralMessage", "viewOnceMessage", "viewOnceMessageV2")

_STATUS_WORDS: dict[str, MessageStatus] = {
    "pending": MessageStatus.PENDING,
    "error": MessageStatus.UNKNOWN,
    "serverack": MessageStatus.SENT,
    "sent": MessageStatus.SENT,
    "deliveryack": MessageStatus.DELIVERED,
    "delivered": MessageStatus.DELIVERED,
    "received": MessageStatus.DELIVERED,
    "read": MessageStatus.READ,
    "played": MessageStatus.READ,
}
_ACK_CODES: dict[int, MessageStatus] = {
    0: MessageStatus.PENDING,
    1: MessageStatus.SENT,
    2: MessageStatus.DELIVERED,
    3: MessageStatus.READ,
    4: MessageStatus.READ,
}

_QR_FIELDS = ("qrcode", "qrCode", "base64", "code")
_QR_CONTAINERS = ("result", "data", "instance", "response")
_STATE_CONTAINERS = ("instance", "status", "data", "connection", "result")
_PICTURE_FIELDS = ("profilePictureUrl", "profilePicUrl", "url", "picture")
_SEND_ID_FIELDS = ("key.id", "id", "messageId", "message.key.id", "data.key.id", "data.id")


# -- generic helpers -----------------------------------------------------------


def _lookup(source: Any, path: str) -> Any:
    current = source
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def first_present(source: Any, *paths: str, default: Any = None) -> Any:
    """Return the first value found at any dotted path that is not None or "".

    >>> first_present({"a": {"b": ""}, "c": 1}, "a.b", "c")
    1
    """
    for path in paths:
        value = _lookup(source, path)
        if value is not None and value != "":
            return value
    return default


def locate_list(body: Any, operation_keys: Sequence[str]) -> list | None:
    """Find the single array holding list items.

    Tries, in order: the body itself, `data`, each operation key (or a
    `records` array nested under it), then the first array-valued key of the
    body. Arrays are never merged.
    """
    if isinstance(body, list):
        return body
    if not isinstance(body, Mapping):
        return None

    if isinstance(body.get("data"), list):
        return body["data"]

    for key in operation_keys:
        value = body.get(key)
        if isinstance(value, list):
            return value
        if isinstance(value, Mapping) and isinstance(value.get("records"), list):
            return value["records"]

    for value in body.values():
        if isinstance(value, list):
            return value

    return None


def phone_from_identifier(identifier: str) -> str:
    """Digits of a JID/number with provider suffixes removed.

    "5511999998888:12@s.whatsapp.net" -> "5511999998888"
    """
    local = identifier.split("@", 1)[0].split(":", 1)[0]
    return re.sub(r"\D", "", local)


def to_jid(contact_id: str) -> str:
    if "@" in contact_id:
        return contact_id
    return f"{phone_from_identifier(contact_id)}{DEFAULT_JID_SUFFIX}"


def resolve_timestamp(value: Any) -> datetime | None:
    """Resolve epoch seconds, epoch millis, ISO-8601 or protobuf longs to UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, Mapping) and "low" in value:
        try:
            low = int(value.get("low") or 0) & 0xFFFFFFFF
            high = int(value.get("high") or 0)
        except (TypeError, ValueError):
            return None
        return _from_epoch((high << 32) | low)
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if _NUMERIC_PATTERN.match(text):
            return _from_epoch(float(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _from_epoch(number: float) -> datetime | None:
    if number <= 0:
        return None
    seconds = number / 1000 if number > _MILLIS_THRESHOLD else number
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _as_flag(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return default


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _looks_like_identifier(value: str) -> bool:
    """A JID ("...@s.whatsapp.net", "...@g.us") or a bare phone number."""
    text = value.strip()
    return bool(text) and ("@" in text or text.isdigit())


# -- contacts ------------------------------------------------------------------


def normalize_contact(item: Any) -> Contact | None:
    """Map one upstream contact/chat. Returns None when no identifier exists."""
    if isinstance(item, str):
        # Bare strings count only when they look like an identifier
        if not _looks_like_identifier(item):
            return None
        item = {"id": item.strip()}
    if not isinstance(item, Mapping):
        return None

    raw_id = first_present(item, *_CONTACT_ID_FIELDS)
    if raw_id is None or not str(raw_id).strip():
        return None
    contact_id = str(raw_id).strip()

    phone = phone_from_identifier(contact_id)
    name = first_present(item, *_CONTACT_NAME_FIELDS)
    display_name = str(name).strip() if name is not None and str(name).strip() else ""

    explicit_group = _as_flag(item.get("isGroup"))
    is_group = explicit_group if explicit_group is not None else contact_id.endswith(GROUP_SUFFIX)

    last_message = item.get("lastMessage")
    if isinstance(last_message, Mapping):
        preview: str | None = extract_message_body(last_message)
    elif isinstance(last_message, str) and last_message:
        preview = last_message
    else:
        preview = first_present(item, "lastMessagePreview")

    last_at = resolve_timestamp(first_present(item, *_LAST_AT_FIELDS))
    if last_at is None and isinstance(last_message, Mapping):
        last_at = resolve_timestamp(first_present(last_message, *_MESSAGE_TS_FIELDS))

    return Contact(
        id=contact_id,
        display_name=display_name or phone or UNKNOWN_CONTACT_NAME,
        phone_number=phone,
        is_group=is_group,
        avatar_url=first_present(item, *_AVATAR_FIELDS),
        last_message_preview=preview,
        last_message_at=last_at,
        unread_count=_as_int(first_present(item, *_UNREAD_FIELDS)),
    )


def normalize_contacts(body: Any) -> list[Contact]:
    items = locate_list(body, LIST_KEYS[Operation.LIST_CONTACTS]) or []
    contacts = []
    for item in items:
        contact = normalize_contact(item)
        if contact is not None:
            contacts.append(contact)
    return contacts


# -- messages ------------------------------------------------------------------


def _text_of(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, Mapping):
        nested = value.get("body") or value.get("text")
        if isinstance(nested, str) and nested.strip():
            return nested
    return None


def _content_body(content: Mapping, depth: int = 0) -> str | None:
    text = _text_of(content.get("conversation"))
    if text:
        return text

    text = _text_of(_lookup(content, "extendedTextMessage.text"))
    if text:
        return text

    for field_name, marker in _MEDIA_MARKERS:
        media = content.get(field_name)
        if isinstance(media, Mapping):
            return _text_of(media.get("caption")) or marker
        if media is not None:
            return marker

    if depth < 2:
        for wrapper in _WRAPPER_FIELDS:
            inner = _lookup(content, f"{wrapper}.message")
            if isinstance(inner, Mapping):
                found = _content_body(inner, depth + 1)
                if found:
                    return found

    return None


def extract_message_body(item: Any) -> str:
    """Plain text of a message, a media marker, or the unsupported marker.

    Priority: plain string body, conversation text, extended text, media
    caption (or its type marker), then UNSUPPORTED_CONTENT. Never raises and
    never returns an empty string.
    """
    if isinstance(item, str):
        return item if item.strip() else UNSUPPORTED_CONTENT
    if not isinstance(item, Mapping):
        return UNSUPPORTED_CONTENT

    for field_name in _PLAIN_BODY_FIELDS:
        value = item.get(field_name)
        if field_name == "message" and not isinstance(value, str):
            continue
        text = _text_of(value)
        if text:
            return text

    content = item.get("message")
    if isinstance(content, Mapping):
        found = _content_body(content)
        if found:
            return found

    found = _content_body(item)
    if found:
        return found

    message_type = item.get("messageType") or item.get("type")
    if isinstance(message_type, str):
        for field_name, marker in _MEDIA_MARKERS:
            if message_type == field_name or f"{message_type}Message" == field_name:
                return marker

    return UNSUPPORTED_CONTENT


def resolve_direction(item: Mapping) -> Direction:
    for path in _OWNERSHIP_FIELDS:
        flag = _as_flag(_lookup(item, path))
        if flag is not None:
            return Direction.OUTBOUND if flag else Direction.INBOUND

    direction = item.get("direction")
    if isinstance(direction, str) and direction.lower() in ("outbound", "outgoing", "out", "sent"):
        return Direction.OUTBOUND
    return Direction.INBOUND


def map_message_status(value: Any) -> MessageStatus:
    if isinstance(value, list):
        # Provider update history; latest entry wins
        for entry in reversed(value):
            status = map_message_status(_lookup(entry, "status") if isinstance(entry, Mapping) else entry)
            if status is not MessageStatus.UNKNOWN:
                return status
        return MessageStatus.UNKNOWN
    if isinstance(value, bool):
        return MessageStatus.UNKNOWN
    if isinstance(value, int):
        return _ACK_CODES.get(value, MessageStatus.UNKNOWN)
    if isinstance(value, str):
        word = value.strip().lower().replace("_", "")
        if word.isdigit():
            return _ACK_CODES.get(int(word), MessageStatus.UNKNOWN)
        return _STATUS_WORDS.get(word, MessageStatus.UNKNOWN)
    return MessageStatus.UNKNOWN


def normalize_message(item: Any, now: datetime | None = None) -> Message:
    """Map one upstream message. Timestamp falls back to `now` (retrieval time)."""
    retrieved_at = now or _utcnow()
    if not isinstance(item, Mapping):
        return Message(
            id=None,
            direction=Direction.INBOUND,
            body=extract_message_body(item),
            timestamp=retrieved_at,
            status=MessageStatus.UNKNOWN,
        )

    raw_id = first_present(item, *_MESSAGE_ID_FIELDS)
    status_value = first_present(item, "status", "ack", "MessageUpdate")

    return Message(
        id=str(raw_id) if raw_id is not None else None,
        direction=resolve_direction(item),
        body=extract_message_body(item),
        timestamp=resolve_timestamp(first_present(item, *_MESSAGE_TS_FIELDS)) or retrieved_at,
        status=map_message_status(status_value),
    )


def normalize_messages(body: Any, now: datetime | None = None) -> list[Message]:
    retrieved_at = now or _utcnow()
    items = locate_list(body, LIST_KEYS[Operation.LIST_MESSAGES]) or []
    return [normalize_message(item, retrieved_at) for item in items]


# -- connection status ---------------------------------------------------------


def map_connection_state(body: Any) -> tuple[ConnectionState, str | None]:
    """Map a status payload to (state, matched field).

    Checked in order: a nested object with a `state` string, root `state`,
    root boolean `connected`, root `status` word. The first match decides.
    No match yields (UNKNOWN, None): absence of evidence is not evidence of
    disconnection.
    """
    if not isinstance(body, Mapping):
        return ConnectionState.UNKNOWN, None

    for container in _STATE_CONTAINERS:
        nested = body.get(container)
        if isinstance(nested, Mapping) and isinstance(nested.get("state"), str):
            state = connection_state.state_from_token(nested["state"])
            return state or ConnectionState.UNKNOWN, f"{container}.state"

    if isinstance(body.get("state"), str):
        state = connection_state.state_from_token(body["state"])
        return state or ConnectionState.UNKNOWN, "state"

    connected = body.get("connected")
    if isinstance(connected, bool):
        state = ConnectionState.CONNECTED if connected else ConnectionState.DISCONNECTED
        return state, "connected"

    status = body.get("status")
    if isinstance(status, str):
        state = connection_state.state_from_token(status)
        if state is not None:
            return state, "status"

    return ConnectionState.UNKNOWN, None


def extract_qr_code(body: Any) -> str | None:
    if not isinstance(body, Mapping):
        return None
    for source in (body, *(body.get(c) for c in _QR_CONTAINERS)):
        if not isinstance(source, Mapping):
            continue
        for field_name in _QR_FIELDS:
            value = source.get(field_name)
            if isinstance(value, Mapping):
                value = first_present(value, "base64", "code")
            if isinstance(value, str) and value.strip():
                return value
    return None


def normalize_connection_status(body: Any, detail: str | None = None) -> ConnectionStatus:
    if isinstance(body, str) and body.strip():
        # Some builds answer /connect with the bare QR string
        return connection_state.build_status(ConnectionState.UNKNOWN, body.strip(), detail)
    observed, _ = map_connection_state(body)
    return connection_state.build_status(observed, extract_qr_code(body), detail)


# -- write acknowledgements ----------------------------------------------------


def extract_send_receipt(body: Any, now: datetime | None = None) -> SendReceipt:
    raw_id = first_present(body, *_SEND_ID_FIELDS)
    sent_at = resolve_timestamp(first_present(body, "messageTimestamp", "timestamp"))
    return SendReceipt(
        message_id=str(raw_id) if raw_id is not None else None,
        timestamp=sent_at or now or _utcnow(),
    )


def extract_profile_picture_url(body: Any) -> str | None:
    value = first_present(body, *_PICTURE_FIELDS, *(f"data.{f}" for f in _PICTURE_FIELDS))
    return value if isinstance(value, str) else None


def _has_error_marker(body: Mapping) -> bool:
    if body.get("error"):
        return True
    if body.get("success") is False:
        return True
    status = body.get("status")
    return isinstance(status, str) and status.lower() in ("error", "failed", "failure")


# -- recognition (structural validation for the prober) ------------------------


def recognizes(operation: Operation, body: Any) -> bool:
    """True when `body` carries at least one field this module can map."""
    if operation is Operation.LIST_CONTACTS:
        # A non-empty list where nothing maps to a contact is an error envelope
        items = locate_list(body, LIST_KEYS[operation])
        if items is None:
            return False
        return not items or any(normalize_contact(item) is not None for item in items)

    if operation in LIST_KEYS:
        return locate_list(body, LIST_KEYS[operation]) is not None

    if operation is Operation.SEND_MESSAGE:
        if not isinstance(body, Mapping) or _has_error_marker(body):
            return False
        return first_present(body, *_SEND_ID_FIELDS) is not None or body.get("success") is True

    if operation is Operation.CONNECTION_STATUS:
        _, matched = map_connection_state(body)
        return matched is not None or extract_qr_code(body) is not None

    if operation is Operation.CONNECT:
        if isinstance(body, str):
            return bool(body.strip())
        _, matched = map_connection_state(body)
        return matched is not None or extract_qr_code(body) is not None

    if operation is Operation.PROFILE_PICTURE:
        if not isinstance(body, Mapping):
            return False
        data = body.get("data")
        return any(f in body for f in _PICTURE_FIELDS) or (
            isinstance(data, Mapping) and any(f in data for f in _PICTURE_FIELDS)
        )

    if operation is Operation.DISCONNECT:
        # Plain acknowledgement: empty or any body without an error marker
        if isinstance(body, Mapping):
            return not _has_error_marker(body)
        return True

    return False
