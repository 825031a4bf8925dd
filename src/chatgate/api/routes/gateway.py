"""Dashboard routes over the gateway facade.

Each request builds its own facade call with a deadline from the
X-Request-Timeout header (seconds) or GATEWAY_REQUEST_DEADLINE. The
isDegraded flag is always serialized; clients must check it before trusting
contacts or messages.
"""

from __future__ import annotations

from datetime import datetime

import requests
from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatgate.gateway.config import EnvCredentialsSource, load_settings
from chatgate.gateway.deadline import Deadline
from chatgate.gateway.errors import CascadeExhaustedError
from chatgate.gateway.facade import DEFAULT_PAGE_SIZE, Gateway
from chatgate.gateway.models import (
    CandidateFailure,
    ConnectionStatus,
    Contact,
    Message,
    SortOrder,
)
from chatgate.gateway.prober import CascadeProber
from chatgate.observability.logging import get_logger
from chatgate.observability.redaction import safe_log_context

router = APIRouter(prefix="/gateway", tags=["gateway"])

logger = get_logger(__name__)

# Connection pool shared by every request
_session = requests.Session()
_credentials_source = EnvCredentialsSource()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiagnosticOut(_CamelModel):
    candidate: str
    kind: str
    detail: str
    status_code: int | None = None

    @classmethod
    def from_failure(cls, failure: CandidateFailure) -> DiagnosticOut:
        return cls(
            candidate=failure.candidate,
            kind=failure.kind,
            detail=failure.detail,
            status_code=failure.status_code,
        )


class ContactOut(_CamelModel):
    id: str
    display_name: str
    phone_number: str
    is_group: bool
    avatar_url: str | None = None
    last_message_preview: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0

    @classmethod
    def from_entity(cls, contact: Contact) -> ContactOut:
        return cls(
            id=contact.id,
            display_name=contact.display_name,
            phone_number=contact.phone_number,
            is_group=contact.is_group,
            avatar_url=contact.avatar_url,
            last_message_preview=contact.last_message_preview,
            last_message_at=contact.last_message_at,
            unread_count=contact.unread_count,
        )


class MessageOut(_CamelModel):
    id: str | None
    direction: str
    body: str
    timestamp: datetime
    status: str

    @classmethod
    def from_entity(cls, message: Message) -> MessageOut:
        return cls(
            id=message.id,
            direction=message.direction.value,
            body=message.body,
            timestamp=message.timestamp,
            status=message.status.value,
        )


class ContactsResponse(_CamelModel):
    contacts: list[ContactOut]
    is_degraded: bool
    diagnostics: list[DiagnosticOut] = Field(default_factory=list)


class MessagesResponse(_CamelModel):
    messages: list[MessageOut]
    is_degraded: bool
    diagnostics: list[DiagnosticOut] = Field(default_factory=list)


class SendMessageRequest(_CamelModel):
    contact_id: str = Field(min_length=1)
    body: str = Field(min_length=1)


class SendMessageResponse(_CamelModel):
    message_id: str | None
    timestamp: datetime


class ConnectionStatusResponse(_CamelModel):
    state: str
    qr_code: str | None = None
    detail: str | None = None

    @classmethod
    def from_entity(cls, status: ConnectionStatus) -> ConnectionStatusResponse:
        return cls(state=status.state.value, qr_code=status.qr_code, detail=status.detail)


class DisconnectResponse(_CamelModel):
    success: bool


def get_gateway() -> Gateway:
    """Build a facade for the configured tenant (override in tests)."""
    try:
        credentials = _credentials_source.get_credentials()
    except RuntimeError as e:
        logger.error(
            "gateway not configured",
            extra={"extra_fields": safe_log_context(error=str(e))},
        )
        raise HTTPException(status_code=503, detail="messaging provider not configured") from None

    settings = load_settings()
    prober = CascadeProber(session=_session, attempt_timeout=settings.attempt_timeout)
    return Gateway(credentials, prober=prober, settings=settings)


def get_deadline(
    x_request_timeout: float | None = Header(default=None, alias="X-Request-Timeout", gt=0),
) -> Deadline:
    seconds = x_request_timeout or load_settings().request_deadline
    return Deadline.after(seconds)


def _bad_gateway(error: CascadeExhaustedError) -> HTTPException:
    return HTTPException(
        status_code=502,
        detail={
            "message": str(error),
            "diagnostics": [f.as_dict() for f in error.failures],
        },
    )


@router.get("/contacts", response_model=ContactsResponse)
def list_contacts(
    gateway: Gateway = Depends(get_gateway),
    deadline: Deadline = Depends(get_deadline),
) -> ContactsResponse:
    result = gateway.list_contacts(deadline=deadline)
    return ContactsResponse(
        contacts=[ContactOut.from_entity(c) for c in result.contacts],
        is_degraded=result.is_degraded,
        diagnostics=[DiagnosticOut.from_failure(f) for f in result.diagnostics],
    )


@router.get("/contacts/{contact_id}/messages", response_model=MessagesResponse)
def list_messages(
    contact_id: str = Path(..., min_length=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize", ge=1, le=500),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    gateway: Gateway = Depends(get_gateway),
    deadline: Deadline = Depends(get_deadline),
) -> MessagesResponse:
    try:
        result = gateway.list_messages(contact_id, page_size, sort_order, deadline=deadline)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return MessagesResponse(
        messages=[MessageOut.from_entity(m) for m in result.messages],
        is_degraded=result.is_degraded,
        diagnostics=[DiagnosticOut.from_failure(f) for f in result.diagnostics],
    )


@router.post("/messages", response_model=SendMessageResponse)
def send_message(
    request: SendMessageRequest,
    gateway: Gateway = Depends(get_gateway),
    deadline: Deadline = Depends(get_deadline),
) -> SendMessageResponse:
    try:
        receipt = gateway.send_message(request.contact_id, request.body, deadline=deadline)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except CascadeExhaustedError as e:
        raise _bad_gateway(e) from None

    return SendMessageResponse(message_id=receipt.message_id, timestamp=receipt.timestamp)


@router.get("/connection", response_model=ConnectionStatusResponse)
def get_connection_status(
    gateway: Gateway = Depends(get_gateway),
    deadline: Deadline = Depends(get_deadline),
) -> ConnectionStatusResponse:
    return ConnectionStatusResponse.from_entity(gateway.get_connection_status(deadline=deadline))


@router.post("/connection/connect", response_model=ConnectionStatusResponse)
def connect(
    gateway: Gateway = Depends(get_gateway),
    deadline: Deadline = Depends(get_deadline),
) -> ConnectionStatusResponse:
    return ConnectionStatusResponse.from_entity(gateway.connect(deadline=deadline))


@router.delete("/connection", response_model=DisconnectResponse)
def disconnect(
    gateway: Gateway = Depends(get_gateway),
    deadline: Deadline = Depends(get_deadline),
) -> DisconnectResponse:
    try:
        success = gateway.disconnect(deadline=deadline)
    except CascadeExhaustedError as e:
        raise _bad_gateway(e) from None
    return DisconnectResponse(success=success)
