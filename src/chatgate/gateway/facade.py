"""Gateway facade - the only entry point dashboard route handlers call.

Reads degrade: when every candidate fails, contacts and messages come back
as empty placeholders flagged `is_degraded` with the per-candidate
diagnostics, and connection status comes back as `error`. Writes (send,
disconnect) propagate CascadeExhaustedError so the user sees the failure.

Security: NEVER log contact ids or message text. Only hashes and lengths.
"""

import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from chatgate.observability.logging import get_logger
from chatgate.observability.redaction import hash_identifier, safe_log_context

from . import connection_state, normalizer
from .candidates import DEFAULT_TABLE, CandidateTable, Operation
from .config import GatewaySettings
from .credentials import TenantCredentials
from .deadline import Deadline
from .errors import CascadeExhaustedError
from .models import (
    ConnectionStatus,
    ContactList,
    MessageList,
    SendReceipt,
    SortOrder,
)
from .prober import CascadeProber, ProbeResult

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50


class Gateway:
    """Self-discovering client for one tenant's provider instance.

    Holds only immutable configuration, so one instance may serve concurrent
    requests. Every call builds its entities from scratch.
    """

    def __init__(
        self,
        credentials: TenantCredentials,
        *,
        table: CandidateTable = DEFAULT_TABLE,
        prober: CascadeProber | None = None,
        settings: GatewaySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._credentials = credentials
        self._table = table
        self._settings = settings or GatewaySettings()
        self._prober = prober or CascadeProber(attempt_timeout=self._settings.attempt_timeout)
        self._sleep = sleep

    # -- reads ---------------------------------------------------------------

    def list_contacts(self, *, deadline: Deadline | None = None) -> ContactList:
        try:
            result = self._probe(Operation.LIST_CONTACTS, {}, deadline, retry=True)
        except CascadeExhaustedError as e:
            self._log_degraded(e)
            return ContactList(contacts=[], is_degraded=True, diagnostics=e.failures)

        return ContactList(contacts=normalizer.normalize_contacts(result.body))

    def list_messages(
        self,
        contact_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_order: SortOrder | str = SortOrder.DESC,
        *,
        deadline: Deadline | None = None,
    ) -> MessageList:
        """Message history for one contact.

        Raises:
            ValueError: empty contact_id or non-positive page_size.
        """
        if not contact_id or not contact_id.strip():
            raise ValueError("contact_id is required")
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        params = self._contact_params(contact_id)
        params["page_size"] = page_size
        params["sort_order"] = SortOrder(sort_order).value

        try:
            result = self._probe(Operation.LIST_MESSAGES, params, deadline, retry=True)
        except CascadeExhaustedError as e:
            self._log_degraded(e, contact_hash=hash_identifier(contact_id))
            return MessageList(messages=[], is_degraded=True, diagnostics=e.failures)

        retrieved_at = datetime.now(timezone.utc)
        return MessageList(messages=normalizer.normalize_messages(result.body, retrieved_at))

    def get_connection_status(self, *, deadline: Deadline | None = None) -> ConnectionStatus:
        """Poll the session state. Never raises on upstream failure."""
        return self._status_for(Operation.CONNECTION_STATUS, deadline)

    def connect(self, *, deadline: Deadline | None = None) -> ConnectionStatus:
        """Request a pairing QR code (or learn the session is already open)."""
        return self._status_for(Operation.CONNECT, deadline)

    def fetch_profile_picture_url(
        self, contact_id: str, *, deadline: Deadline | None = None
    ) -> str | None:
        if not contact_id or not contact_id.strip():
            raise ValueError("contact_id is required")
        try:
            result = self._probe(
                Operation.PROFILE_PICTURE, self._contact_params(contact_id), deadline, retry=True
            )
        except CascadeExhaustedError as e:
            self._log_degraded(e, contact_hash=hash_identifier(contact_id))
            return None
        return normalizer.extract_profile_picture_url(result.body)

    # -- writes --------------------------------------------------------------

    def send_message(
        self, contact_id: str, body: str, *, deadline: Deadline | None = None
    ) -> SendReceipt:
        """Send a text message.

        Raises:
            ValueError: empty contact_id or body.
            CascadeExhaustedError: no candidate accepted the message.
        """
        if not contact_id or not contact_id.strip():
            raise ValueError("contact_id is required")
        if not body or not body.strip():
            raise ValueError("message body is required")

        params = self._contact_params(contact_id)
        params["text"] = body

        log_ctx = safe_log_context(
            contact_hash=hash_identifier(contact_id),
            text_len=len(body),
        )
        logger.info("sending message", extra={"extra_fields": log_ctx})

        try:
            result = self._probe(Operation.SEND_MESSAGE, params, deadline, retry=False)
        except CascadeExhaustedError as e:
            logger.error(
                "message send failed",
                extra={
                    "extra_fields": safe_log_context(**log_ctx, failures=len(e.failures))
                },
            )
            raise

        receipt = normalizer.extract_send_receipt(result.body, datetime.now(timezone.utc))
        logger.info(
            "message sent",
            extra={
                "extra_fields": safe_log_context(
                    **log_ctx, candidate=result.candidate.label, has_id=receipt.message_id is not None
                )
            },
        )
        return receipt

    def disconnect(self, *, deadline: Deadline | None = None) -> bool:
        """Log the instance out.

        Raises:
            CascadeExhaustedError: no candidate acknowledged the logout.
        """
        self._probe(Operation.DISCONNECT, {}, deadline, retry=False)
        return True

    # -- internals -----------------------------------------------------------

    def _status_for(self, operation: Operation, deadline: Deadline | None) -> ConnectionStatus:
        try:
            result = self._probe(operation, {}, deadline, retry=True)
        except CascadeExhaustedError as e:
            self._log_degraded(e)
            return connection_state.error_status(e.summary())

        return normalizer.normalize_connection_status(
            result.body, detail=f"matched {result.candidate.label}"
        )

    def _contact_params(self, contact_id: str) -> dict[str, Any]:
        contact_id = contact_id.strip()
        # Groups are addressed by their full JID, never by digits
        if contact_id.endswith(normalizer.GROUP_SUFFIX):
            phone = contact_id
        else:
            phone = normalizer.phone_from_identifier(contact_id)
        return {
            "contact_id": contact_id,
            "jid": normalizer.to_jid(contact_id),
            "phone": phone,
        }

    def _probe(
        self,
        operation: Operation,
        params: Mapping[str, Any],
        deadline: Deadline | None,
        *,
        retry: bool,
    ) -> ProbeResult:
        """Run the cascade, retrying whole cascades with exponential backoff.

        Only read operations retry, and only when every failure was a network
        error, timeout or 5xx. Backoff never sleeps past the deadline.
        """
        candidates = self._table.for_operation(operation)
        attempt = 0
        while True:
            try:
                return self._prober.run(
                    operation, candidates, self._credentials, params, deadline
                )
            except CascadeExhaustedError as e:
                if not retry or attempt >= self._settings.max_retries or not e.retryable:
                    raise
                delay = self._settings.retry_delay * (2**attempt)
                if deadline is not None and deadline.remaining() <= delay:
                    raise
                logger.warning(
                    "cascade failed, retrying",
                    extra={
                        "extra_fields": safe_log_context(
                            operation=operation.value, retry=attempt + 1, delay=delay
                        )
                    },
                )
                self._sleep(delay)
                attempt += 1

    def _log_degraded(self, error: CascadeExhaustedError, **context: Any) -> None:
        logger.error(
            "returning degraded result",
            extra={
                "extra_fields": safe_log_context(
                    operation=error.operation,
                    failures=len(error.failures),
                    kinds=",".join(f.kind for f in error.failures),
                    **context,
                )
            },
        )
