"""Cascade prober - try endpoint candidates in order until one fits.

Security: never log the token, request bodies or contact identifiers. Only
candidate labels (path templates), status codes and failure kinds.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import requests

from chatgate.observability.logging import get_logger
from chatgate.observability.redaction import safe_log_context

from .candidates import EndpointCandidate, Operation
from .config import DEFAULT_ATTEMPT_TIMEOUT
from .credentials import TenantCredentials, build_auth_headers
from .deadline import Deadline
from .errors import (
    CandidateError,
    CascadeAbandonedError,
    CascadeExhaustedError,
    StructuralMismatchError,
    TransportError,
    UpstreamAuthError,
)
from .models import CandidateFailure
from .normalizer import recognizes

logger = get_logger(__name__)

_HTML_MARKERS = ("<!doctype html", "<html", "<body")


@dataclass(frozen=True)
class ProbeResult:
    """The first structurally valid response of a cascade."""

    candidate: EndpointCandidate
    body: Any
    status_code: int
    attempts: int


def decode_body(response: requests.Response) -> Any:
    """Best-effort decode: JSON, else raw text, None when empty.

    HTML pages (login screens of auth proxies) are rejected as a structural
    mismatch.
    """
    text = response.text or ""
    if not text.strip():
        return None
    try:
        return response.json()
    except ValueError:
        lowered = text.lstrip()[:512].lower()
        if any(marker in lowered for marker in _HTML_MARKERS):
            raise StructuralMismatchError(
                "HTML page instead of API response", response.status_code
            ) from None
        return text


class CascadeProber:
    """Execute one operation's candidates sequentially, first valid wins.

    The same candidate is never retried here; retry policy lives in the
    gateway. The session is shared read-only across concurrent cascades.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
    ):
        self._session = session or requests.Session()
        self._attempt_timeout = attempt_timeout

    def run(
        self,
        operation: Operation,
        candidates: Sequence[EndpointCandidate],
        credentials: TenantCredentials,
        params: Mapping[str, Any],
        deadline: Deadline | None = None,
    ) -> ProbeResult:
        """Probe candidates in order.

        Raises:
            CascadeExhaustedError: every candidate failed; carries one
                CandidateFailure per attempted candidate.
            CascadeAbandonedError: the deadline expired first.
        """
        headers = build_auth_headers(credentials.token)
        failures: list[CandidateFailure] = []

        for index, candidate in enumerate(candidates, start=1):
            timeout = self._attempt_timeout
            if deadline is not None:
                timeout = deadline.cap(timeout)

            if deadline is not None and (deadline.expired or timeout <= 0):
                failures.append(
                    CandidateFailure(
                        candidate=candidate.label,
                        kind="deadline",
                        detail="caller deadline reached before attempt",
                    )
                )
                logger.warning(
                    "cascade abandoned",
                    extra={
                        "extra_fields": safe_log_context(
                            operation=operation.value,
                            attempted=index - 1,
                            total=len(candidates),
                        )
                    },
                )
                raise CascadeAbandonedError(operation.value, failures)

            try:
                body, status_code = self._attempt(
                    operation, candidate, credentials, params, headers, timeout
                )
            except CandidateError as e:
                failures.append(
                    CandidateFailure(
                        candidate=candidate.label,
                        kind=e.kind,
                        detail=e.detail,
                        status_code=e.status_code,
                    )
                )
                logger.warning(
                    "candidate rejected",
                    extra={
                        "extra_fields": safe_log_context(
                            operation=operation.value,
                            candidate=candidate.label,
                            attempt=index,
                            kind=e.kind,
                            status_code=e.status_code,
                            detail=e.detail,
                        )
                    },
                )
                continue

            logger.info(
                "candidate matched",
                extra={
                    "extra_fields": safe_log_context(
                        operation=operation.value,
                        candidate=candidate.label,
                        attempt=index,
                        status_code=status_code,
                    )
                },
            )
            return ProbeResult(
                candidate=candidate, body=body, status_code=status_code, attempts=index
            )

        logger.error(
            "cascade exhausted",
            extra={
                "extra_fields": safe_log_context(
                    operation=operation.value, failures=len(failures)
                )
            },
        )
        raise CascadeExhaustedError(operation.value, failures)

    def _attempt(
        self,
        operation: Operation,
        candidate: EndpointCandidate,
        credentials: TenantCredentials,
        params: Mapping[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> tuple[Any, int]:
        url = f"{credentials.base_url}{candidate.build_path(credentials.instance_id, params)}"
        request_body = candidate.build_body(params)

        kwargs: dict[str, Any] = {"headers": headers, "timeout": timeout}
        if request_body is not None:
            if candidate.verb == "GET":
                kwargs["params"] = request_body
            else:
                kwargs["json"] = request_body

        try:
            response = self._session.request(candidate.verb, url, **kwargs)
        except requests.Timeout:
            raise TransportError(f"timeout after {timeout:.1f}s") from None
        except requests.RequestException as e:
            raise TransportError(f"{type(e).__name__}") from None

        status_code = response.status_code
        if status_code in (401, 403):
            raise UpstreamAuthError(f"HTTP {status_code}", status_code)
        if not 200 <= status_code < 300:
            raise TransportError(f"HTTP {status_code}", status_code)

        body = decode_body(response)
        if not recognizes(operation, body):
            raise StructuralMismatchError("unrecognized response shape", status_code)

        return body, status_code
