"""Gateway error taxonomy."""

from .models import CandidateFailure


class GatewayError(Exception):
    """Base class for gateway errors."""

    pass


class CandidateError(GatewayError):
    """One candidate attempt failed. Recovered inside the cascade."""

    kind = "transport"

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class TransportError(CandidateError):
    """Connection refused, DNS failure, timeout or non-2xx status."""

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail, status_code)
        if status_code is not None:
            self.kind = "http_status"

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class StructuralMismatchError(CandidateError):
    """2xx response whose body is not recognised for the operation."""

    kind = "structural"


class UpstreamAuthError(CandidateError):
    """401/403 from a candidate."""

    kind = "auth"


class UnrecognizedContentError(GatewayError):
    """Reserved. Message content normalisation falls back to a marker instead
    of raising this."""

    pass


class CascadeExhaustedError(GatewayError):
    """Every candidate for an operation failed."""

    def __init__(self, operation: str, failures: list[CandidateFailure]):
        self.operation = operation
        self.failures = list(failures)
        super().__init__(
            f"{operation}: all {len(self.failures)} candidate(s) failed"
        )

    @property
    def retryable(self) -> bool:
        """True when every failure was a network error, timeout or 5xx."""
        if not self.failures:
            return False
        for failure in self.failures:
            if failure.kind == "transport":
                continue
            if failure.kind == "http_status" and (failure.status_code or 0) >= 500:
                continue
            return False
        return True

    def summary(self) -> str:
        parts = [f"{f.candidate}: {f.kind}" for f in self.failures]
        return f"{self}; " + ", ".join(parts) if parts else str(self)


class CascadeAbandonedError(CascadeExhaustedError):
    """The caller's deadline expired before the cascade could finish."""

    def __init__(self, operation: str, failures: list[CandidateFailure]):
        super().__init__(operation, failures)
        self.args = (f"{operation}: deadline reached after {len(self.failures)} failure(s)",)

    @property
    def retryable(self) -> bool:
        return False
