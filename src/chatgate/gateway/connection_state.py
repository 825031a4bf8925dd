"""Connection state resolution.

States: unknown (initial), connecting (pairing QR outstanding), connected,
error. `disconnected` is reported when the provider says so explicitly.

Every poll is independent and authoritative. Nothing is remembered between
polls, so a later `unknown` legitimately replaces an earlier `connected`
(the upstream session may have dropped). Polling cadence belongs to the
caller.
"""

from .models import ConnectionState, ConnectionStatus

CONNECTED_TOKENS = frozenset({"open", "connected", "online", "authenticated", "ready", "inchat"})
CONNECTING_TOKENS = frozenset({"connecting", "pairing", "qr", "qrcode", "opening", "syncing"})
DISCONNECTED_TOKENS = frozenset(
    {"close", "closed", "disconnected", "logout", "loggedout", "offline", "refused"}
)


def state_from_token(token: str) -> ConnectionState | None:
    """Map a provider state word to a canonical state, None if unrecognised."""
    word = token.strip().lower().replace("_", "").replace("-", "")
    if word in CONNECTED_TOKENS:
        return ConnectionState.CONNECTED
    if word in CONNECTING_TOKENS:
        return ConnectionState.CONNECTING
    if word in DISCONNECTED_TOKENS:
        return ConnectionState.DISCONNECTED
    return None


def resolve(observed: ConnectionState, qr_code: str | None) -> ConnectionState:
    """Combine the mapped provider state with QR presence.

    A QR code means pairing is in progress unless the provider already
    reports an open session.
    """
    if observed is ConnectionState.CONNECTED:
        return ConnectionState.CONNECTED
    if qr_code:
        return ConnectionState.CONNECTING
    return observed


def build_status(
    observed: ConnectionState, qr_code: str | None, detail: str | None = None
) -> ConnectionStatus:
    state = resolve(observed, qr_code)
    return ConnectionStatus(
        state=state,
        qr_code=qr_code if state is not ConnectionState.CONNECTED else None,
        detail=detail,
    )


def error_status(detail: str) -> ConnectionStatus:
    return ConnectionStatus(state=ConnectionState.ERROR, qr_code=None, detail=detail)
