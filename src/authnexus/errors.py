"""
authnexus.errors

Error taxonomy shared by the issuer (server) and the guardian (client).

Responsibilities:
- Define typed errors carrying an HTTP status and a stable `kind` string.
- Rebuild typed errors from the `{message, kind, details}` wire shape.
"""

from __future__ import annotations

from typing import Any


class AuthNexusError(Exception):
    status_code: int = 500
    kind: str = "ServerError"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message, "kind": self.kind}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AuthNexusError):
    status_code = 400
    kind = "ValidationError"
    default_message = "Validation Error"


class AuthenticationError(AuthNexusError):
    status_code = 401
    kind = "AuthenticationError"
    default_message = "Authentication Failed"


class AccountLocked(AuthenticationError):
    # Same status as other auth failures; only `kind` and message differ.
    kind = "AccountLocked"
    default_message = "Account locked. Try again later."


class ForbiddenError(AuthNexusError):
    status_code = 403
    kind = "ForbiddenError"
    default_message = "Access Denied"


class NotFoundError(AuthNexusError):
    status_code = 404
    kind = "NotFoundError"
    default_message = "Resource Not Found"


class ConflictError(AuthNexusError):
    status_code = 409
    kind = "ConflictError"
    default_message = "Resource Already Exists"


class NetworkError(AuthNexusError):
    """
    Client-only: the transport failed or the server could not answer.
    Never produced by the API itself.
    """

    status_code = 503
    kind = "NetworkError"
    default_message = "Network error"


class RefreshTimeout(NetworkError):
    kind = "RefreshTimeout"
    default_message = "Token refresh timed out"


_KINDS: dict[str, type[AuthNexusError]] = {
    cls.kind: cls
    for cls in (
        ValidationError,
        AuthenticationError,
        AccountLocked,
        ForbiddenError,
        NotFoundError,
        ConflictError,
        NetworkError,
        RefreshTimeout,
    )
}

_STATUSES: dict[int, type[AuthNexusError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
}


def kind_for_status(status_code: int) -> str:
    cls = _STATUSES.get(status_code)
    if cls is not None:
        return cls.kind
    return AuthNexusError.kind if status_code >= 500 else "HTTPError"


def error_from_payload(status_code: int, payload: Any) -> AuthNexusError:
    """
    Map an error response back onto the taxonomy.

    The `kind` field wins when it is known; otherwise the status decides, and
    anything unrecognised (including 5xx) is reported as a `NetworkError`.
    """

    body = payload if isinstance(payload, dict) else {}
    message = body.get("message") if isinstance(body.get("message"), str) else None
    details = body.get("details")

    cls = _KINDS.get(str(body.get("kind", "")))
    if cls is None:
        cls = _STATUSES.get(status_code, NetworkError)
    if cls is NetworkError and message is None:
        message = f"Unexpected response status {status_code}"
    return cls(message, details)


# --- Module Notes -----------------------------------------------------------
# Authentication failures deliberately share one generic message so callers cannot
# tell which check failed; AccountLocked is the only distinguishable auth outcome.
