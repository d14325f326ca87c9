"""Error taxonomy for gateway and controller failures.

Backend messages can leak table names, constraint names or SQL. Only the
``public`` text of an error is ever shown to a user; the raw message goes
to the log.
"""
from __future__ import annotations

GENERIC_READ_MESSAGE = "Could not load this section. Try again in a moment."
GENERIC_WRITE_MESSAGE = "Something went wrong while saving. Please try again."


class GatewayError(Exception):
    """Any failure reported by the data gateway."""

    public = GENERIC_WRITE_MESSAGE

    def __init__(self, message: str = "", public: str | None = None):
        super().__init__(message or self.public)
        if public is not None:
            self.public = public


class ConflictError(GatewayError):
    """A write collided with a uniqueness constraint."""

    public = "That record already exists."


class AuthError(GatewayError):
    """Bad credentials, or an expired, revoked or malformed session."""

    public = "Your session is invalid. Please sign in again."


def public_message(exc: BaseException, default: str = GENERIC_WRITE_MESSAGE) -> str:
    """Return text that is safe to show to a user for ``exc``."""
    if isinstance(exc, GatewayError):
        return exc.public
    return default
