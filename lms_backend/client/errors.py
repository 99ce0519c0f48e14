"""Errors raised by the session client."""

from typing import Optional


class SessionError(Exception):
    """A non-2xx answer from the server that the client cannot recover from."""

    def __init__(self, message: str = "Request failed", status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidCredentials(SessionError):
    """Login rejected: wrong email or password."""


class AccountInactive(SessionError):
    """Login rejected: the account is deactivated."""


class NetworkError(SessionError):
    """The server could not be reached."""
