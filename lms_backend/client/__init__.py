from lms_backend.client.errors import (
    AccountInactive,
    InvalidCredentials,
    NetworkError,
    SessionError,
)
from lms_backend.client.session import Principal, SessionClient
from lms_backend.client.store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    FileTokenStore,
    MemoryTokenStore,
    TokenStore,
)

__all__ = [
    "AccountInactive",
    "InvalidCredentials",
    "NetworkError",
    "SessionError",
    "Principal",
    "SessionClient",
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "FileTokenStore",
    "MemoryTokenStore",
    "TokenStore",
]
