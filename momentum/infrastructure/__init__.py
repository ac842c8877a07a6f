"""Infrastructure layer exports."""

from .api_client import (
    MomentumApiClient,
    MomentumApiError,
    MomentumAuthError,
    MomentumResponseError,
    MomentumTransportError,
)
from .credentials import FileTokenStore, MemoryTokenStore, TokenStore

__all__ = [
    "FileTokenStore",
    "MemoryTokenStore",
    "MomentumApiClient",
    "MomentumApiError",
    "MomentumAuthError",
    "MomentumResponseError",
    "MomentumTransportError",
    "TokenStore",
]
