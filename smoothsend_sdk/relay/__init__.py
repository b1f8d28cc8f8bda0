"""
Relayer access: HTTP transport, retry policy and the typed relay client.
"""
from .client import RelayClient
from .http import NETWORK_ERROR_MESSAGE, HttpClient, sanitize_payload
from .retry import default_is_retryable, with_retry

__all__ = [
    "RelayClient",
    "HttpClient",
    "NETWORK_ERROR_MESSAGE",
    "sanitize_payload",
    "with_retry",
    "default_is_retryable",
]
