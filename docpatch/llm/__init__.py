"""Language model adapters."""

from .client import (
    ChatClient,
    Completion,
    GenerationError,
    InvalidResponseError,
    RateLimitedError,
    TransportError,
)
from .service import DocWriter

__all__ = [
    "ChatClient",
    "Completion",
    "DocWriter",
    "GenerationError",
    "InvalidResponseError",
    "RateLimitedError",
    "TransportError",
]
