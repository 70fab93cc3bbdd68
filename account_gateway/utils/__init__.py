# Utilities module

from .retry import (
    RetryCancelledError,
    is_retryable_status,
    pause,
    with_backoff,
)
from .validators import (
    is_valid_cpf,
    is_valid_phone,
    normalize_email,
    only_digits,
)

__all__ = [
    "RetryCancelledError",
    "is_retryable_status",
    "pause",
    "with_backoff",
    "is_valid_cpf",
    "is_valid_phone",
    "normalize_email",
    "only_digits",
]
