"""
Translation of upstream error bodies into the gateway's error contract.

Supabase Auth and PostgREST report failures with different JSON shapes. Each
shape has a small extraction function; both feed a single ordered rule table
matched against lowercased text, first match wins. Constraint names below are
the literal names used by the ``auth_info`` schema. A message that matches no
rule is passed through with its original status and text.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from account_gateway.models.internal_models import ApiError, ErrorKind

IDENTITY_MESSAGE_KEYS = ("msg", "message", "error_description", "error")
PROFILE_MESSAGE_KEYS = ("message", "details", "hint")

IDENTITY_FALLBACK_MESSAGE = "Identity service error."
PROFILE_FALLBACK_MESSAGE = "Failed to persist profile record."

STILL_CONVERGING_MESSAGE = "Registration still processing. Try again in a few seconds."


class UpstreamError(Exception):
    """An upstream call failed; carries the translated error."""

    def __init__(self, error: ApiError):
        super().__init__(error.message)
        self.error = error

    @property
    def status(self) -> int:
        return self.error.status

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


@dataclass(frozen=True)
class ErrorRule:
    """
    One row of the translation table.

    The rule matches when any ``any_of`` needle is present (or ``any_of`` is
    empty), every ``all_of`` needle is present, and the upstream status equals
    ``upstream_status`` when one is given.
    """

    status: int
    kind: ErrorKind
    message: str
    any_of: Tuple[str, ...] = ()
    all_of: Tuple[str, ...] = ()
    upstream_status: Optional[int] = None

    def matches(self, text: str, status: int) -> bool:
        if self.upstream_status is not None and status != self.upstream_status:
            return False
        if self.any_of and not any(needle in text for needle in self.any_of):
            return False
        return all(needle in text for needle in self.all_of)


ERROR_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule(409, ErrorKind.CONFLICT, "E-mail already registered.",
              any_of=("user already registered",)),
    ErrorRule(409, ErrorKind.CONFLICT, "E-mail already registered.",
              all_of=("email", "already")),
    ErrorRule(401, ErrorKind.UNAUTHORIZED, "Invalid credentials.",
              any_of=("invalid login credentials",), upstream_status=400),
    ErrorRule(409, ErrorKind.CONFLICT, "CPF already registered.",
              any_of=("uq_auth_info_cpf",)),
    ErrorRule(409, ErrorKind.CONFLICT, "Phone number already registered.",
              any_of=("uq_auth_info_phone_number",)),
    ErrorRule(409, ErrorKind.CONFLICT, "E-mail already registered.",
              any_of=("users_email_key",)),
    ErrorRule(409, ErrorKind.STILL_CONVERGING, STILL_CONVERGING_MESSAGE,
              any_of=("auth_info_id_fkey",)),
    ErrorRule(400, ErrorKind.INVALID_INPUT, "Invalid CPF.",
              any_of=("auth_info_cpf_valid", "cpf inválido", "cpf invalido")),
    ErrorRule(400, ErrorKind.INVALID_INPUT, "CPF must contain 11 digits.",
              any_of=("auth_info_cpf_format",)),
    ErrorRule(400, ErrorKind.INVALID_INPUT, "Invalid phone number. Use 10 to 15 digits.",
              any_of=("auth_info_phone_format",)),
    ErrorRule(400, ErrorKind.INVALID_INPUT, "Full name must have at least 3 characters.",
              any_of=("auth_info_full_name_minlen",)),
    ErrorRule(400, ErrorKind.INVALID_INPUT, "Terms of use must be properly accepted.",
              any_of=("auth_info_terms_timestamp_if_true",)),
    ErrorRule(400, ErrorKind.INVALID_INPUT, "Privacy policy must be properly accepted.",
              any_of=("auth_info_privacy_timestamp_if_true",)),
    ErrorRule(409, ErrorKind.CONFLICT, "A record with one of the given unique values already exists.",
              any_of=("duplicate key value violates unique constraint",)),
)


def classify(text: Optional[str], status: int) -> Optional[ApiError]:
    """Return the first matching rule's error, or ``None`` when nothing matches."""
    if not text or not text.strip():
        return None
    lowered = text.lower()
    for rule in ERROR_RULES:
        if rule.matches(lowered, status):
            return ApiError(rule.status, rule.message, rule.kind)
    return None


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _first_non_blank(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value
    return None


def _parse_object(raw: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_identity_message(body: Dict[str, Any]) -> Optional[str]:
    """Supabase Auth puts its message under one of several keys depending on the endpoint."""
    return _first_non_blank(_as_text(body.get(key)) for key in IDENTITY_MESSAGE_KEYS)


def extract_profile_messages(body: Dict[str, Any]) -> Tuple[str, ...]:
    """PostgREST splits constraint violations across message, details and hint."""
    return tuple(
        text for text in (_as_text(body.get(key)) for key in PROFILE_MESSAGE_KEYS)
        if text is not None and text.strip()
    )


def translate_identity_error(status: int, raw: Optional[str]) -> ApiError:
    """Translate a Supabase Auth error response."""
    if not raw or not raw.strip():
        return ApiError(status, IDENTITY_FALLBACK_MESSAGE)

    body = _parse_object(raw)
    message = extract_identity_message(body) if body is not None else None
    if message is None:
        message = raw

    return classify(message, status) or ApiError(status, message)


def translate_profile_error(status: int, raw: Optional[str]) -> ApiError:
    """Translate a PostgREST error response."""
    if not raw or not raw.strip():
        return ApiError(status, PROFILE_FALLBACK_MESSAGE)

    body = _parse_object(raw)
    messages = extract_profile_messages(body) if body is not None else ()
    if not messages:
        return classify(raw, status) or ApiError(status, raw)

    return classify(" ".join(messages), status) or ApiError(status, messages[0])
