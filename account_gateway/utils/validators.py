"""
Input normalization and format validators.

CPF and phone are optional on registration, so blank values are accepted by
the validators; presence is checked by the caller where it matters.
"""

from typing import Optional


def only_digits(value: Optional[str]) -> str:
    """Strip everything but ASCII digits; ``None`` and blank become ``""``."""
    if not value or not value.strip():
        return ""
    return "".join(c for c in value.strip() if "0" <= c <= "9")


def normalize_email(email: Optional[str]) -> str:
    return "" if email is None else email.strip().lower()


def _check_digit(total: int) -> int:
    digit = 11 - (total % 11)
    return 0 if digit >= 10 else digit


def is_valid_cpf(value: Optional[str]) -> bool:
    """
    Validate a CPF with the modulo-11 check digits.

    The first check digit weighs the nine base digits 10..2, the second one
    weighs the base digits plus the first check digit 11..2. Sequences of a
    single repeated digit pass the checksum but are not valid documents.
    """
    cpf = only_digits(value)
    if not cpf:
        return True
    if len(cpf) != 11:
        return False
    if len(set(cpf)) == 1:
        return False

    digits = [int(c) for c in cpf]
    first = _check_digit(sum(n * w for n, w in zip(digits[:9], range(10, 1, -1))))
    second = _check_digit(sum(n * w for n, w in zip(digits[:9] + [first], range(11, 1, -1))))
    return first == digits[9] and second == digits[10]


def is_valid_phone(value: Optional[str]) -> bool:
    """Accept phone numbers with 10 to 15 digits once punctuation is removed."""
    digits = only_digits(value)
    if not digits:
        return True
    return 10 <= len(digits) <= 15
