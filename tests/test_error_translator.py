"""
Tests for upstream error translation.
"""

import json

import pytest

from account_gateway.models.internal_models import ApiError, ErrorKind
from account_gateway.services.error_translator import (
    ERROR_RULES,
    IDENTITY_FALLBACK_MESSAGE,
    PROFILE_FALLBACK_MESSAGE,
    STILL_CONVERGING_MESSAGE,
    classify,
    extract_identity_message,
    extract_profile_messages,
    translate_identity_error,
    translate_profile_error,
)

CPF_CONFLICT = 'duplicate key value violates unique constraint "uq_auth_info_cpf"'


class TestClassify:
    """Test cases for the ordered rule table."""

    @pytest.mark.parametrize("text,status,expected_status,expected_kind,fragment", [
        ("User already registered", 422, 409, ErrorKind.CONFLICT, "E-mail"),
        ("A user with this email address has already been registered", 422, 409, ErrorKind.CONFLICT, "E-mail"),
        ("Invalid login credentials", 400, 401, ErrorKind.UNAUTHORIZED, "credentials"),
        (CPF_CONFLICT, 409, 409, ErrorKind.CONFLICT, "CPF"),
        ('duplicate key value violates unique constraint "uq_auth_info_phone_number"', 409, 409,
         ErrorKind.CONFLICT, "Phone"),
        ('duplicate key value violates unique constraint "users_email_key"', 409, 409, ErrorKind.CONFLICT, "E-mail"),
        ('violates foreign key constraint "auth_info_id_fkey"', 409, 409, ErrorKind.STILL_CONVERGING, "processing"),
        ('new row violates check constraint "auth_info_cpf_valid"', 400, 400, ErrorKind.INVALID_INPUT, "Invalid CPF"),
        ("CPF inválido", 400, 400, ErrorKind.INVALID_INPUT, "Invalid CPF"),
        ('violates check constraint "auth_info_cpf_format"', 400, 400, ErrorKind.INVALID_INPUT, "11 digits"),
        ('violates check constraint "auth_info_phone_format"', 400, 400, ErrorKind.INVALID_INPUT, "phone"),
        ('violates check constraint "auth_info_full_name_minlen"', 400, 400, ErrorKind.INVALID_INPUT, "Full name"),
        ('violates check constraint "auth_info_terms_timestamp_if_true"', 400, 400, ErrorKind.INVALID_INPUT, "Terms"),
        ('violates check constraint "auth_info_privacy_timestamp_if_true"', 400, 400,
         ErrorKind.INVALID_INPUT, "Privacy"),
        ('duplicate key value violates unique constraint "some_new_key"', 409, 409, ErrorKind.CONFLICT, "unique"),
    ])
    def test_rules(self, text, status, expected_status, expected_kind, fragment):
        error = classify(text, status)

        assert error is not None
        assert error.status == expected_status
        assert error.kind is expected_kind
        assert fragment in error.message

    def test_invalid_credentials_requires_400(self):
        assert classify("Invalid login credentials", 500) is None

    def test_matching_is_case_insensitive(self):
        assert classify(CPF_CONFLICT.upper(), 409).message == "CPF already registered."

    def test_specific_constraint_precedes_generic_duplicate(self):
        error = classify(CPF_CONFLICT, 409)

        assert error.message != ERROR_RULES[-1].message

    def test_no_match_returns_none(self):
        assert classify("something unexpected", 500) is None

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_blank_returns_none(self, text):
        assert classify(text, 400) is None


class TestExtraction:
    def test_identity_key_priority(self):
        body = {"error": "invalid_grant", "error_description": "desc", "message": "msg-field", "msg": "first"}
        assert extract_identity_message(body) == "first"

    def test_identity_skips_blank_values(self):
        body = {"msg": " ", "message": None, "error_description": "Invalid login credentials"}
        assert extract_identity_message(body) == "Invalid login credentials"

    def test_identity_no_message(self):
        assert extract_identity_message({"code": 500}) is None

    def test_profile_messages_in_order(self):
        body = {"message": "m", "details": "", "hint": "h"}
        assert extract_profile_messages(body) == ("m", "h")


class TestTranslateIdentityError:
    """Test cases for Supabase Auth error bodies."""

    def test_already_registered(self):
        raw = json.dumps({"code": 422, "msg": "User already registered"})

        assert translate_identity_error(422, raw) == ApiError(409, "E-mail already registered.", ErrorKind.CONFLICT)

    def test_invalid_credentials(self):
        raw = json.dumps({"error": "invalid_grant", "error_description": "Invalid login credentials"})

        error = translate_identity_error(400, raw)

        assert error.status == 401
        assert error.kind is ErrorKind.UNAUTHORIZED

    def test_unmatched_message_passes_through(self):
        raw = json.dumps({"msg": "Password should be at least 6 characters"})

        assert translate_identity_error(422, raw) == ApiError(422, "Password should be at least 6 characters")

    def test_blank_body(self):
        assert translate_identity_error(503, "") == ApiError(503, IDENTITY_FALLBACK_MESSAGE)

    def test_non_json_body_classified_raw(self):
        assert translate_identity_error(422, "User already registered").status == 409

    def test_non_json_body_passes_through(self):
        assert translate_identity_error(502, "<html>Bad gateway</html>") == ApiError(502, "<html>Bad gateway</html>")

    def test_json_without_message_uses_raw(self):
        raw = json.dumps({"code": 500})

        assert translate_identity_error(500, raw) == ApiError(500, raw)


class TestTranslateProfileError:
    """Test cases for PostgREST error bodies."""

    @pytest.mark.parametrize("field", ["message", "details", "hint"])
    def test_unique_cpf_in_any_field(self, field):
        body = {"code": "23505", "message": None, "details": None, "hint": None}
        body[field] = CPF_CONFLICT

        error = translate_profile_error(409, json.dumps(body))

        assert error == ApiError(409, "CPF already registered.", ErrorKind.CONFLICT)

    def test_constraint_name_in_hint_behind_generic_message(self):
        body = {"message": "request failed", "details": None, "hint": CPF_CONFLICT}

        assert translate_profile_error(409, json.dumps(body)).message == "CPF already registered."

    def test_unique_phone(self):
        body = {
            "code": "23505",
            "message": 'duplicate key value violates unique constraint "uq_auth_info_phone_number"',
            "details": "Key (phone_number)=(11987654321) already exists.",
        }

        error = translate_profile_error(409, json.dumps(body))

        assert error == ApiError(409, "Phone number already registered.", ErrorKind.CONFLICT)

    def test_foreign_key_is_still_converging(self):
        body = {"code": "23503", "message": 'violates foreign key constraint "auth_info_id_fkey"'}

        error = translate_profile_error(409, json.dumps(body))

        assert error == ApiError(409, STILL_CONVERGING_MESSAGE, ErrorKind.STILL_CONVERGING)

    def test_unmatched_uses_first_non_blank_message(self):
        body = {"message": "", "details": "permission denied for table auth_info", "hint": "grant it"}

        error = translate_profile_error(403, json.dumps(body))

        assert error == ApiError(403, "permission denied for table auth_info")

    def test_json_without_fields_falls_back_to_raw(self):
        raw = json.dumps({"code": "PGRST000"})

        assert translate_profile_error(503, raw) == ApiError(503, raw)

    def test_blank_body(self):
        assert translate_profile_error(500, "  ") == ApiError(500, PROFILE_FALLBACK_MESSAGE)

    def test_non_json_body_classified_raw(self):
        error = translate_profile_error(409, f"ERROR: {CPF_CONFLICT}")

        assert error.message == "CPF already registered."
