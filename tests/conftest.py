"""Shared fixtures: in-memory fakes of the Supabase Auth and PostgREST APIs."""

import json
from datetime import date, datetime, timezone
from typing import Callable, Dict, List

import httpx
import pytest

from account_gateway.clients.supabase_client import SupabaseClient
from account_gateway.models.internal_models import LegalVersions, NormalizedRegistration

SUPABASE_URL = "https://project.supabase.test"
USER_ID = "7f3c2a9e-1b4d-4c8e-9a21-5d6f7e8a9b0c"
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def json_response(status: int, body) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(body).encode(), headers={"Content-Type": "application/json"})


def postgrest_error(message: str, details: str = None, hint: str = None, code: str = "23505") -> Dict:
    return {"code": code, "message": message, "details": details, "hint": hint}


def fk_violation() -> Dict:
    return postgrest_error(
        'insert or update on table "auth_info" violates foreign key constraint "auth_info_id_fkey"',
        details=f'Key (id)=({USER_ID}) is not present in table "users".',
        code="23503"
    )


class FakeSupabase:
    """
    Scripted Supabase backend.

    Each route holds a list of responders consumed in order; the last one is
    repeated once the list runs out. A responder is an ``httpx.Response`` or
    an exception instance to raise.
    """

    def __init__(self):
        self.routes: Dict[str, List] = {}
        self.requests: List[httpx.Request] = []

    def script(self, route: str, *responders) -> None:
        self.routes[route] = list(responders)

    def calls(self, route: str) -> List[httpx.Request]:
        return [r for r in self.requests if self._route_of(r) == route]

    @staticmethod
    def _route_of(request: httpx.Request) -> str:
        path = request.url.path
        if path.startswith("/auth/v1/admin/users/"):
            return "admin_user"
        return {
            "/auth/v1/signup": "signup",
            "/auth/v1/token": "login",
            "/rest/v1/auth_info": "upsert",
        }.get(path, path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._route_of(request)
        responders = self.routes.get(route)
        if not responders:
            return json_response(404, {"message": f"no route for {route}"})
        responder = responders.pop(0) if len(responders) > 1 else responders[0]
        if isinstance(responder, Exception):
            raise responder
        # Fresh copy so a repeated responder is never reused across requests
        return httpx.Response(responder.status_code, headers=responder.headers, content=responder.content)

    def client(self) -> SupabaseClient:
        return SupabaseClient(url=SUPABASE_URL, key="test-key", transport=httpx.MockTransport(self.handler))


def network_error() -> httpx.ConnectError:
    return httpx.ConnectError("connection refused")


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def recorded_sleep() -> Callable:
    """Sleep replacement that records requested delays without waiting."""
    delays: List[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def legal_versions() -> LegalVersions:
    return LegalVersions(terms_version="2024-01", privacy_version="2024-02")


@pytest.fixture
def registration() -> NormalizedRegistration:
    return NormalizedRegistration(
        email="a@b.com",
        password="password1",
        full_name="Ana Silva",
        cpf="52998224725",
        phone_number="11987654321",
        birth_date=date(1990, 1, 1),
        accepted_terms=True,
        accepted_privacy_policy=True,
    )


@pytest.fixture
def signup_body() -> Dict:
    return {
        "access_token": "jwt-token",
        "token_type": "bearer",
        "user": {"id": USER_ID, "email": "a@b.com"},
    }
