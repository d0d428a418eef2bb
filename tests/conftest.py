"""Shared fixtures and fakes for audit tests."""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import pytest

from sharedmailbox_audit.collectors.base import BaseCollector
from sharedmailbox_audit.graph.client import GraphClient
from sharedmailbox_audit.models import Principal
from sharedmailbox_audit.safety.guardian import SafetyGuardian

GRAPH = "https://graph.microsoft.com/v1.0"

Route = Any  # dict payload, httpx.Response, or callable(request) -> either


def graph_transport(routes: dict[str, Route], calls: Optional[list] = None) -> httpx.MockTransport:
    """Build a MockTransport that serves Graph paths (e.g. "/v1.0/users")."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(
                404,
                json={"error": {"code": "ResourceNotFound", "message": "Not found"}},
                request=request,
            )
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route, request=request)

    return httpx.MockTransport(handler)


def make_graph(routes: dict[str, Route], calls: Optional[list] = None, **kwargs) -> GraphClient:
    kwargs.setdefault("max_retries", 0)
    kwargs.setdefault("initial_backoff", 0.0)
    return GraphClient(
        access_token="test-token",
        guardian=SafetyGuardian(),
        transport=graph_transport(routes, calls),
        **kwargs,
    )


def principal(upn: str, order: int = 0, roles=(), licenses=()) -> Principal:
    return Principal(
        user_principal_name=upn,
        order=order,
        object_id=f"id-{upn.split('@')[0]}",
        roles=tuple(roles),
        licenses=tuple(licenses),
    )


class FakeCollector(BaseCollector):
    """In-memory directory client with scripted purposes or errors."""

    name = "fake"

    def __init__(
        self,
        principals: list[Principal],
        purposes: dict[str, Any],
        primary_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(graph=None)  # type: ignore[arg-type]
        self._principals = principals
        self._purposes = purposes
        self._primary_error = primary_error
        self.lookups: list[str] = []

    async def _collect(self) -> list[Principal]:
        if self._primary_error is not None:
            raise self._primary_error
        return list(self._principals)

    async def fetch_mailbox_purpose(self, principal: Principal) -> Optional[str]:
        self.lookups.append(principal.user_principal_name)
        value = self._purposes.get(principal.user_principal_name)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Callable[..., None]:
    """Remove credential variables; anything loaded later is undone on teardown."""
    names = ("TENANT_ID", "CLIENT_ID", "CLIENT_SECRET", "CERTIFICATE_PATH", "CERTIFICATE_PASSWORD")
    for name in names:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)

    def set_env(**values: str) -> None:
        for key, value in values.items():
            monkeypatch.setenv(key, value)

    return set_env
