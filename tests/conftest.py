"""Shared fixtures: a stubbed Google Calendar / token endpoint on httpx.MockTransport."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

import httpx
import pytest


class GoogleStub:
    """Answers calendar create/delete and token refresh calls, recording every request."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.create_status = 200
        self.create_body: Any = {
            "id": "evt123",
            "hangoutLink": "https://meet.google.com/abc-defg-hij",
        }
        self.delete_status = 204
        self.delete_body: Any = None
        self.token_status = 200
        self.token_body: Any = {"access_token": "fresh-token", "expires_in": 3600}
        self.raise_on: str | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_on == request.method:
            raise httpx.ConnectError("connection refused", request=request)

        if request.url.host == "oauth2.googleapis.com":
            return _response(self.token_status, self.token_body)
        if request.method == "POST":
            return _response(self.create_status, self.create_body)
        if request.method == "DELETE":
            return _response(self.delete_status, self.delete_body)
        return httpx.Response(405)

    @property
    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def methods(self) -> List[str]:
        return [r.method for r in self.requests]

    def json_of(self, index: int) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


def _response(status: int, body: Any) -> httpx.Response:
    if body is None:
        return httpx.Response(status)
    if isinstance(body, (bytes, str)):
        return httpx.Response(status, content=body)
    return httpx.Response(status, json=body)


@pytest.fixture
def google() -> GoogleStub:
    return GoogleStub()


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
