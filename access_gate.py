# access_gate.py
from __future__ import annotations

import time
from typing import Any, Mapping, Optional

from errors import Unauthorized


def _tokens_of(session: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not session:
        return {}
    tokens = session.get("google_tokens")
    if isinstance(tokens, Mapping):
        return tokens
    return session


def authorize(session: Optional[Mapping[str, Any]], *, now: Optional[float] = None) -> str:
    """
    Return the usable access token from a session, or raise Unauthorized.
    An `expires_at` (epoch seconds) in the past makes the token unusable.
    """
    tokens = _tokens_of(session)
    access_token = tokens.get("access_token")
    if not isinstance(access_token, str) or not access_token.strip():
        raise Unauthorized()

    expires_at = tokens.get("expires_at")
    if expires_at is not None:
        current = time.time() if now is None else now
        if float(expires_at) <= current:
            raise Unauthorized("Access token expired")

    return access_token
