# oauth_google.py
from __future__ import annotations
import logging
import os
import secrets
import time
import uuid
from datetime import timezone
from typing import Dict, Any, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse, HTMLResponse
from google_auth_oauthlib.flow import Flow

logger = logging.getLogger(__name__)

router = APIRouter()

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/calendar.events",
]

_sessions: Dict[str, Dict[str, Any]] = {}


class GoogleAuthError(RuntimeError):
    pass


def init(sessions: Dict[str, Dict[str, Any]]):
    global _sessions
    _sessions = sessions


def get_sid(req: Request) -> str:
    sid = req.cookies.get("sid")
    if not sid:
        sid = str(uuid.uuid4())
    return sid


def _client_credentials() -> tuple[str, str]:
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise GoogleAuthError("Missing GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET in env")
    return client_id, client_secret


def _build_flow(state: str) -> Flow:
    """
    Uses OAuth *web application* client.
    """
    client_id, client_secret = _client_credentials()
    redirect_uri = os.getenv("GOOGLE_REDIRECT_URI")  # e.g. http://localhost:7860/google/callback
    if not redirect_uri:
        raise GoogleAuthError("Missing GOOGLE_REDIRECT_URI in env")

    flow = Flow.from_client_config(
        {
            "web": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": GOOGLE_TOKEN_URL,
                "redirect_uris": [redirect_uri],
            }
        },
        scopes=SCOPES,
        state=state,
    )
    flow.redirect_uri = redirect_uri
    return flow


def refresh_access_token(*, refresh_token: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Exchange a refresh_token for a new access token.
    Returns Google's token response: access_token, expires_in, scope, token_type.
    """
    client_id, client_secret = _client_credentials()
    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }

    try:
        if client is not None:
            r = client.post(GOOGLE_TOKEN_URL, data=data)
        else:
            with httpx.Client(timeout=20) as own_client:
                r = own_client.post(GOOGLE_TOKEN_URL, data=data)
    except httpx.HTTPError as e:
        raise GoogleAuthError(f"Token refresh request failed: {type(e).__name__}") from e

    # body may echo credentials back, only the status is reported
    if r.status_code != 200:
        raise GoogleAuthError(f"Failed to refresh token: {r.status_code}")
    try:
        js = r.json()
    except ValueError as e:
        raise GoogleAuthError("Token endpoint returned invalid JSON") from e
    if not isinstance(js, dict) or not js.get("access_token"):
        raise GoogleAuthError("Token endpoint response has no access_token")
    return js


def current_tokens(sid: str, *, client: Optional[httpx.Client] = None) -> Optional[Dict[str, Any]]:
    """
    Session tokens for `sid`, refreshed first when the access token has expired
    and a refresh token is on hand. A failed refresh leaves the expired tokens
    in place so the access gate rejects them.
    """
    tokens = _sessions.get(sid, {}).get("google_tokens")
    if not tokens:
        return None

    expires_at = tokens.get("expires_at")
    if expires_at is None or expires_at > time.time() or not tokens.get("refresh_token"):
        return tokens

    try:
        js = refresh_access_token(refresh_token=tokens["refresh_token"], client=client)
    except GoogleAuthError as e:
        logger.warning("Access token refresh failed for session: %s", e)
        return tokens

    tokens = {
        **tokens,
        "access_token": js.get("access_token"),
        "expires_at": time.time() + int(js.get("expires_in", 3600)),
    }
    _sessions[sid]["google_tokens"] = tokens
    logger.info("Refreshed Google access token")
    return tokens


@router.get("/auth/google")
def auth_google(request: Request):
    sid = get_sid(request)

    csrf = secrets.token_urlsafe(24)
    _sessions.setdefault(sid, {})
    _sessions[sid]["oauth_csrf"] = csrf

    flow = _build_flow(state=csrf)
    auth_url, _ = flow.authorization_url(
        access_type="offline",           # to receive refresh_token
        include_granted_scopes="true",
        prompt="consent",                # force refresh_token the first time
    )

    resp = RedirectResponse(auth_url)
    resp.set_cookie("sid", sid, httponly=True, samesite="lax")
    return resp


@router.get("/google/callback")
def auth_callback(request: Request, state: str, code: str):
    sid = get_sid(request)
    saved = _sessions.get(sid, {}).get("oauth_csrf")
    if not saved or saved != state:
        logger.warning("OAuth state mismatch on callback")
        return HTMLResponse("OAuth state mismatch. Please retry /auth/google", status_code=400)

    flow = _build_flow(state=state)
    flow.fetch_token(code=code)

    creds = flow.credentials
    expires_at = None
    if creds.expiry is not None:
        # google-auth keeps expiry as naive UTC
        expires_at = creds.expiry.replace(tzinfo=timezone.utc).timestamp()

    _sessions.setdefault(sid, {})
    _sessions[sid].pop("oauth_csrf", None)
    _sessions[sid]["google_tokens"] = {
        "access_token": creds.token,
        "refresh_token": creds.refresh_token,   # may be None if Google didn't return it
        "expires_at": expires_at,
    }
    logger.info("Google Calendar connected (refresh token: %s)", "yes" if creds.refresh_token else "no")

    resp = RedirectResponse("/")
    resp.set_cookie("sid", sid, httponly=True, samesite="lax")
    return resp


@router.get("/auth/logout")
def auth_logout(request: Request):
    sid = get_sid(request)
    _sessions.get(sid, {}).pop("google_tokens", None)
    return RedirectResponse("/login")
