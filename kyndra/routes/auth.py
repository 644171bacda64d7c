"""Sign-in, auth-code exchange, sign-out and session lookup."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response

from kyndra.deps import access_token, identity, settings
from kyndra.domain.errors import AuthError
from kyndra.domain.models import MagicLinkRequest, OAuthSignInRequest, SessionInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _callback_link(code: str) -> dict:
    # The in-process provider hands the link back instead of emailing it
    return {"status": "sent", "callback_url": f"/auth/callback?code={code}"}


@router.post("/magic-link")
def request_magic_link(payload: MagicLinkRequest) -> dict:
    """Start a passwordless sign-in for an email address."""
    return _callback_link(identity.sign_in_with_otp(payload.email))


@router.post("/oauth/{provider}")
def oauth_sign_in(provider: str, payload: OAuthSignInRequest) -> dict:
    """Start a sign-in for an identity confirmed by a third-party provider."""
    metadata = {"full_name": payload.full_name, "avatar_url": payload.avatar_url}
    return _callback_link(identity.sign_in_with_oauth(provider, payload.email, metadata))


@router.get("/callback")
def auth_callback(code: str | None = Query(None)) -> Response:
    """Exchange the auth code for a session cookie and go to the home screen."""
    response = RedirectResponse("/home", status_code=303, headers={"Cache-Control": "no-store"})
    if not code:
        return response
    try:
        session = identity.exchange_code_for_session(code)
    except AuthError as exc:
        logger.error("Auth exchange error: %s", exc.message)
        return response
    response.set_cookie(
        settings.session_cookie,
        session.access_token,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/signout")
def sign_out(token: str | None = Depends(access_token)) -> Response:
    identity.sign_out(token)
    response = Response(status_code=204)
    response.delete_cookie(settings.session_cookie)
    return response


@router.get("/session", response_model=SessionInfo)
def get_session(token: str | None = Depends(access_token)) -> SessionInfo:
    session = identity.get_session(token)
    if session is None:
        return SessionInfo(active=False)
    return SessionInfo(active=True, user=session.user)
