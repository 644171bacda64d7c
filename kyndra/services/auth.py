"""In-process identity provider.

Stands in for the hosted auth service: passwordless email links, third-party
OAuth sign-in, auth-code exchange, sign-out and a session-change stream on the
event bus. The rest of the app only relies on a stable user id, an email and
optional profile metadata.
"""

from __future__ import annotations

import logging
import secrets

from kyndra.domain.bus import EventBus
from kyndra.domain.errors import AuthError, ValidationFailed
from kyndra.domain.events import SessionChanged
from kyndra.domain.models import Session, SessionEventType, User

logger = logging.getLogger(__name__)

SUPPORTED_OAUTH_PROVIDERS = ("google", "apple", "github")


class IdentityProvider:
    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self._users_by_email: dict[str, User] = {}
        self._pending_codes: dict[str, User] = {}
        self._sessions: dict[str, Session] = {}

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    def sign_in_with_otp(self, email: str) -> str:
        """Issue a one-time code for a magic link sent to *email*."""
        user = self._user_for(email, {})
        code = self._issue_code(user)
        logger.info("Magic link issued for user %s", user.id)
        return code

    def sign_in_with_oauth(self, provider: str, email: str, metadata: dict | None = None) -> str:
        """Issue a one-time code for an identity confirmed by *provider*."""
        if provider not in SUPPORTED_OAUTH_PROVIDERS:
            raise ValidationFailed(f"Unsupported provider: {provider}")
        user = self._user_for(email, metadata or {})
        code = self._issue_code(user)
        logger.info("OAuth sign-in via %s for user %s", provider, user.id)
        return code

    def exchange_code_for_session(self, code: str) -> Session:
        user = self._pending_codes.pop(code, None)
        if user is None:
            raise AuthError("Invalid or expired auth code")
        session = Session(user=user)
        self._sessions[session.access_token] = session
        self.bus.publish(SessionChanged(type=SessionEventType.SIGNED_IN, user=user))
        return session

    # ------------------------------------------------------------------
    # Session access
    # ------------------------------------------------------------------

    def get_session(self, access_token: str | None) -> Session | None:
        if not access_token:
            return None
        return self._sessions.get(access_token)

    def get_user(self, access_token: str | None) -> User:
        session = self.get_session(access_token)
        if session is None:
            raise AuthError("You need to sign in to continue.")
        return session.user

    def sign_out(self, access_token: str | None) -> None:
        session = self._sessions.pop(access_token or "", None)
        if session is None:
            return
        logger.info("User %s signed out", session.user.id)
        self.bus.publish(SessionChanged(type=SessionEventType.SIGNED_OUT, user=session.user))

    def clear(self) -> None:
        self._users_by_email.clear()
        self._pending_codes.clear()
        self._sessions.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _user_for(self, email: str, metadata: dict) -> User:
        normalized = email.strip().lower()
        if "@" not in normalized:
            raise ValidationFailed("A valid email address is required.")
        user = self._users_by_email.get(normalized)
        if user is None:
            user = User(email=normalized)
            self._users_by_email[normalized] = user
        user.user_metadata.update({k: v for k, v in metadata.items() if v})
        return user

    def _issue_code(self, user: User) -> str:
        code = secrets.token_urlsafe(16)
        self._pending_codes[code] = user
        return code
