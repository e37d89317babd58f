"""
Auth Service Module

Login, logout and session observation for the single administrator account.
The session lifecycle belongs to the remote auth service; this module only
asks for it and listens to it.
"""

from typing import Callable, Optional

from data.database import get_store
from data.models import AdminUser, AuthSession, AuthState
from data.protocols import AuthBackend
from utils.exceptions import AuthError, ValidationError
from utils.helpers import call_with_retry, is_blank
from utils.logger import get_logger

logger = get_logger(__name__)


class AuthService:
    """Service wrapping the remote auth backend."""

    def __init__(self, store: Optional[AuthBackend] = None):
        self.store = store if store is not None else get_store()

    def login(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Returns:
            AuthSession: The new session

        Raises:
            ValidationError: If email or password is blank
            AuthError: If the credentials are rejected or no session is returned
        """
        if is_blank(email) or is_blank(password):
            raise ValidationError("Email and password are required")

        session = call_with_retry(lambda: self.store.sign_in_with_password(email.strip(), password), "login")
        if session is None:
            raise AuthError("Login failed: no session returned")

        logger.info(f"Administrator signed in as {session.user.email or session.user.id}")
        return session

    def logout(self) -> None:
        """Sign out; raises AuthError if the remote service reports a failure."""
        try:
            call_with_retry(lambda: self.store.sign_out(), "logout")
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Logout failed: {e}") from e
        logger.info("Administrator signed out")

    def get_current_session(self) -> Optional[AuthSession]:
        """Return the active session, or None. Never raises."""
        try:
            return call_with_retry(lambda: self.store.get_session(), "getSession")
        except Exception as e:
            logger.error(f"Error getting session: {e}")
            return None

    def get_current_user(self) -> Optional[AdminUser]:
        """Return the signed-in administrator, or None. Never raises."""
        try:
            return call_with_retry(lambda: self.store.get_user(), "getUser")
        except Exception as e:
            logger.error(f"Error getting current user: {e}")
            return None

    def on_session_change(self, callback: Callable[[Optional[AdminUser]], None]):
        """
        Call ``callback(user)`` whenever the session changes.

        The callback receives the signed-in user, or None after sign-out or
        expiry. Returns a handle whose ``unsubscribe()`` stops the callbacks.
        """
        def listener(event: str, session: Optional[AuthSession]) -> None:
            logger.debug(f"Auth state changed: {event}")
            callback(session.user if session else None)

        return self.store.on_auth_state_change(listener)

    def get_auth_state(self) -> AuthState:
        session = self.get_current_session()
        return AuthState(user=session.user if session else None)
