# session_store.py

from datetime import timedelta
from functools import wraps
from typing import Optional, Dict, Any

from flask import g, flash, redirect, url_for

from config import TOKEN_COOKIE, TOKEN_MAX_AGE_DAYS, SECURE_COOKIES
from models import AuthResult, User
from logger import get_logger

log = get_logger("session_store")

USER_KEY = "user"

# pending cookie actions, applied by persist()
_SET = "set"
_CLEAR = "clear"


class SessionStore:
    """
    The current user's identity and bearer token for one request.

    Built by init() from the token cookie and the signed Flask session,
    mutated by login/register/logout/teardown, and written back to the
    response by persist(). Nothing here is module-global.
    """

    def __init__(self, token: Optional[str] = None, user: Optional[User] = None):
        self.token = token or None
        self.user = user if self.token else None
        self._pending: Optional[str] = None

    @classmethod
    def init(cls, cookies, flask_session) -> "SessionStore":
        token = cookies.get(TOKEN_COOKIE)
        raw = flask_session.get(USER_KEY)
        user = User.from_api(raw) if isinstance(raw, dict) else None
        return cls(token=token, user=user)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    def get_token(self) -> Optional[str]:
        return self.token

    def _accept(self, result: AuthResult) -> User:
        self.token = result.token
        self.user = result.user
        self._pending = _SET
        return result.user

    def login(self, auth_api, email: str, password: str) -> User:
        # auth_api errors propagate; the token stays unset on failure
        user = self._accept(auth_api.login(email, password))
        log.info(f"Login OK: {user.email} role={user.role}")
        return user

    def register_user(self, auth_api, fields: Dict[str, Any]) -> Optional[User]:
        """Returns None when the API created the account without issuing a token."""
        result = auth_api.register(fields)
        if result is None:
            log.info(f"Registered without token: {fields.get('email')}")
            return None
        user = self._accept(result)
        log.info(f"Registered: {user.email} role={user.role}")
        return user

    def teardown(self, reason: str = "logout") -> None:
        if self.user or self.token:
            log.info(f"Session cleared ({reason}): {self.user.email if self.user else '-'}")
        self.token = None
        self.user = None
        self._pending = _CLEAR

    def logout(self) -> None:
        # client-side only, the API is not told
        self.teardown("logout")

    def persist(self, response, flask_session):
        if self._pending == _SET:
            response.set_cookie(
                TOKEN_COOKIE,
                self.token,
                max_age=int(timedelta(days=TOKEN_MAX_AGE_DAYS).total_seconds()),
                httponly=True,
                samesite="Lax",
                secure=SECURE_COOKIES,
            )
            flask_session[USER_KEY] = self.user.to_session() if self.user else None
            flask_session.permanent = True
        elif self._pending == _CLEAR:
            response.delete_cookie(TOKEN_COOKIE)
            flask_session.pop(USER_KEY, None)
        self._pending = None
        return response


def login_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        if not g.store.is_authenticated:
            return redirect(url_for("login"))
        return view(**kwargs)

    return wrapped_view


def admin_required(view):
    # UI gating only; the API enforces the real policy
    @wraps(view)
    def wrapped_view(**kwargs):
        if not g.store.is_authenticated:
            return redirect(url_for("login"))
        if not g.store.is_admin:
            flash("Admins only.", "error")
            return redirect(url_for("dashboard"))
        return view(**kwargs)

    return wrapped_view
