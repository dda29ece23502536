import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from supabase import AuthError
import db
from config import app_cfg, AppConfig
from services.supabase_client import BackendError
from storage import TOKEN_KEY
from tokens import encode_token, decode_token

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

class AuthFlowError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class AuthPhase(str, Enum):
    ANONYMOUS = "anonymous"
    PENDING_REDIRECT = "pending-redirect"
    AUTHENTICATED = "authenticated"
    ERROR = "error"

@dataclass
class AuthState:
    """Current user for one app session. Mutate only through the methods below."""
    user: Optional[dict] = None
    phase: AuthPhase = AuthPhase.ANONYMOUS
    error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def set_user(self, user: dict):
        self.user = user
        self.phase = AuthPhase.AUTHENTICATED
        self.error = None

    def clear_user(self):
        self.user = None
        self.phase = AuthPhase.ANONYMOUS
        self.error = None

    def set_pending_redirect(self):
        self.phase = AuthPhase.PENDING_REDIRECT
        self.error = None

    def set_error(self, message: str):
        # a signed-in user stays signed in when e.g. logout fails
        self.error = message
        if self.user is None:
            self.phase = AuthPhase.ERROR

def _iso(value):
    return value.isoformat() if hasattr(value, "isoformat") else value

def profile_from_auth_user(auth_user) -> dict:
    """Profile row derived from the auth user's metadata.

    Name falls back name -> full_name -> "User"; avatar falls back
    avatar_url -> picture (the keys OAuth providers fill in).
    """
    meta = getattr(auth_user, "user_metadata", None) or {}
    return {
        "id": auth_user.id,
        "email": auth_user.email,
        "name": meta.get("name") or meta.get("full_name") or "User",
        "avatar_url": meta.get("avatar_url") or meta.get("picture"),
        "created_at": _iso(getattr(auth_user, "created_at", None)),
    }

def validate_registration(password: str, confirm: str) -> Optional[str]:
    if password != confirm:
        return "Passwords do not match"
    if len(password or "") < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return None

class SessionManager:
    """Owns the AuthState and drives it from the backend auth service.

    The backend session is authoritative; the fallback token in the local
    store only hints which profile to load when no backend session exists.
    """

    def __init__(self, client, store, state: Optional[AuthState] = None, cfg: AppConfig = app_cfg):
        self.client = client
        self.store = store
        self.state = state or AuthState()
        self.cfg = cfg
        self._subscription = None

    @property
    def auth(self):
        return self.client.auth

    # ---- listener
    def subscribe(self):
        if self._subscription is None:
            self._subscription = self.auth.on_auth_state_change(self.handle_auth_event)
        return self

    def close(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def handle_auth_event(self, event, session):
        event = getattr(event, "value", event)
        log.info("auth event %s", event)
        if event == "SIGNED_IN" and session is not None:
            row = self._fetch_profile(session.user.id)
            if row is None:
                row = profile_from_auth_user(session.user)
                try:
                    db.insert_profile(self.client, row)
                except BackendError as e:
                    log.warning("could not save profile for %s: %s", row["id"], e.message)
            self._remember(row["id"])
            self.state.set_user(row)
        elif event == "SIGNED_OUT":
            self.store.remove(TOKEN_KEY)
            self.state.clear_user()

    # ---- helpers
    def _fetch_profile(self, user_id: str) -> Optional[dict]:
        try:
            return db.get_profile(self.client, user_id)
        except BackendError as e:
            log.warning("profile lookup for %s failed: %s", user_id, e.message)
            return None

    def _remember(self, user_id: str):
        self.store.set(TOKEN_KEY, encode_token(user_id, secret=self.cfg.token_secret))

    def _fail(self, err: Exception):
        msg = getattr(err, "message", None) or str(err)
        log.warning("auth flow failed: %s", msg)
        self.state.set_error(msg)
        raise AuthFlowError(msg) from err

    # ---- flows
    def restore_session(self) -> Optional[dict]:
        """Decide who is signed in at app start. Never raises; worst case is logged out."""
        try:
            session = self.auth.get_session()
            if session is not None:
                row = self._fetch_profile(session.user.id) or profile_from_auth_user(session.user)
                self.state.set_user(row)
                return row
            token = self.store.get(TOKEN_KEY)
            if token:
                check = decode_token(token, secret=self.cfg.token_secret)
                if check.valid and not check.expired and check.user_id:
                    row = db.get_profile(self.client, check.user_id)
                    if row:
                        self.state.set_user(row)
                        return row
                    log.info("fallback token names unknown user, discarding")
                else:
                    log.info("fallback token rejected, discarding")
                self.store.remove(TOKEN_KEY)
            self.state.clear_user()
            return None
        except (AuthError, BackendError) as e:
            log.error("session check failed: %s", e)
            self.store.remove(TOKEN_KEY)
            self.state.clear_user()
            self.state.set_error(getattr(e, "message", None) or str(e))
            return None

    def register(self, email: str, password: str, name: str) -> dict:
        try:
            res = self.auth.sign_up({"email": email, "password": password, "options": {"data": {"name": name}}})
            if res.user is None:
                raise AuthFlowError("Registration failed. Please try again.")
            user = res.user
            row = db.insert_profile(self.client, {"id": user.id, "email": email, "name": name}) or {
                "id": user.id, "email": email, "name": name, "created_at": _iso(user.created_at)}
            self._remember(user.id)
            self.state.set_user(row)
            return row
        except AuthFlowError as e:
            self.state.set_error(e.message)
            raise
        except (AuthError, BackendError) as e:
            self._fail(e)

    def login(self, email: str, password: str) -> dict:
        try:
            res = self.auth.sign_in_with_password({"email": email, "password": password})
            row = self._fetch_profile(res.user.id) or profile_from_auth_user(res.user)
            self._remember(res.user.id)
            self.state.set_user(row)
            return row
        except AuthError as e:
            self._fail(e)

    def begin_oauth(self, provider: str = "google", redirect_to: Optional[str] = None) -> str:
        try:
            res = self.auth.sign_in_with_oauth(
                {"provider": provider, "options": {"redirect_to": redirect_to or self.cfg.app_url}})
        except AuthError as e:
            self._fail(e)
        self.state.set_pending_redirect()
        return res.url

    def complete_oauth(self, code: str) -> Optional[dict]:
        try:
            res = self.auth.exchange_code_for_session({"auth_code": code})
        except AuthError as e:
            self._fail(e)
        # without a live listener the SIGNED_IN event never reaches us
        if not self.state.is_authenticated:
            self.handle_auth_event("SIGNED_IN", res.session)
        if not self.state.is_authenticated:
            self.state.set_error("Sign-in did not complete. Please try again.")
        return self.state.user

    def logout(self):
        try:
            self.auth.sign_out()
        except AuthError as e:
            self._fail(e)
        self.store.remove(TOKEN_KEY)
        self.state.clear_user()
