# backend/services/auth.py
"""Sign-in, sign-up and the session state shared with whoever needs it."""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from schemas.mapping import to_app
from services.records import create_record, update_record
from utils.data_client import DataClient
from utils.hashing import get_password_hash, verify_password
from utils.local_storage import CURRENT_USER_KEY
from utils.tokenJWT import create_access_token, decode_access_token

logger = logging.getLogger(__name__)

# Session change events
INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
USER_UPDATED = "USER_UPDATED"

# Columns a user may change on their own profile
PROFILE_FIELDS = ("first_name", "last_name", "email", "phone", "address", "city", "region", "postcode")


class AuthError(Exception):
    pass


@dataclass
class AuthSession:
    access_token: str
    user: Dict[str, Any]  # storage row of the signed-in user

    @property
    def role(self) -> str:
        return self.user.get("role") or "user"


class SessionContext:
    """Current session plus a channel that announces every change to it."""

    def __init__(self):
        self.session: Optional[AuthSession] = None
        # False until the first lookup has finished
        self.resolved = False
        self._subscribers: List[Callable[[str, Optional[AuthSession]], None]] = []

    def set_session(self, session: Optional[AuthSession], event: str) -> None:
        self.session = session
        self.resolved = True
        for callback in list(self._subscribers):
            callback(event, session)

    def subscribe(self, callback: Callable[[str, Optional[AuthSession]], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def is_authenticated(self) -> bool:
        return self.session is not None

    def current_role(self) -> Optional[str]:
        return self.session.role if self.session else None

    def current_user(self) -> Optional[Dict[str, Any]]:
        return self.session.user if self.session else None


class AuthService:
    def __init__(self, client: DataClient, context: SessionContext, storage=None):
        self.client = client
        self.context = context
        self.storage = storage

    def _issue(self, user: Dict[str, Any]) -> AuthSession:
        token = create_access_token(data={"sub": user["auth_id"], "role": user["role"]})
        return AuthSession(access_token=token, user=user)

    def _cache_profile(self, user: Optional[Dict[str, Any]]) -> None:
        if self.storage is None:
            return
        if user is None:
            self.storage.remove_item(CURRENT_USER_KEY)
        else:
            self.storage.set_json(CURRENT_USER_KEY, to_app("users", user))

    def sign_up(self, email: str, password: str, profile: Dict[str, Any]) -> AuthSession:
        normalized_email = email.strip().lower()
        if self.client.find_one("users", email=normalized_email):
            raise AuthError("Email already registered")

        fields = {k: v for k, v in profile.items() if k in PROFILE_FIELDS and k != "email"}
        user = create_record(self.client, "users", {
            **fields,
            "email": normalized_email,
            "password_hash": get_password_hash(password),
            # Admin promotion happens out of band
            "role": "user",
        })
        logger.info("Registered user %s", user["id"])
        session = self._issue(user)
        self._cache_profile(user)
        self.context.set_session(session, SIGNED_IN)
        return session

    def sign_in(self, email: str, password: str) -> AuthSession:
        user = self.client.find_one("users", email=email.strip().lower())
        if not user or not verify_password(password, user["password_hash"]):
            raise AuthError("Invalid credentials")

        session = self._issue(user)
        self._cache_profile(user)
        self.context.set_session(session, SIGNED_IN)
        return session

    def sign_out(self) -> None:
        self._cache_profile(None)
        self.context.set_session(None, SIGNED_OUT)

    def restore(self, token: Optional[str]) -> Optional[AuthSession]:
        """Resolve a stored token into a session (or none) and announce it."""
        session = None
        payload = decode_access_token(token) if token else None
        if payload:
            user = self.client.find_one("users", auth_id=payload["sub"])
            if user:
                session = AuthSession(access_token=token, user=user)
        self._cache_profile(session.user if session else None)
        self.context.set_session(session, INITIAL_SESSION)
        return session

    def get_current_session(self) -> Optional[AuthSession]:
        return self.context.session

    def update_profile(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        session = self.context.session
        if session is None:
            raise AuthError("Not signed in")

        changes = {k: v for k, v in fields.items() if k in PROFILE_FIELDS and v is not None}
        if "email" in changes:
            changes["email"] = changes["email"].strip().lower()
            other = self.client.find_one("users", email=changes["email"])
            if other and other["id"] != session.user["id"]:
                raise AuthError("Email already registered")

        user = update_record(self.client, "users", session.user["id"], changes) if changes else session.user
        self._cache_profile(user)
        self.context.set_session(AuthSession(access_token=session.access_token, user=user), USER_UPDATED)
        return user
