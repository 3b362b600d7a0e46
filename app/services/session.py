# app/services/session.py
import logging
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.core.errors import AuthError, TransientError
from app.core.live import VideoFeed, video_feed
from app.core.security import create_access_token, decode_access_token, new_session_id
from app.models.user import Account, UserProfile
from app.services.identity import FederatedAssertion, IdentityProvider

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


def ensure_profile(db: Session, account: Account) -> UserProfile:
    """
    Get-then-create of the profile keyed by uid. A concurrent sign-in that
    inserted the same uid first wins; we re-read its row.
    """
    profile = db.get(UserProfile, account.id)
    if profile:
        return profile

    profile = UserProfile(uid=account.id, email=account.email, display_name=account.display_name)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Profile for {account.id} was created concurrently, reusing it.")
        profile = db.get(UserProfile, account.id)
        if profile is None:
            raise TransientError("Failed to create profile")
        return profile
    except SQLAlchemyError as e:
        logger.error(f"Database error creating profile for {account.id}: {e}", exc_info=True)
        db.rollback()
        raise TransientError("Failed to create profile")
    db.refresh(profile)
    logger.info(f"Created profile for {account.id} with a new share token.")
    return profile


class SessionContext:
    """
    Состояние сессии одного клиента. Создается на каждый запрос/сокет
    из cookie и явно очищается при выходе.
    """

    def __init__(self, db: Session, feed: VideoFeed = video_feed):
        self.db = db
        self.feed = feed
        self.identity = IdentityProvider(db)
        self.state = SessionState.UNAUTHENTICATED
        self.profile: Optional[UserProfile] = None
        self.session_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    @property
    def uid(self) -> Optional[uuid.UUID]:
        return self.profile.uid if self.profile else None

    def require_profile(self) -> UserProfile:
        if not self.is_authenticated:
            raise AuthError("Not authenticated")
        return self.profile

    # --- Operations ---

    def sign_up(self, email: str, password: str, display_name: str) -> UserProfile:
        with self._authenticating():
            account = self.identity.create_account(email, password, display_name)
            profile = ensure_profile(self.db, account)
        logger.info(f"Signed up {profile.email} (uid {profile.uid})")
        return self._authenticated(profile)

    def login(self, email: str, password: str) -> UserProfile:
        with self._authenticating():
            account = self.identity.authenticate(email, password)
            profile = ensure_profile(self.db, account)
        logger.info(f"Logged in {profile.email} (uid {profile.uid})")
        return self._authenticated(profile)

    def login_with_federated_identity(self, assertion: FederatedAssertion) -> UserProfile:
        with self._authenticating():
            account = self.identity.resolve_federated(assertion)
            profile = ensure_profile(self.db, account)
        logger.info(f"Logged in {profile.email} via {assertion.provider} (uid {profile.uid})")
        return self._authenticated(profile)

    def restore(self, token: Optional[str]) -> Optional[UserProfile]:
        """Restores the session from a token. Invalid tokens leave it unauthenticated."""
        if not token:
            return None
        with self._authenticating():
            payload = decode_access_token(token)
            profile = None
            if payload is not None:
                try:
                    profile = self.db.get(UserProfile, uuid.UUID(payload.get("sub", "")))
                except (ValueError, TypeError):
                    logger.warning(f"Invalid uid format in session token: {payload.get('sub')}")
        if profile is None:
            self._clear()
            return None
        return self._authenticated(profile, session_id=payload.get("sid"))

    def logout(self) -> None:
        if self.session_id:
            closed = self.feed.close_session(self.session_id)
            logger.info(f"Logout of uid {self.uid}: closed {closed} live channels.")
        self._clear()

    def update_display_name(self, display_name: str) -> UserProfile:
        profile = self.require_profile()
        account = self.identity.get_account(profile.uid)
        if account is not None:
            self.identity.update_display_name(account, display_name)
        profile.display_name = display_name
        self.db.add(profile)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error updating profile {profile.uid}: {e}", exc_info=True)
            self.db.rollback()
            raise TransientError("Failed to update profile")
        self.db.refresh(profile)
        return profile

    def issue_token(self) -> str:
        profile = self.require_profile()
        return create_access_token(data={"sub": str(profile.uid), "sid": self.session_id})

    # --- State transitions ---

    @contextmanager
    def _authenticating(self):
        self.state = SessionState.AUTHENTICATING
        try:
            yield
        except Exception:
            self._clear()
            raise

    def _authenticated(self, profile: UserProfile, session_id: Optional[str] = None) -> UserProfile:
        new_sid = session_id or new_session_id()
        if self.session_id and self.session_id != new_sid:
            self.feed.close_session(self.session_id)
        self.profile = profile
        self.session_id = new_sid
        self.state = SessionState.AUTHENTICATED
        return profile

    def _clear(self) -> None:
        self.profile = None
        self.session_id = None
        self.state = SessionState.UNAUTHENTICATED
