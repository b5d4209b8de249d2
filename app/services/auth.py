"""
Session/Profile Service: bridges identity sessions to the profile document
stored under the same id as the identity account.

Session states: anonymous, authenticated (session and profile) and
profile_missing (a valid session with no profile document). Registration
creates the account, then the session, then the profile; when the profile
write fails the session is kept and ``ProfileMissingError`` is raised so the
caller can offer ``repair_profile`` instead of treating it as a failed login.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.config import Settings
from app.errors import GatewayError, ProfileMissingError, gateway_operation, handle_gateway_error
from app.identity import IdentityProvider
from app.models.models import AuthSession, User, utcnow
from app.schemas import ProfileCreate, RegisterForm, UserProfile, decode

logger = logging.getLogger(__name__)


class SessionStatus(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    PROFILE_MISSING = "profile_missing"


@dataclass
class SessionInfo:
    token: str
    user_id: str
    expires_at: datetime

    @classmethod
    def from_row(cls, session: AuthSession) -> "SessionInfo":
        return cls(token=session.token, user_id=session.account_id, expires_at=session.expires_at)


@dataclass
class AuthResult:
    session: SessionInfo
    user: UserProfile


class AuthService:
    def __init__(self, db: Session, identity: IdentityProvider, settings: Settings):
        self.db = db
        self.identity = identity
        self.settings = settings

    def get_current_user(self, token: Optional[str]) -> Optional[UserProfile]:
        """Profile behind the session, or None. Never raises."""
        try:
            account = self.identity.get_account(token)
            profile = self.db.get(User, account.id)
            if profile is None:
                logger.info("Session %s has no profile document", account.id)
                return None
            return decode(UserProfile, profile)
        except Exception as exc:
            logger.info("No current user session: %s", exc)
            self.db.rollback()
            return None

    def session_status(self, token: Optional[str]) -> SessionStatus:
        if self.get_current_user(token) is not None:
            return SessionStatus.AUTHENTICATED
        try:
            self.identity.get_account(token)
        except Exception:
            self.db.rollback()
            return SessionStatus.ANONYMOUS
        return SessionStatus.PROFILE_MISSING

    @gateway_operation("Registration")
    def register(self, form: RegisterForm) -> AuthResult:
        account = self.identity.create_account(form.email, form.password, form.name)

        session = SessionInfo.from_row(self.identity.create_email_session(form.email, form.password))

        try:
            profile = User(
                id=account.id,
                name=form.name.strip(),
                email=account.email,
                semester=form.semester,
                college=form.college or "",
                role="student",
                verified=False,
                created_at=utcnow(),
            )
            self.db.add(profile)
            self.db.commit()
            self.db.refresh(profile)
            return AuthResult(session=session, user=decode(UserProfile, profile))
        except Exception as exc:
            self.db.rollback()
            logger.error("Registration error: profile write failed for %s: %s", account.id, exc)
            raise ProfileMissingError(handle_gateway_error(exc), session=session) from None

    @gateway_operation("Login")
    def login(self, email: str, password: str) -> AuthResult:
        session = SessionInfo.from_row(self.identity.create_email_session(email, password))
        user = self.get_current_user(session.token)
        if user is None:
            raise ProfileMissingError("Failed to get user data", session=session)
        return AuthResult(session=session, user=user)

    @gateway_operation("Logout")
    def logout(self, token: Optional[str]) -> None:
        self.identity.delete_session(token)

    @gateway_operation("Profile update")
    def update_profile(self, user_id: str, data: Dict[str, Any]) -> UserProfile:
        profile = self.db.get(User, user_id)
        if profile is None:
            raise GatewayError(404, "Document with the requested ID could not be found.")
        for key, value in data.items():
            setattr(profile, key, value)
        self.db.commit()
        self.db.refresh(profile)
        return decode(UserProfile, profile)

    @gateway_operation("Profile repair")
    def repair_profile(self, token: Optional[str], data: ProfileCreate) -> UserProfile:
        account = self.identity.get_account(token)
        if self.db.get(User, account.id) is not None:
            raise GatewayError(409, "Document with the requested ID already exists.")

        profile = User(
            id=account.id,
            name=data.name.strip(),
            email=account.email,
            semester=data.semester,
            college=data.college or "",
            role="student",
            verified=False,
            created_at=utcnow(),
        )
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return decode(UserProfile, profile)

    @gateway_operation("Password recovery")
    def forgot_password(self, email: str) -> None:
        self.identity.create_recovery(email, self.settings.recovery_url)

    @gateway_operation("Password reset")
    def reset_password(self, user_id: str, secret: str, password: str, password_again: Optional[str] = None) -> None:
        self.identity.update_recovery(user_id, secret, password, password if password_again is None else password_again)

    @gateway_operation("Email verification")
    def verify_email(self, user_id: str, secret: str) -> None:
        self.identity.update_verification(user_id, secret)

    @gateway_operation("Send verification")
    def send_verification(self, token: Optional[str]) -> None:
        self.identity.create_verification(token, self.settings.verification_url)
