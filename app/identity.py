"""
Identity provider: accounts, email/password sessions and the one-time
secrets behind password recovery and email verification links.

Failures are reported as ``GatewayError`` with the status code a hosted
identity service would answer with (401 bad credentials or session,
404 unknown account, 409 duplicate email).
"""
import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Callable, Optional
from urllib.parse import urlencode

import bcrypt
from sqlalchemy.orm import Session

from app.errors import GatewayError
from app.models.models import Account, AuthSecret, AuthSession, utcnow

logger = logging.getLogger(__name__)

Mailer = Callable[[str, str, str], bool]

SECRET_TTL = {
    "recovery": timedelta(hours=1),
    "verification": timedelta(days=7),
}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _digest(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class IdentityProvider:
    def __init__(self, db: Session, mailer: Mailer, app_name: str = "Student Library", session_ttl_days: int = 365):
        self.db = db
        self.mailer = mailer
        self.app_name = app_name
        self.session_ttl = timedelta(days=session_ttl_days)

    # --- অ্যাকাউন্ট (Accounts) ---

    def create_account(self, email: str, password: str, name: str) -> Account:
        email = email.strip().lower()
        if self.db.query(Account).filter(Account.email == email).first():
            raise GatewayError(409, "A user with the same email already exists.")

        account = Account(email=email, name=name, password_hash=hash_password(password))
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        return account

    def get_account(self, token: Optional[str]) -> Account:
        session = self._active_session(token)
        return session.account

    # --- সেশন (Sessions) ---

    def create_email_session(self, email: str, password: str) -> AuthSession:
        account = self.db.query(Account).filter(Account.email == email.strip().lower()).first()
        if not account or not check_password(password, account.password_hash):
            raise GatewayError(401, "Invalid credentials. Please check the email and password.")

        session = AuthSession(
            token=secrets.token_urlsafe(32),
            account_id=account.id,
            expires_at=utcnow() + self.session_ttl,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def delete_session(self, token: Optional[str]) -> None:
        session = self._active_session(token)
        self.db.delete(session)
        self.db.commit()

    def _active_session(self, token: Optional[str]) -> AuthSession:
        if not token:
            raise GatewayError(401, "User (role: guests) missing scope (account)")
        session = self.db.query(AuthSession).filter(AuthSession.token == token).first()
        if not session:
            raise GatewayError(401, "User (role: guests) missing scope (account)")
        if session.expires_at < utcnow():
            self.db.delete(session)
            self.db.commit()
            raise GatewayError(401, "Session expired")
        return session

    # --- পাসওয়ার্ড রিকভারি (Recovery) ---

    def create_recovery(self, email: str, url: str) -> None:
        account = self.db.query(Account).filter(Account.email == email.strip().lower()).first()
        if not account:
            raise GatewayError(404, "User with the requested ID could not be found.")

        link = self._issue_secret(account, "recovery", url)
        self.mailer(
            account.email,
            f"Password Recovery - {self.app_name}",
            f"Hello {account.name},\n\nUse this link to reset your password:\n{link}\n\n"
            "The link expires in one hour.",
        )

    def update_recovery(self, user_id: str, secret: str, password: str, password_again: str) -> None:
        if password != password_again:
            raise GatewayError(400, "Passwords do not match.")
        entry = self._consume_secret(user_id, "recovery", secret)
        account = self.db.get(Account, entry.account_id)
        account.password_hash = hash_password(password)
        self.db.commit()

    # --- ইমেইল ভেরিফিকেশন (Verification) ---

    def create_verification(self, token: Optional[str], url: str) -> None:
        account = self.get_account(token)
        link = self._issue_secret(account, "verification", url)
        self.mailer(
            account.email,
            f"Verify your email - {self.app_name}",
            f"Hello {account.name},\n\nConfirm your email address by opening:\n{link}",
        )

    def update_verification(self, user_id: str, secret: str) -> None:
        entry = self._consume_secret(user_id, "verification", secret)
        account = self.db.get(Account, entry.account_id)
        account.email_verified = True
        self.db.commit()

    # --- এককালীন সিক্রেট (Secrets) ---

    def _issue_secret(self, account: Account, purpose: str, url: str) -> str:
        secret = secrets.token_urlsafe(32)
        self.db.add(
            AuthSecret(
                account_id=account.id,
                purpose=purpose,
                secret_hash=_digest(secret),
                expires_at=utcnow() + SECRET_TTL[purpose],
            )
        )
        self.db.commit()
        return f"{url}?{urlencode({'userId': account.id, 'secret': secret})}"

    def _consume_secret(self, user_id: str, purpose: str, secret: str) -> AuthSecret:
        entry = (
            self.db.query(AuthSecret)
            .filter(
                AuthSecret.account_id == user_id,
                AuthSecret.purpose == purpose,
                AuthSecret.secret_hash == _digest(secret),
                AuthSecret.used.is_(False),
            )
            .first()
        )
        if not entry or entry.expires_at < utcnow():
            raise GatewayError(401, "Invalid token passed in the request.")
        entry.used = True
        return entry
