from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.errors import ProfileMissingError, ServiceError
from app.schemas import ProfileCreate, RegisterForm, UserProfile
from app.services.auth import AuthService, SessionStatus


@dataclass
class Notification:
    type: str  # success | error | warning | info
    message: str


class AppState:
    """Current user, session token and pending notifications for one client.

    ``init`` restores a session from a token and never raises; ``teardown``
    drops everything. The other operations mirror their outcome into
    ``notifications`` and re-raise failures.
    """

    def __init__(self, auth: AuthService):
        self.auth = auth
        self.user: Optional[UserProfile] = None
        self.token: Optional[str] = None
        self.status = SessionStatus.ANONYMOUS
        self.notifications: List[Notification] = []

    def notify(self, type_: str, message: str) -> None:
        self.notifications.append(Notification(type_, message))

    def init(self, token: Optional[str]) -> "AppState":
        self.token = token
        self.user = self.auth.get_current_user(token) if token else None
        if self.user is not None:
            self.status = SessionStatus.AUTHENTICATED
        elif token:
            self.status = self.auth.session_status(token)
        else:
            self.status = SessionStatus.ANONYMOUS
        return self

    def teardown(self) -> None:
        self.user = None
        self.token = None
        self.status = SessionStatus.ANONYMOUS

    def _profile_missing(self, exc: ProfileMissingError) -> None:
        self.token = exc.session.token if exc.session else self.token
        self.user = None
        self.status = SessionStatus.PROFILE_MISSING
        self.notify("warning", "Your account has no profile yet. Please complete your profile.")

    def login(self, email: str, password: str) -> UserProfile:
        try:
            result = self.auth.login(email, password)
        except ProfileMissingError as exc:
            self._profile_missing(exc)
            raise
        except ServiceError as exc:
            self.notify("error", exc.message or "Failed to login")
            raise
        self.token = result.session.token
        self.user = result.user
        self.status = SessionStatus.AUTHENTICATED
        self.notify("success", "Welcome back!")
        return result.user

    def register(self, form: RegisterForm) -> UserProfile:
        try:
            result = self.auth.register(form)
        except ProfileMissingError as exc:
            self._profile_missing(exc)
            raise
        except ServiceError as exc:
            self.notify("error", exc.message or "Failed to create account")
            raise
        self.token = result.session.token
        self.user = result.user
        self.status = SessionStatus.AUTHENTICATED
        self.notify("success", "Account created successfully!")
        return result.user

    def logout(self) -> None:
        try:
            self.auth.logout(self.token)
        except ServiceError as exc:
            self.notify("error", exc.message or "Failed to logout")
            raise
        self.teardown()
        self.notify("success", "Logged out successfully")

    def update_profile(self, data: Dict[str, Any]) -> UserProfile:
        if self.user is None:
            self.notify("error", "No user logged in")
            raise ServiceError("No user logged in", status_code=401)
        try:
            self.user = self.auth.update_profile(self.user.id, data)
        except ServiceError as exc:
            self.notify("error", exc.message or "Failed to update profile")
            raise
        self.notify("success", "Profile updated successfully")
        return self.user

    def repair_profile(self, data: ProfileCreate) -> UserProfile:
        try:
            self.user = self.auth.repair_profile(self.token, data)
        except ServiceError as exc:
            self.notify("error", exc.message or "Failed to create profile")
            raise
        self.status = SessionStatus.AUTHENTICATED
        self.notify("success", "Profile created successfully")
        return self.user

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.status.value,
            "user": self.user.model_dump(mode="json") if self.user else None,
            "notifications": [{"type": n.type, "message": n.message} for n in self.notifications],
        }
