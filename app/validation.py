import re
from typing import Dict, NamedTuple, Optional

from app.constants import ALLOWED_FILE_TYPES, MAX_FILE_SIZE, UPLOAD_MIME_TYPES
from app.errors import ValidationError
from app.schemas import LoginForm, RegisterForm

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
COMPLEXITY_RE = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

FILE_TOO_LARGE = "File size must be less than 100MB"


class FileCheck(NamedTuple):
    is_valid: bool
    error: Optional[str] = None


def validate_file(size: int, content_type: Optional[str]) -> FileCheck:
    if size > MAX_FILE_SIZE:
        return FileCheck(False, FILE_TOO_LARGE)

    if content_type not in UPLOAD_MIME_TYPES:
        return FileCheck(
            False,
            "File type not supported. Please upload PDF, DOC, PPT, MP4, ZIP, or image files.",
        )

    return FileCheck(True)


def file_type_label(content_type: str) -> str:
    return ALLOWED_FILE_TYPES.get(content_type, "FILE")


def _check_email(email: str, errors: Dict[str, str]) -> None:
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_RE.search(email):
        errors["email"] = "Please enter a valid email"


def password_errors(password: str) -> Dict[str, str]:
    if not password:
        return {"password": "Password is required"}
    if len(password) < 8:
        return {"password": "Password must be at least 8 characters"}
    if not COMPLEXITY_RE.match(password):
        return {"password": "Password must contain uppercase, lowercase, and number"}
    return {}


def register_form_errors(form: RegisterForm) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not form.name.strip():
        errors["name"] = "Name is required"
    elif len(form.name.strip()) < 2:
        errors["name"] = "Name must be at least 2 characters"

    _check_email(form.email, errors)

    errors.update(password_errors(form.password))

    if not form.confirmPassword:
        errors["confirmPassword"] = "Please confirm your password"
    elif form.password != form.confirmPassword:
        errors["confirmPassword"] = "Passwords do not match"

    if not form.semester or form.semester < 1 or form.semester > 6:
        errors["semester"] = "Please select a valid semester"

    return errors


def login_form_errors(form: LoginForm) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    _check_email(form.email, errors)

    if not form.password:
        errors["password"] = "Password is required"
    elif len(form.password) < 6:
        errors["password"] = "Password must be at least 6 characters"

    return errors


def validate_register_form(form: RegisterForm) -> None:
    errors = register_form_errors(form)
    if errors:
        raise ValidationError(errors)


def validate_login_form(form: LoginForm) -> None:
    errors = login_form_errors(form)
    if errors:
        raise ValidationError(errors)


def password_strength(password: str) -> str:
    if not password:
        return ""
    if len(password) < 6:
        return "weak"
    if len(password) < 8 or not COMPLEXITY_RE.match(password):
        return "medium"
    return "strong"
