import functools
import logging
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from storage3.utils import StorageException

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    401: "Authentication failed. Please log in again.",
    403: "Access denied. You do not have permission to perform this action.",
    404: "Resource not found.",
    409: "Resource already exists.",
    429: "Too many requests. Please try again later.",
    500: "Server error. Please try again later.",
}


class GatewayError(Exception):
    """A failure reported by the database, storage bucket or identity service."""

    def __init__(self, code: Optional[int], message: str = ""):
        super().__init__(message)
        self.code = code
        self.message = message


class ServiceError(Exception):
    """What service operations raise: only the user-facing message survives."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProfileMissingError(ServiceError):
    # সেশন আছে কিন্তু প্রোফাইল ডকুমেন্ট নেই
    def __init__(self, message: str, session=None):
        super().__init__(message, status_code=409)
        self.session = session


class ValidationError(Exception):
    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(next(iter(self.errors.values()), "Invalid input"))

    @property
    def message(self) -> str:
        return str(self)


def to_gateway_error(error: Exception) -> GatewayError:
    if isinstance(error, GatewayError):
        return error
    if isinstance(error, IntegrityError):
        return GatewayError(409, str(error.orig))
    if isinstance(error, NoResultFound):
        return GatewayError(404, str(error))
    if isinstance(error, SQLAlchemyError):
        return GatewayError(500, str(error))
    if isinstance(error, StorageException):
        detail = error.args[0] if error.args else {}
        if isinstance(detail, dict):
            code = detail.get("statusCode")
            try:
                code = int(code) if code is not None else None
            except (TypeError, ValueError):
                code = None
            return GatewayError(code, detail.get("message") or detail.get("error") or "")
        return GatewayError(None, str(detail))
    return GatewayError(None, str(error))


def handle_gateway_error(error: Exception) -> str:
    gateway_error = to_gateway_error(error)
    if gateway_error.code in ERROR_MESSAGES:
        return ERROR_MESSAGES[gateway_error.code]
    return gateway_error.message or "An unexpected error occurred."


def status_for(error: Exception) -> int:
    code = to_gateway_error(error).code
    if code is not None and 400 <= code < 600:
        return code
    return 400


def gateway_operation(label: str):
    """Log failures of a gateway-backed operation and re-raise them as ServiceError.

    Service and validation errors raised inside the operation pass through
    untouched. Anything else is rolled back on ``self.db`` when present.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except (ServiceError, ValidationError):
                raise
            except Exception as exc:
                db = getattr(self, "db", None)
                if db is not None:
                    db.rollback()
                logger.error("%s error: %s", label, exc)
                raise ServiceError(handle_gateway_error(exc), status_for(exc)) from None

        return wrapper

    return decorator
