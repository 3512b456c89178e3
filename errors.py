# errors.py ────────────────────────────────────────────────
import functools
import logging
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


class ErpError(Exception):
    """Base class for every failure a service reports as a tagged result."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ErpError):
    code = "not_found"


class ValidationError(ErpError):
    code = "validation_error"


class Conflict(ErpError):
    code = "conflict"


class InvalidCredential(ErpError):
    code = "invalid_credential"


class Inactive(ErpError):
    code = "inactive"


# code → HTTP status for the API envelopes
HTTP_STATUS = {
    NotFound.code: 404,
    ValidationError.code: 400,
    Conflict.code: 409,
    InvalidCredential.code: 401,
    Inactive.code: 403,
}


def failure(exc: ErpError) -> Dict[str, Any]:
    return {"success": False, "error": exc.message, "code": exc.code}


def as_result(func: Callable) -> Callable:
    """
    Decorator for public service methods.
    ErpError raised inside is returned as {success: False, error, code};
    anything else propagates.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ErpError as exc:
            logger.info("%s failed: %s", func.__qualname__, exc.message)
            return failure(exc)

    return wrapper
