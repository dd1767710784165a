# rydz/errors.py
"""
Error kinds raised inside the core operations, and the single place where
they (and any data-store exception) are turned into a failed ActionResult.
"""
import logging
from typing import Optional

from sqlalchemy.exc import DBAPIError, OperationalError, ProgrammingError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from .schemas import ActionResult

log = logging.getLogger(__name__)


class ActionError(Exception):
    kind = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ActionError):
    kind = "ValidationError"


class Unauthorized(ActionError):
    kind = "Unauthorized"


class NotFound(ActionError):
    kind = "NotFound"


class StaleRequest(ActionError):
    kind = "StaleRequest"


class InvalidSelf(ActionError):
    kind = "InvalidSelf"


class TransientInfrastructureError(ActionError):
    kind = "TransientInfrastructureError"


INDEX_MESSAGE = (
    "A database index or table required for this query is missing. "
    "Check the server logs for the failing statement and run the schema setup."
)
PERMISSION_MESSAGE = (
    "A permissions error occurred while talking to the database. "
    "You might not have the correct role for this action."
)
TIMEOUT_MESSAGE = (
    "A server authentication or timeout error occurred. This is likely a "
    "temporary issue with the connection to the database. Please try again in a moment."
)

GENERIC_MESSAGE = "An unexpected error occurred. Please try again in a moment."


def classify_db_error(error: Exception) -> Optional[ActionError]:
    """Map a data-store exception onto an error kind, or None if it is not one."""
    text = str(getattr(error, "orig", None) or error).lower()

    if isinstance(error, PoolTimeoutError):
        return TransientInfrastructureError(TIMEOUT_MESSAGE)
    if not isinstance(error, DBAPIError):
        return None

    if "permission denied" in text or "insufficient privilege" in text:
        return TransientInfrastructureError(PERMISSION_MESSAGE)
    if isinstance(error, ProgrammingError) or "no such table" in text or "index" in text:
        return TransientInfrastructureError(INDEX_MESSAGE)
    if (
        isinstance(error, OperationalError)
        or error.connection_invalidated
        or "timeout" in text
        or "deadline" in text
    ):
        return TransientInfrastructureError(TIMEOUT_MESSAGE)
    return None


def handle_action_error(error: Exception, action_name: str) -> ActionResult:
    if isinstance(error, ActionError):
        log.info("[Action: %s] %s: %s", action_name, error.kind, error.message)
        return ActionResult(success=False, message=error.message, kind=error.kind)

    log.error("[Action: %s] Error: %r", action_name, error, exc_info=error)
    classified = classify_db_error(error)
    if classified is not None:
        return ActionResult(success=False, message=classified.message, kind=classified.kind)

    return ActionResult(success=False, message=GENERIC_MESSAGE)
