"""
Error taxonomy for the comment lifecycle.

Handlers raise these; the FastAPI exception handlers in ``main`` turn
them into ``{"success": false, "message": ..., "type": ...}`` responses.
Messages are shown to the caller, so they never carry internal ids.
"""


class CommentError(Exception):
    """Base class for every failure reported by the comment core."""

    status_code: int = 400
    error_type: str = "bad_request"
    default_message: str = "We are not able to process this comment"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NotFoundError(CommentError):
    """A referenced article or comment does not exist."""

    status_code = 404
    error_type = "not_found"
    default_message = "Resource not found"


class UnauthorizedError(CommentError):
    """The request carries no identity."""

    status_code = 401
    error_type = "unauthorized"
    default_message = "Authentication required"


class NotAuthorError(UnauthorizedError):
    """The requester is not the recorded author of the comment."""

    status_code = 403
    error_type = "not_author"
    default_message = "Only the author can modify this comment"


class ValidationFailedError(CommentError):
    """The request is malformed, e.g. an unknown sort column."""

    status_code = 400
    error_type = "validation_failed"
    default_message = "Invalid request"


class PersistFailedError(CommentError):
    """The write went through but the stored record could not be reloaded."""

    status_code = 500
    error_type = "persist_failed"
    default_message = "We are not able to save this comment"


class StoreUnavailableError(CommentError):
    """The database could not be reached or dropped the connection."""

    status_code = 503
    error_type = "store_unavailable"
    default_message = "Comment store is unavailable"
