"""
errors.py — Domain error taxonomy shared by stores, services and the API.

Every error carries the HTTP status it maps to; the FastAPI exception handler
in main.py renders `{"detail": message}` with that status. Services raise
these directly and never build HTTP responses themselves.
"""


class CampusPayError(Exception):
    """Base exception for CampusPay failures."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CampusPayError):
    """Missing or malformed required fields."""

    status_code = 400
    default_message = "invalid request"


class Unauthorized(CampusPayError):
    """Missing, invalid or expired bearer token."""

    status_code = 401
    default_message = "Invalid or expired token"


class Forbidden(CampusPayError):
    """Requester lacks ownership or officer capability.

    The message stays generic so the response body discloses nothing about
    the resource.
    """

    status_code = 403
    default_message = "forbidden"

    def __init__(self) -> None:
        super().__init__(self.default_message)


class NotFound(CampusPayError):
    """Referenced payment, event, organization or profile does not exist."""

    status_code = 404
    default_message = "not found"


class InvalidTransition(CampusPayError):
    """Payment status change not allowed from the current status."""

    status_code = 409
    default_message = "status change not allowed"


class DuplicateSubmission(CampusPayError):
    """An open payment with the same submitter, event and amount already exists."""

    status_code = 409
    default_message = "a matching payment was already submitted"


class UpstreamUnavailable(CampusPayError):
    """Cloud document store or object store call failed."""

    status_code = 502
    default_message = "upstream storage unavailable"


class StorageMisconfigured(CampusPayError):
    """A cloud object was requested but no object storage backend is configured."""

    status_code = 500
    default_message = "storage not configured"


class PayloadTooLarge(CampusPayError):
    """Uploaded file exceeds MAX_UPLOAD_BYTES."""

    status_code = 413
    default_message = "file too large"
