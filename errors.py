"""
Error taxonomy shared by every route.

Each error is an HTTPException with a fixed status code so handlers can
`raise NotFound("Post not found")` the same way they would raise a plain
HTTPException. `main.py` renders all of them as `{success: false, message}`.
"""
from fastapi import HTTPException


class APIError(HTTPException):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(APIError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(APIError):
    status_code = 400
    default_message = "Resource already exists"


class Unauthenticated(APIError):
    status_code = 401
    default_message = "Access denied. No token provided."


class Forbidden(APIError):
    status_code = 403
    default_message = "Access denied"


class NotFound(APIError):
    status_code = 404
    default_message = "Not found"


class NotFoundOrUnauthorized(NotFound):
    """Missing and not-yours are the same answer, so ids cannot be probed."""

    default_message = "Not found or unauthorized"


class RateLimited(APIError):
    status_code = 429
    default_message = "Too many requests from this IP, please try again later."


class InternalError(APIError):
    status_code = 500


class UpstreamUnavailable(APIError):
    status_code = 502
    default_message = "Upstream service unavailable"
