"""
Error taxonomy shared by the request handlers and the core operations.

Each error is an HTTPException so FastAPI renders it directly; the handler
in ``app.main`` adds ``error_code`` to the JSON body.
"""

from typing import Any

from fastapi import HTTPException, status


class GiftLinkException(HTTPException):
    """Base exception class for GiftLink errors."""

    error_code = "ERROR"

    def __init__(
        self,
        status_code: int,
        detail: Any,
        error_code: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        if error_code:
            self.error_code = error_code


class Unauthenticated(GiftLinkException):
    """No verified actor on the request."""

    error_code = "UNAUTHENTICATED"

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFound(GiftLinkException):
    """Zero rows matched; also used when the actor does not own the row."""

    error_code = "NOT_FOUND"

    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ValidationFailed(GiftLinkException):
    error_code = "VALIDATION_FAILED"

    def __init__(self, errors: list[dict[str, Any]]):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=errors)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls([{"loc": ["body", field], "msg": message}])


class TransitionRejected(GiftLinkException):
    """A conditional reservation update matched no row."""

    error_code = "TRANSITION_REJECTED"

    def __init__(self, detail: str = "Could not complete the request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class LinkInvalid(GiftLinkException):
    error_code = "LINK_INVALID"

    def __init__(self, detail: str = "Share link is not valid"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class LinkInactive(GiftLinkException):
    error_code = "LINK_INACTIVE"

    def __init__(self, detail: str = "Share link has been deactivated"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=detail)


class LinkExpired(GiftLinkException):
    error_code = "LINK_EXPIRED"

    def __init__(self, detail: str = "Share link has expired"):
        super().__init__(status_code=status.HTTP_410_GONE, detail=detail)


class Conflict(GiftLinkException):
    error_code = "CONFLICT"

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class RateLimited(GiftLinkException):
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )
