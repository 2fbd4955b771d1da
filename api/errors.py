"""HTTP errors raised by the API controllers."""

from fastapi import HTTPException, status


class NotFound(HTTPException):
    """Missing user, facility or other resource."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InvalidInput(HTTPException):
    """Missing required field or a request that contradicts current state."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class Unauthenticated(HTTPException):
    """Missing, malformed, tampered or expired credential."""

    def __init__(self, detail: str = "Not authorized, token failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Unauthorized(HTTPException):
    """Valid identity attempting a disallowed action."""

    def __init__(self, detail: str = "Not allowed to perform this action") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class Conflict(HTTPException):

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class StoreError(HTTPException):
    """The persistent store failed; details stay in the logs."""

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class PayloadTooLarge(HTTPException):

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail)
