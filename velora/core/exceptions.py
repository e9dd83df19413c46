"""
HTTP-aware error types raised by the services.

Each one carries the status code and client-safe message it maps to, so the
endpoints can let them propagate untouched.
"""

from fastapi import HTTPException, status


class DuplicateUserError(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")


class InvalidCredentialsError(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")


class ConversationNotFoundError(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")


class StorageUnavailableError(HTTPException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not available")


class UpstreamError(HTTPException):
    """The completion provider could not be reached or rejected the request."""

    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Chat request failed")
