"""
Error taxonomy for the matching core.

Every error is an ``HTTPException`` so services can raise it directly and
FastAPI renders it with the right status code.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """A match request or a referenced user does not exist"""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UnauthorizedError(HTTPException):
    """The caller is not a participant allowed to perform the operation"""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(HTTPException):
    """Duplicate pending request, or the request is no longer pending"""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidInputError(HTTPException):
    """Self-targeted request, unknown action token or bad filter value"""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InternalError(HTTPException):
    """
    A store call failed.

    ``context`` names what was being written when it failed (couple identifier,
    which side or which store) so the pairing can be reconciled afterwards.
    """

    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

    def __str__(self) -> str:
        if self.context:
            return f"{self.detail} ({', '.join(f'{k}={v}' for k, v in self.context.items())})"
        return self.detail
