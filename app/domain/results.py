"""Result objects shared by the booking-flow services"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorKind:
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}


class OperationResult(BaseModel):
    """Base result: services report failures here instead of raising"""

    success: bool
    message: str
    error: Optional[str] = Field(default=None, exclude=True)

    @property
    def status_code(self) -> int:
        if self.success:
            return 200
        return STATUS_CODES.get(self.error or ErrorKind.INTERNAL, 500)
