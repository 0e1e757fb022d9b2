"""Response envelope shared by every endpoint."""

from typing import Any, Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class APIError(BaseModel):
    code: str
    message: str


class APIResponse(BaseModel, Generic[T]):
    success: bool
    data: T | None = None
    error: APIError | None = None

    @classmethod
    def ok(cls, data: Any) -> "APIResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str) -> dict:
        """JSON-ready error body for exception handlers."""
        return cls(success=False, error=APIError(code=code, message=message)).model_dump(mode="json")
