"""Base schemas for the application."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema class with common configuration."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class SuccessResponse(BaseSchema):
    """Acknowledgement for operations without a payload."""
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error body returned by the global exception handlers."""
    error: str
    error_code: str | None = None
    request_id: str | None = None
