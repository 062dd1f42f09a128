# app/core/exceptions.py
"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; the handlers registered in app.main turn them into
JSON responses of the form {"error": "<ClassName>", "message": "<text>"}.
"""
from typing import Optional, Type, TypeVar, Any

from fastapi import status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class SchoolAPIError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(SchoolAPIError):
    """Malformed or missing input. Names the first failing field."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class Unauthenticated(SchoolAPIError):
    """No identity claim, or the claim does not match a User record."""
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(SchoolAPIError):
    """The identity lacks the required role or ownership."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(SchoolAPIError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(SchoolAPIError):
    """Duplicate unique key, e.g. an email that is already registered."""
    status_code = status.HTTP_409_CONFLICT


class InternalError(SchoolAPIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def first_error_message(exc: PydanticValidationError) -> ValidationError:
    """Convert a pydantic error into a ValidationError for its first failing field."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "body"
    message = str(first.get("msg", "Invalid value")).removeprefix("Value error, ")
    return ValidationError(f"{field}: {message}", field=field)


def validate_payload(model_cls: Type[ModelT], payload: Any) -> ModelT:
    """Validate a raw request payload against a model, failing fast on the first field."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object", field="body")
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as exc:
        raise first_error_message(exc) from exc
