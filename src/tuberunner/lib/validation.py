"""Schema validation on top of pydantic."""

from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class ValidationResult(BaseModel):
    """Outcome of validating data against a schema."""

    valid: bool
    errors: list[dict[str, Any]] = Field(default_factory=list)
    value: Any = None


@lru_cache(maxsize=256)
def _adapter(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(schema)


def validate(data: Any, schema: Any) -> ValidationResult:
    """
    Validate data against a schema.

    Args:
        data: Decoded data (configuration mapping, job payload, ...)
        schema: Any type pydantic can validate, usually a ``BaseModel`` subclass

    Returns:
        Result carrying every error when invalid, the parsed value otherwise
    """
    try:
        value = _adapter(schema).validate_python(data)
    except ValidationError as e:
        return ValidationResult(valid=False, errors=e.errors(include_url=False))
    return ValidationResult(valid=True, value=value)
