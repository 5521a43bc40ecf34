"""Tests for schema validation."""

from pydantic import BaseModel, Field

from tuberunner.lib.validation import validate


class Book(BaseModel):
    isbn: str = Field(min_length=10, max_length=13)
    copies: int = 1


def test_valid_model_payload() -> None:
    result = validate({"isbn": "0007375069"}, Book)

    assert result.valid
    assert result.errors == []
    assert result.value == Book(isbn="0007375069", copies=1)


def test_invalid_model_payload_reports_every_error() -> None:
    result = validate({"isbn": "123", "copies": "many"}, Book)

    assert not result.valid
    assert {error["loc"] for error in result.errors} == {("isbn",), ("copies",)}
    assert all("url" not in error for error in result.errors)


def test_non_model_schemas() -> None:
    assert validate([1, 2, 3], list[int]).valid
    assert not validate({"a": "b"}, dict[str, int]).valid
    assert validate(None, Book | None).valid


def test_non_object_payload_against_model() -> None:
    result = validate("0007375069", Book)

    assert not result.valid
    assert result.errors[0]["type"] == "model_type"
