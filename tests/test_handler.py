"""Tests for the handler contract, verdict resolution and built-in handlers."""

from typing import Any

import pytest
from pydantic import BaseModel, Field

from tuberunner.errors import ConfigurationInvalid, InvalidVerdict
from tuberunner.handlers import register_handlers
from tuberunner.handlers.noop import NoopHandler
from tuberunner.lib.handler import WILDCARD, Action, Handler, resolve_verdict
from tuberunner.lib.logger import Logger
from tuberunner.lib.registry import HandlerRegistry


class ResizeConfig(BaseModel):
    bucket: str = Field(min_length=1)
    max_width: int = Field(default=1024, ge=1)


class ResizePayload(BaseModel):
    key: str


class ResizeHandler(Handler):
    def __init__(self, configuration: dict[str, Any], logger: Logger) -> None:
        super().__init__("resize", configuration, ResizeConfig, ResizePayload, logger)


@pytest.mark.parametrize(
    ("verdict", "action", "options"),
    [
        (Action.DELETE, Action.DELETE, {}),
        ("release", Action.RELEASE, {}),
        (["bury"], Action.BURY, {}),
        (["release", {"delay": 10}], Action.RELEASE, {"delay": 10}),
        (["release", {"delay": "30"}], Action.RELEASE, {"delay": 30}),
        (["release", {"delay": 5, "colour": "red"}], Action.RELEASE, {"delay": 5}),
        (("delete", {"ignored": True}), Action.DELETE, {"ignored": True}),
        (["release", "not-a-dict"], Action.RELEASE, {}),
        ([], Action.BURY, {}),
        ((), Action.BURY, {}),
        (None, Action.BURY, {}),
        ("", Action.BURY, {}),
        ("requeue", Action.BURY, {}),
        (["requeue", {"delay": 10}], Action.BURY, {}),
        (3.14, Action.BURY, {}),
    ],
)
def test_resolve_verdict(verdict: Any, action: Action, options: dict[str, Any]) -> None:
    assert resolve_verdict(verdict) == (action, options)


@pytest.mark.parametrize(
    "options",
    [{"delay": "soon"}, {"delay": None}, {"delay": -1}, {"priority": 2**32}],
)
def test_resolve_verdict_rejects_unusable_release_options(options: dict[str, Any]) -> None:
    with pytest.raises(InvalidVerdict) as exc_info:
        resolve_verdict(["release", options])

    assert exc_info.value.errors


def test_configuration_is_validated_at_construction(logger: Logger) -> None:
    handler = ResizeHandler({"bucket": "images"}, logger)

    assert handler.type == "resize"
    assert handler.validated_configuration == ResizeConfig(bucket="images", max_width=1024)
    assert handler.name == "ResizeHandler"


def test_invalid_configuration_reports_every_error(logger: Logger) -> None:
    with pytest.raises(ConfigurationInvalid) as exc_info:
        ResizeHandler({"bucket": "", "max_width": 0}, logger)

    locations = {error["loc"] for error in exc_info.value.errors}
    assert locations == {("bucket",), ("max_width",)}


def test_handler_without_schemas_accepts_anything(logger: Logger) -> None:
    handler = Handler("anything", {"free": "form"}, None, None, logger)

    assert handler.validated_configuration is None
    assert handler.validate_payload(object()).valid


def test_validate_payload(logger: Logger) -> None:
    handler = ResizeHandler({"bucket": "images"}, logger)

    assert handler.validate_payload({"key": "a.png"}).valid
    result = handler.validate_payload({"name": "a.png"})
    assert not result.valid
    assert result.errors[0]["loc"] == ("key",)


@pytest.mark.asyncio
async def test_base_handler_defaults(logger: Logger) -> None:
    """Test that the base handler initializes to nothing and buries."""
    handler = Handler("thing", {}, None, None, logger)

    await handler.initialize()

    assert await handler.process({"a": 1}, 1, "thing") is Action.BURY


@pytest.mark.asyncio
async def test_noop_handler_defaults(logger: Logger) -> None:
    handler = NoopHandler({}, logger)

    assert handler.type == WILDCARD
    assert await handler.process(None, 5, "book") is Action.DELETE


@pytest.mark.asyncio
async def test_noop_handler_options(logger: Logger) -> None:
    handler = NoopHandler({"type": "book", "action": "release"}, logger)

    assert handler.type == "book"
    assert await handler.process(None, 5, "book") is Action.RELEASE


def test_noop_handler_rejects_unknown_options(logger: Logger) -> None:
    with pytest.raises(ConfigurationInvalid):
        NoopHandler({"action": "explode"}, logger)
    with pytest.raises(ConfigurationInvalid):
        NoopHandler({"colour": "blue"}, logger)


def test_register_handlers() -> None:
    registry = HandlerRegistry()

    register_handlers(registry)

    assert registry.list_paths() == ["noop"]
    assert registry.resolve("noop") is NoopHandler
