"""Fixture file models and fixture path conventions.

Fixtures live under ``<tag>/<kebab-operation-id>/`` or
``_manual/<tag>/<kebab-operation-id>/`` and are named ``request.json``,
``response.<status>.json`` or ``response.<status>.<variant>.json``.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MANUAL_DIR = "_manual"

_RESPONSE_STATUS = re.compile(r"^response\.(\d+)")


class RequestMeta(BaseModel):
    description: str = ""


class ResponseMeta(BaseModel):
    """Only ``status`` is read back; hand-written fixtures may carry any header values."""

    description: str = ""
    status: int | None = None
    headers: dict[str, Any] = {}


class RequestFixture(BaseModel):
    """``{"_meta": {"description"}, "body": ...}``"""

    model_config = ConfigDict(populate_by_name=True)

    meta: RequestMeta = Field(default_factory=RequestMeta, alias="_meta")
    body: Any = None


class Fixture(BaseModel):
    """``{"_meta": {"description", "status", "headers"}, "body": ...}``"""

    model_config = ConfigDict(populate_by_name=True)

    meta: ResponseMeta = Field(default_factory=ResponseMeta, alias="_meta")
    body: Any = None


class FixtureLocation(BaseModel):
    """Where a fixture file sits, parsed from its path relative to the fixtures root."""

    tag: str
    operation_folder: str
    kind: Literal["request", "response"]
    status: int | None = None
    is_manual: bool = False


def parse_fixture_path(relative: Path) -> FixtureLocation | None:
    """Parse ``[_manual/]<tag>/<folder>/<file>``; None for anything else."""
    parts = relative.parts
    is_manual = bool(parts) and parts[0] == MANUAL_DIR
    offset = 1 if is_manual else 0
    if len(parts) < offset + 3:
        return None

    tag, folder, file_name = parts[offset], parts[offset + 1], parts[offset + 2]

    if file_name.startswith("request"):
        return FixtureLocation(tag=tag, operation_folder=folder, kind="request", is_manual=is_manual)

    if file_name.startswith("response."):
        match = _RESPONSE_STATUS.match(file_name)
        return FixtureLocation(
            tag=tag,
            operation_folder=folder,
            kind="response",
            status=int(match.group(1)) if match else None,
            is_manual=is_manual,
        )

    return None
