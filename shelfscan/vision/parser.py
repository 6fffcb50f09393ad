"""
Vision response parsing.

Vision models do not reliably honor "JSON only": replies arrive wrapped in
markdown fences, with capitalized enum values, a "book" type, an "author"
key or a stringified year. The parser recovers what it can, then validates
against the strict item schema.
"""

import json
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from shelfscan.identification.types import IdentifiedItem, ItemKind


FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class VisionResponseError(Exception):
    """Vision output could not be parsed into a valid item list."""


class VisionItem(BaseModel):
    title: str = Field(..., min_length=1)
    creator: str
    type: Literal["movie", "tv", "dvd", "vinyl", "game", "other"]
    year: Optional[int] = None

    @field_validator("year", mode="before")
    @classmethod
    def reject_non_numeric(cls, value):
        if isinstance(value, bool):
            raise ValueError("year must be a number")
        return value


class VisionResponse(BaseModel):
    items: list[VisionItem]


def try_parse_json(content: str) -> Optional[Any]:
    """Parse raw JSON, falling back to the first fenced code block."""
    try:
        return json.loads(content)
    except (TypeError, ValueError):
        pass

    match = FENCE_PATTERN.search(content or "")
    if match:
        try:
            return json.loads(match.group(1).strip())
        except ValueError:
            pass

    return None


def _coerce_year(value: Any) -> Optional[int]:
    match = re.match(r"\s*[-+]?\d+", value)
    return int(match.group(0)) if match else None


def coerce_items(data: Any) -> Any:
    """Normalize common vision-model quirks in place."""
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        return data

    for item in data["items"]:
        if not isinstance(item, dict):
            continue
        if isinstance(item.get("type"), str):
            item["type"] = item["type"].lower()
            if item["type"] == "book":
                item["type"] = "other"
        if "author" in item and "creator" not in item:
            item["creator"] = item.pop("author")
        if isinstance(item.get("year"), str):
            year = _coerce_year(item["year"])
            if year is None:
                item.pop("year")
            else:
                item["year"] = year
    return data


def parse_vision_response(content: str) -> list[IdentifiedItem]:
    """
    Parse and validate one vision reply.

    Raises:
        VisionResponseError: Unparseable or schema-invalid content
    """
    if not content:
        raise VisionResponseError("Vision model returned empty response")

    parsed = try_parse_json(content)
    if parsed is None:
        raise VisionResponseError(f"Failed to parse JSON: {content[:200]}")

    try:
        validated = VisionResponse.model_validate(coerce_items(parsed))
    except ValidationError as e:
        raise VisionResponseError(f"Validation failed: {e}") from e

    return [
        IdentifiedItem(
            title=item.title,
            creator=item.creator,
            kind=ItemKind(item.type),
            year=item.year,
        )
        for item in validated.items
    ]
