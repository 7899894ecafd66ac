"""Base model and enum for Digitraffic rail API responses.

Every response model inherits from :class:`RataBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` and blank
  strings so the field default is used.
* A ``raw`` dict that captures the original payload, so fields the
  library does not interpret still pass through to consumers.

Enums inherit from :class:`RataEnum` which resolves any value without a
mapped member to ``UNKNOWN`` instead of raising ``ValueError``.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RataEnum(str, enum.Enum):
    """Base for string-valued API enums.

    Every subclass **must** define ``UNKNOWN``.
    """

    @classmethod
    def _missing_(cls, value: object) -> RataEnum:
        # pylint: disable=no-member
        unknown: RataEnum = cls.UNKNOWN  # type: ignore[attr-defined]
        return unknown


class RataBaseModel(BaseModel):
    """Base for API response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original API response dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop empty values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {
            key: value
            for key, value in values.items()
            if value is not None and not (isinstance(value, str) and not value.strip())
        }
        # Keep an explicitly provided raw (copies of existing models).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
