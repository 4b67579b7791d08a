"""Base model and enum for API responses.

Every response model inherits from :class:`ApiModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that stashes the original
  payload in ``raw``.

Status enums inherit from :class:`ApiEnum` which adds an ``UNKNOWN``
member and a ``_missing_`` hook that returns it for any value the
server sends without a mapped member.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from propsync.exceptions import ApiError

M = TypeVar("M", bound=BaseModel)


class ApiEnum(StrEnum):
    """Base for server-side enums.

    Every subclass **must** define ``UNKNOWN = "UNKNOWN"``.
    """

    @classmethod
    def _missing_(cls, value: object) -> ApiEnum:
        if hasattr(cls, "UNKNOWN"):
            unknown: ApiEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class ApiModel(BaseModel):
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
    def _stash_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if "raw" in values:
            return values
        merged = dict(values)
        merged["raw"] = dict(values)
        return merged


def parse_one(model: type[M], payload: Any, *, endpoint: str = "") -> M:
    """Validate a single-object response, failing at the boundary."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ApiError(
            f"Unexpected response shape from {endpoint or model.__name__}: {exc.error_count()} error(s)",
            endpoint=endpoint,
            code="invalid_shape",
        ) from exc


def parse_list(model: type[M], payload: Any, *, endpoint: str = "") -> list[M]:
    """Validate a collection response, failing at the boundary."""
    try:
        return TypeAdapter(list[model]).validate_python(payload)  # type: ignore[valid-type]
    except ValidationError as exc:
        raise ApiError(
            f"Unexpected response shape from {endpoint or model.__name__}: {exc.error_count()} error(s)",
            endpoint=endpoint,
            code="invalid_shape",
        ) from exc
