"""Pydantic models describing raw feed records extracted from the XML documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from aafsync.domain.feed.records import RawRecord

Operation = Literal["addRequest", "modifyRequest"]


def _strip(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class FeedBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class FeedRecordPayload(FeedBaseModel):
    """One request element: identifier, object class and multi-valued attributes."""

    external_id: str = Field(default="", alias="id")
    operation: Operation = "addRequest"
    object_type: str | None = Field(default=None, alias="operationalAttributes")
    attributes: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    _normalize_id = field_validator("external_id", mode="before")(_strip)
    _normalize_object_type = field_validator("object_type", mode="before")(_blank_to_none)

    @model_validator(mode="before")
    @classmethod
    def _collapse_scalar_values(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        data: dict[str, object] = dict(cast(Mapping[str, object], value))
        raw_attributes = data.get("attributes")
        if isinstance(raw_attributes, Mapping):
            attributes: dict[str, tuple[str, ...]] = {}
            for name, values in cast(Mapping[str, object], raw_attributes).items():
                if isinstance(values, str):
                    attributes[name] = (values,)
                else:
                    attributes[name] = tuple(str(item) for item in cast(list[object], values))
            data["attributes"] = attributes
        return data

    def to_record(self) -> RawRecord:
        return RawRecord(
            external_id=self.external_id,
            attributes=dict(self.attributes),
            operation=self.operation,
            object_type=self.object_type,
        )
