"""Validated inputs for booking-service mutations.

Fields are declared in snake_case and sent upstream with camelCase aliases;
request bodies may use either spelling.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

VenueType = Literal["SITE", "UNIT", "VIRTUAL"]


class _BookingInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def to_variables(self) -> dict[str, Any]:
        """Return GraphQL variables: camelCase keys, unset fields omitted."""

        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class DayHours(_BookingInput):
    open: str | None = None
    close: str | None = None
    closed: bool = False

    @model_validator(mode="after")
    def _check_times(self) -> "DayHours":
        for label, value in (("open", self.open), ("close", self.close)):
            if value is not None and not _TIME_RE.match(value):
                raise ValueError(f"{label} time must use HH:MM")
        if self.closed:
            return self
        if not self.open or not self.close:
            raise ValueError("an open day needs both open and close times")
        # zero-padded HH:MM compares correctly as text
        if self.open >= self.close:
            raise ValueError("open time must be before close time")
        return self


class OpeningHours(_BookingInput):
    mon: DayHours | None = None
    tue: DayHours | None = None
    wed: DayHours | None = None
    thu: DayHours | None = None
    fri: DayHours | None = None
    sat: DayHours | None = None
    sun: DayHours | None = None


class VenueInput(_BookingInput):
    name: str = Field(min_length=1)
    type: VenueType
    address: str | None = None
    description: str | None = None
    timezone: str | None = None
    opening_hours: OpeningHours | None = None
    amenities: Dict[str, Any] | None = None
    profile_id: str | None = None
    parent_id: str | None = None
    network_ids: List[str] | None = None


class VenueUpdate(_BookingInput):
    name: str | None = Field(default=None, min_length=1)
    type: VenueType | None = None
    address: str | None = None
    description: str | None = None
    timezone: str | None = None
    opening_hours: OpeningHours | None = None
    amenities: Dict[str, Any] | None = None
    profile_id: str | None = None
    parent_id: str | None = None
    network_ids: List[str] | None = None


class SpaceInput(_BookingInput):
    venue_id: str
    name: str = Field(min_length=1)
    capacity: int | None = Field(default=None, ge=0)
    type: str | None = None
    amenities: Dict[str, Any] | None = None


class SpaceUpdate(_BookingInput):
    name: str | None = Field(default=None, min_length=1)
    capacity: int | None = Field(default=None, ge=0)
    type: str | None = None
    amenities: Dict[str, Any] | None = None


class SpacePresetInput(_BookingInput):
    name: str = Field(min_length=1)
    type: str
    capacity: int = Field(ge=0)
    amenities: Dict[str, Any] | None = None


class ServiceInput(_BookingInput):
    name: str = Field(min_length=1)
    description: str | None = None
    duration: float | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)


class ServiceUpdate(_BookingInput):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    duration: float | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)


__all__ = [
    "DayHours",
    "OpeningHours",
    "ServiceInput",
    "ServiceUpdate",
    "SpaceInput",
    "SpacePresetInput",
    "SpaceUpdate",
    "VenueInput",
    "VenueUpdate",
]
