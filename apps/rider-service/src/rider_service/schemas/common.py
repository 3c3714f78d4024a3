from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from geo_engine.models import GeoPoint
from shared.security import sanitize_user_text


def _numeric_id_to_str(value: object) -> object:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _require_text(value: str) -> str:
    cleaned = sanitize_user_text(value)
    if not cleaned:
        raise ValueError("must not be empty")
    return cleaned


UserId = Annotated[str, BeforeValidator(_numeric_id_to_str), AfterValidator(_require_text)]
RequiredText = Annotated[str, AfterValidator(_require_text)]
OptionalText = Annotated[str, AfterValidator(sanitize_user_text)]
Latitude = Annotated[float, Field(strict=True, ge=-90, le=90, allow_inf_nan=False)]
Longitude = Annotated[float, Field(strict=True, ge=-180, le=180, allow_inf_nan=False)]
RadiusMeters = Annotated[float, Field(gt=0, le=100_000)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Coordinates(CamelModel):
    lat: Latitude
    lng: Longitude

    def to_point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)

    @classmethod
    def from_point(cls, point: GeoPoint) -> Coordinates:
        return cls(lat=point.lat, lng=point.lng)
