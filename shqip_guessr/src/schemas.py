"""Pydantic schemas for rounds and the saved game.

JSON uses camelCase keys (the browser client and the saved-game file share
them); Python code uses snake_case attributes.
"""

from typing import List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shqip_guessr.src.countries import CountryCode


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class LngLat(_CamelModel):
    lng: float
    lat: float


class Round(_CamelModel):
    """One playable round. Immutable once created."""

    round_id: str
    image_id: str
    image_url: str
    country: CountryCode
    location: LngLat
    captured_at: Optional[Union[int, str]] = None
    creator_username: Optional[str] = None
    external_view_url: str = Field(
        alias="externalViewUrl",
        validation_alias=AliasChoices("externalViewUrl", "mapillaryUrl", "external_view_url"),
    )
    compass_angle: Optional[float] = None

    @field_validator("image_url", "external_view_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return v

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SavedRound(_CamelModel):
    round_id: str
    image_id: str
    country: CountryCode
    true_location: LngLat
    guess_location: LngLat
    distance_km: float
    score: int


class SavedGame(_CamelModel):
    """Progress of the current session, persisted client-side after each guess."""

    version: Literal[1] = 1
    total_rounds: int = Field(gt=0)
    current_round_index: int = Field(ge=0)
    total_score: int = Field(ge=0)
    rounds: List[SavedRound] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
