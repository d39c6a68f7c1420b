from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from padel_alert.models.rule import ActivityCategory


def _naive_local(value: Optional[datetime]) -> Optional[datetime]:
    # rules are compared against naive local catalog timestamps
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class RuleRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    # omitted or null means every category
    category: Optional[Literal["match", "class", "lesson"]] = None
    club_ids: List[str] = Field(min_length=1)
    min_ranking: Optional[float] = None
    max_ranking: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    title_contains: Optional[str] = None
    active: bool = True

    @field_validator("start_date", "end_date")
    @classmethod
    def strip_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_local(value)

    @model_validator(mode="after")
    def check_ranges(self) -> "RuleRequest":
        if (
            self.min_ranking is not None
            and self.max_ranking is not None
            and self.min_ranking > self.max_ranking
        ):
            raise ValueError("min_ranking must not be greater than max_ranking")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class RuleResponse(BaseModel):
    id: str
    user_id: str
    name: str
    category: Optional[str]
    club_ids: List[str]
    min_ranking: Optional[float]
    max_ranking: Optional[float]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    title_contains: Optional[str]
    active: bool
    last_checked: Optional[datetime]
    last_notification: Optional[datetime]
    next_run: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserRequest(BaseModel):
    id: Optional[str] = None
    email: str = ""
    name: str = ""
    telegram_chat_id: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    telegram_chat_id: Optional[str]


class AddressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    street: str
    postal_code: str
    city: str
    country: str


class ClubResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: AddressResponse
    link: str


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    level: Optional[float]
    team: Optional[str]
    link: str


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: ActivityCategory
    type: str
    name: str
    club: ClubResponse
    start_date: datetime
    end_date: datetime
    duration: int
    provider_type: str
    min_players: int
    max_players: int
    available_places: int
    min_level: Optional[float]
    max_level: Optional[float]
    price: str
    gender: str
    players: List[PlayerResponse]
    link: str


class SearchResponse(BaseModel):
    count: int
    activities: List[ActivityResponse]
