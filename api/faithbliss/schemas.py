from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class Denomination(str, Enum):
    BAPTIST = "BAPTIST"
    METHODIST = "METHODIST"
    PRESBYTERIAN = "PRESBYTERIAN"
    PENTECOSTAL = "PENTECOSTAL"
    CATHOLIC = "CATHOLIC"
    ORTHODOX = "ORTHODOX"
    ANGLICAN = "ANGLICAN"
    LUTHERAN = "LUTHERAN"
    ASSEMBLIES_OF_GOD = "ASSEMBLIES_OF_GOD"
    SEVENTH_DAY_ADVENTIST = "SEVENTH_DAY_ADVENTIST"
    OTHER = "OTHER"


class FaithJourney(str, Enum):
    GROWING = "GROWING"
    ROOTED = "ROOTED"
    EXPLORING = "EXPLORING"
    PASSIONATE = "PASSIONATE"


class ChurchAttendance(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    OCCASIONALLY = "OCCASIONALLY"
    RARELY = "RARELY"


class RelationshipGoal(str, Enum):
    FRIENDSHIP = "FRIENDSHIP"
    RELATIONSHIP = "RELATIONSHIP"
    MARRIAGE_MINDED = "MARRIAGE_MINDED"


class RegisterRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=80)
    gender: Gender
    age: int = Field(ge=18, le=100)
    denomination: Denomination
    location: str = ""
    bio: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=80)
    age: int | None = Field(default=None, ge=18, le=100)
    bio: str | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    denomination: Denomination | None = None
    faith_journey: FaithJourney | None = None
    sunday_activity: ChurchAttendance | None = None
    favorite_verse: str | None = None
    field_of_study: str | None = None
    profession: str | None = None
    hobbies: list[str] | None = None
    values: list[str] | None = None
    interests: list[str] | None = None
    looking_for: list[RelationshipGoal] | None = None


class PreferencesUpdateRequest(BaseModel):
    preferred_gender: Gender | None = None
    preferred_denomination: list[Denomination] | None = None
    min_age: int | None = Field(default=None, ge=18, le=100)
    max_age: int | None = Field(default=None, ge=18, le=100)
    max_distance: int | None = Field(default=None, ge=1)
    preferred_faith_journey: list[FaithJourney] | None = None
    preferred_church_attendance: list[ChurchAttendance] | None = None
    preferred_relationship_goals: list[RelationshipGoal] | None = None


class OnboardingRequest(ProfileUpdateRequest):
    location: str = Field(min_length=1)
    denomination: Denomination
    phone_number: str | None = None
    country_code: str | None = None
    birthday: str | None = None
    photos: list[str] = Field(default_factory=list, max_length=3)
    preferences: PreferencesUpdateRequest = Field(default_factory=PreferencesUpdateRequest)


class CandidateFilterRequest(BaseModel):
    gender: Gender | None = None
    denominations: list[Denomination] | None = None
    min_age: int | None = Field(default=None, ge=18, le=100)
    max_age: int | None = Field(default=None, ge=18, le=100)
    faith_journeys: list[FaithJourney] | None = None
    church_attendance: list[ChurchAttendance] | None = None
    relationship_goals: list[RelationshipGoal] | None = None


class SendMessageRequest(BaseModel):
    match_id: str
    content: str


class LikeResult(BaseModel):
    is_match: bool
    match: dict[str, Any] | None = None
