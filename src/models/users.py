"""Pydantic models for user profiles and partner linking."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import EmailStr, Field

from src.models.base import HealthPathBase, TimestampMixin


class Gender(str, Enum):
    female = "female"
    male = "male"
    other = "other"


class ProfileBase(HealthPathBase):
    email: EmailStr
    display_name: str = Field(min_length=2, max_length=50)
    gender: Gender | None = None
    birth_date: date | None = None


class ProfileCreate(ProfileBase):
    pass


class ProfileUpdate(HealthPathBase):
    display_name: str | None = Field(default=None, min_length=2, max_length=50)
    gender: Gender | None = None
    birth_date: date | None = None


class ProfileRead(ProfileBase, TimestampMixin):
    id: str
    partner_id: str | None = None
    partner_code: str | None = None


class PartnerCodeRead(HealthPathBase):
    code: str


class PartnerJoin(HealthPathBase):
    code: str = Field(min_length=6, max_length=6)


class PartnerRead(HealthPathBase):
    partner_id: str | None = None
    display_name: str | None = None
