"""
Request schemas shared by the business registration and profile routes.

Field names follow the camelCase payloads sent by the web client.
"""

import re
from typing import Dict, Optional

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from mpbusinesshub.models.business import CATEGORIES, DAYS_OF_WEEK, DISTRICTS

PHONE_PATTERN = r"^\+?[0-9\s-]{10,15}$"
HOURS_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)\s*-\s*([01]\d|2[0-3]):([0-5]\d)$")


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def parse_hours(value: str) -> Optional[tuple]:
    """
    Parse ``"HH:MM - HH:MM"`` into (open, close). ``"Closed"`` gives None.

    Raises:
        ValueError: On any other format
    """
    text = (value or "").strip()
    if not text or text.lower() == "closed":
        return None
    match = HOURS_PATTERN.match(text)
    if not match:
        raise ValueError(f"Invalid hours {value!r}. Use HH:MM - HH:MM or Closed.")
    open_time = f"{match.group(1)}:{match.group(2)}"
    close_time = f"{match.group(3)}:{match.group(4)}"
    return open_time, close_time


class BusinessFields(BaseModel):
    """Listing fields common to registration and profile updates."""

    business_name: str = Field(..., alias="businessName", min_length=1, max_length=255)
    category: str
    district: str
    description: str = Field(..., min_length=50, max_length=500)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    email: EmailStr
    website: Optional[HttpUrl] = None
    address: str = Field(..., min_length=1, max_length=255)

    class Config:
        populate_by_name = True

    @field_validator("category")
    @classmethod
    def valid_category(cls, value: str) -> str:
        if value not in CATEGORIES:
            raise ValueError("The selected category is invalid.")
        return value

    @field_validator("district")
    @classmethod
    def valid_district(cls, value: str) -> str:
        if value not in DISTRICTS:
            raise ValueError("The selected district is invalid.")
        return value

    @field_validator("website", mode="before")
    @classmethod
    def empty_website(cls, value):
        return blank_to_none(value)

    def website_str(self) -> Optional[str]:
        return str(self.website) if self.website else None


class RegisterBusinessRequest(BusinessFields):
    password: str = Field(..., min_length=8)


class UpdateBusinessRequest(BusinessFields):
    operating_hours: Optional[Dict[str, str]] = Field(None, alias="operatingHours")

    @field_validator("operating_hours")
    @classmethod
    def valid_hours(cls, value):
        if value is None:
            return value
        cleaned = {}
        for day, hours in value.items():
            key = day.strip().lower()
            if key not in DAYS_OF_WEEK:
                continue
            parse_hours(hours)
            cleaned[key] = hours
        return cleaned
