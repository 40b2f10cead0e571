"""
Car Pydantic schemas.

Defines request and response models for car listings.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.car_enums import CarCategory, Transmission, FuelType, RateType


def normalize_registration_number(value: str) -> str:
    """'mh 12 ab 1234' -> 'MH12AB1234'"""
    return "".join(value.split()).upper()


class CarCreate(BaseModel):
    """Schema for listing a new car."""
    registration_number: str = Field(..., min_length=4, max_length=20, description="Registration number (normalized)")
    car_name: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    area: Optional[str] = Field(None, max_length=100)
    category: CarCategory
    transmission: Transmission
    fuel_type: FuelType
    rate_type: RateType
    rate_amount: Decimal = Field(..., gt=0)
    deposit_amount: Optional[Decimal] = Field(None, ge=0)
    purposes: Optional[List[str]] = None
    instructions: Optional[str] = Field(None, max_length=2000)
    image_urls: Optional[List[str]] = None

    @field_validator("registration_number")
    @classmethod
    def normalize_number(cls, v: str) -> str:
        return normalize_registration_number(v)


class CarUpdate(BaseModel):
    """Schema for updating a car. Omitted fields are left unchanged."""
    car_name: Optional[str] = Field(None, min_length=1, max_length=100)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    area: Optional[str] = Field(None, max_length=100)
    category: Optional[CarCategory] = None
    transmission: Optional[Transmission] = None
    fuel_type: Optional[FuelType] = None
    rate_type: Optional[RateType] = None
    rate_amount: Optional[Decimal] = Field(None, gt=0)
    deposit_amount: Optional[Decimal] = Field(None, ge=0)
    purposes: Optional[List[str]] = None
    instructions: Optional[str] = Field(None, max_length=2000)
    image_urls: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator(
        "car_name", "city", "category", "transmission", "fuel_type", "rate_type", "rate_amount", "is_active"
    )
    @classmethod
    def reject_null(cls, v):
        # Required columns can be left out of an update but not cleared
        if v is None:
            raise ValueError("cannot be null")
        return v


class CarFilters(BaseModel):
    """Driver-side browse filters."""
    search: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
    category: Optional[CarCategory] = None
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    rate_type: Optional[RateType] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None  # Operators only


class CarResponse(BaseModel):
    """Schema for car response."""
    id: int
    operator_id: int
    registration_number: str
    car_name: str
    city: str
    area: Optional[str]
    category: CarCategory
    transmission: Transmission
    fuel_type: FuelType
    rate_type: RateType
    rate_amount: Decimal
    deposit_amount: Optional[Decimal]
    purposes: Optional[List[str]]
    instructions: Optional[str]
    image_urls: Optional[List[str]]
    is_active: bool
    last_active_at: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CarListResponse(BaseModel):
    """Schema for paginated car list."""
    cars: List[CarResponse]
    total: int
    page: int
    page_size: int
