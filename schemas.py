"""
Database Schemas for Nawartu

Each Pydantic model represents a MongoDB collection.
Collection name is the snake_case of the class name.
References between collections are stored as ObjectId strings.
"""
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


class VerificationCode(BaseModel):
    code: str
    expires_at: datetime
    attempts: int = 0


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="bcrypt hash")
    phone: Optional[str] = None
    avatar_url: Optional[str] = Field(None, description="Profile image URL")
    role: str = Field("guest", description="guest | host | admin")
    favorites: List[str] = []
    reset_password: Optional[VerificationCode] = None
    phone_verification: Optional[VerificationCode] = None


class Location(BaseModel):
    address: str
    neighborhood: Optional[str] = None
    city: Optional[str] = None


class Capacity(BaseModel):
    guests: int = Field(..., ge=1)
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)


class Rating(BaseModel):
    average: float = 0
    count: int = 0


class Review(BaseModel):
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: datetime


class Property(BaseModel):
    host_id: str
    title: str
    description: str
    price: float = Field(..., ge=0, description="Price per night")
    property_type: str = Field("apartment", description="apartment | house | villa | room ...")
    category: Optional[str] = None
    location: Location
    capacity: Capacity
    amenities: List[str] = []
    images: List[str] = []
    is_available: bool = True
    rating: Rating = Rating()
    reviews: List[Review] = []


class Booking(BaseModel):
    guest_id: str
    property_id: str
    check_in: datetime
    check_out: datetime
    guests: int = Field(..., ge=1)
    base_price: float = Field(..., ge=0)
    discount: float = Field(0, ge=0)
    total_price: float = Field(..., ge=0)
    special_offer_id: Optional[str] = None
    payment_method: str = "cash"
    special_requests: Optional[str] = None
    status: str = Field("pending", description="pending | confirmed | cancelled | completed")


class Banner(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    image: str
    cta_link: Optional[str] = None
    is_active: bool = True

    @field_validator("title", "cta_link")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    icon: str


# ------- Special offers -------

class PercentageDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["percentage"] = "percentage"
    percentage: float = Field(..., ge=0, le=100)
    maximum_discount: Optional[float] = Field(None, ge=0, description="Cap on the computed discount")


class FixedDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fixed"] = "fixed"
    amount: float = Field(..., ge=0)


Discount = Annotated[Union[PercentageDiscount, FixedDiscount], Field(discriminator="type")]


class SpecialOffer(BaseModel):
    """
    A discount rule with a validity window.

    An empty ``properties`` list makes the offer global. Naive datetimes
    are read as UTC.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    terms: Optional[str] = None
    discount: Discount
    start_date: datetime
    end_date: datetime
    minimum_stay: int = Field(1, ge=0, description="Nights")
    is_active: bool = True
    priority: int = 0
    properties: List[str] = []

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_window(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self
