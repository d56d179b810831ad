"""Store and service catalog schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl

from queuego.models.store import StoreCategory

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class OfferingCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[str] = Field(default=None, max_length=50)


class OfferingResponse(BaseModel):
    id: int
    store_id: int
    name: str
    description: Optional[str]
    price: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StoreBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: StoreCategory
    description: Optional[str] = None
    address: str = Field(..., min_length=1, max_length=500)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    image_url: Optional[HttpUrl] = None
    open_time: str = Field(default="10:00", pattern=TIME_PATTERN)
    close_time: str = Field(default="20:00", pattern=TIME_PATTERN)
    deposit: int = Field(default=0, ge=0)
    default_service_time: int = Field(default=5, ge=1)


class StoreCreate(StoreBase):
    """Store registration request."""


class StoreUpdate(BaseModel):
    """Partial store update; only provided fields change."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[StoreCategory] = None
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    image_url: Optional[HttpUrl] = None
    open_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    close_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    deposit: Optional[int] = Field(default=None, ge=0)
    default_service_time: Optional[int] = Field(default=None, ge=1)
    is_open: Optional[bool] = None


class StoreStatusUpdate(BaseModel):
    is_open: bool


class StoreResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    category: str
    description: Optional[str]
    address: str
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    latitude: Optional[str]
    longitude: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    image_url: Optional[str]
    open_time: str
    close_time: str
    deposit: int
    default_service_time: int
    is_open: bool
    is_active: bool
    rating: str
    total_reviews: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StoreListItem(BaseModel):
    id: int
    name: str
    category: str
    description: Optional[str]
    address: str
    city: Optional[str]
    image_url: Optional[str]
    rating: str
    total_reviews: int
    is_open: bool
    deposit: int
    phone: Optional[str]
    queue_count: int
    distance_km: Optional[float] = None


class StoreDetailResponse(StoreResponse):
    offerings: List[OfferingResponse]
    queue_count: int
    current_ticket: Optional[int]
    estimated_wait_time: int
