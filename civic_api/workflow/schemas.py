"""Request and response models for property applications."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

PropertyType = Literal["residential", "commercial", "industrial", "agricultural", "mixed"]
ConstructionType = Literal["RCC", "Pucca", "Kutcha", "Semi-Pucca"]
OccupancyStatus = Literal["owner_occupied", "rented", "vacant", "under_construction"]
ReviewAction = Literal["start_inspection", "approve", "reject", "return"]

# Cannot be cleared once set
REQUIRED_FIELDS = (
    "ward_id",
    "owner_name",
    "property_type",
    "address",
    "city",
    "state",
    "pincode",
    "area",
)


class ApplicationCreate(BaseModel):
    """Property application creation request."""

    ward_id: int
    applicant_id: Optional[int] = None
    owner_name: str = Field(min_length=1, max_length=100)
    owner_phone: Optional[str] = Field(default=None, max_length=20)
    property_type: PropertyType
    usage_type: Optional[str] = None
    address: str = Field(min_length=1)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    pincode: str = Field(min_length=1, max_length=10)
    area: float = Field(gt=0)
    built_up_area: Optional[float] = Field(default=None, ge=0)
    floors: Optional[int] = Field(default=1, ge=0)
    construction_type: Optional[ConstructionType] = None
    construction_year: Optional[int] = None
    occupancy_status: Optional[OccupancyStatus] = "owner_occupied"
    geolocation: Optional[Dict[str, Any]] = None
    photos: Optional[List[Any]] = None
    documents: Optional[List[Any]] = None
    remarks: Optional[str] = None


class ApplicationUpdate(BaseModel):
    """Partial update; only fields explicitly sent are applied."""

    ward_id: Optional[int] = None
    owner_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    owner_phone: Optional[str] = Field(default=None, max_length=20)
    property_type: Optional[PropertyType] = None
    usage_type: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=1)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, min_length=1, max_length=100)
    pincode: Optional[str] = Field(default=None, min_length=1, max_length=10)
    area: Optional[float] = Field(default=None, gt=0)
    built_up_area: Optional[float] = Field(default=None, ge=0)
    floors: Optional[int] = Field(default=None, ge=0)
    construction_type: Optional[ConstructionType] = None
    construction_year: Optional[int] = None
    occupancy_status: Optional[OccupancyStatus] = None
    geolocation: Optional[Dict[str, Any]] = None
    photos: Optional[List[Any]] = None
    documents: Optional[List[Any]] = None
    remarks: Optional[str] = None


class ReviewRequest(BaseModel):
    """Inspection-stage decision."""

    action: ReviewAction
    inspection_remarks: Optional[str] = None
    rejection_reason: Optional[str] = None


class ApplicationResponse(BaseModel):
    """Property application response."""

    id: int
    application_number: str
    status: str
    ward_id: int
    applicant_id: int
    created_by_kind: str
    created_by_id: Optional[int] = None
    owner_name: str
    owner_phone: Optional[str] = None
    property_type: str
    usage_type: Optional[str] = None
    address: str
    city: str
    state: str
    pincode: str
    area: float
    built_up_area: Optional[float] = None
    floors: Optional[int] = None
    construction_type: Optional[str] = None
    construction_year: Optional[int] = None
    occupancy_status: Optional[str] = None
    geolocation: Optional[Dict[str, Any]] = None
    photos: Optional[List[Any]] = None
    documents: Optional[List[Any]] = None
    remarks: Optional[str] = None
    inspection_remarks: Optional[str] = None
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    inspected_at: Optional[datetime] = None
    approved_property_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApplicationListResponse(BaseModel):
    """Paginated application listing."""

    items: List[ApplicationResponse]
    total: int
    page: int
    limit: int
    total_pages: int
