"""
    This file contains API request/response schemas using Pydantic models for data validation and serialization.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

from api.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from dagster_pipeline.models.database import (
    FinderDomainStatus,
    Gender,
    PhysicianStatus,
    UserRole,
)

T = TypeVar("T")


# ========================
# Action results
# ========================
class ActionError(str, Enum):
    invalid_input = "invalid_input"
    not_found = "not_found"
    conflict = "conflict"
    unavailable = "unavailable"


class ActionState(BaseModel, Generic[T]):
    """Outcome of an action: either data or a user-facing failure message."""

    is_success: bool
    message: str
    data: Optional[T] = None
    error: Optional[ActionError] = None

    @classmethod
    def ok(cls, message: str, data: Optional[T] = None) -> "ActionState[T]":
        return cls(is_success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: ActionError, message: str) -> "ActionState[T]":
        return cls(is_success=False, message=message, error=error)


# ========================
# Physician sub-objects (NPPES shaped)
# ========================
class SpecialtyInfo(BaseModel):
    taxonomy_code: str
    taxonomy_description: str
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    primary_specialty: bool = False
    board_certified: Optional[bool] = None


class PracticeAddress(BaseModel):
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str  # two-letter code
    zip_code: str  # ZIP or ZIP+4
    country_code: str = "US"
    address_type: Literal["LOCATION", "MAILING"] = "LOCATION"
    address_purpose: Literal["PRACTICE", "HOME", "ADMINISTRATIVE"] = "PRACTICE"
    is_primary: bool = False


class PhoneNumber(BaseModel):
    number: str
    type: Literal["PRACTICE", "FAX", "DIRECT", "MOBILE"] = "PRACTICE"
    is_primary: bool = False
    location_id: Optional[str] = None


# ========================
# Physician
# ========================
class PhysicianResponse(BaseModel):
    npi: str
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    credential: Optional[str] = None
    gender: Optional[Gender] = None
    status: PhysicianStatus

    enumeration_date: Optional[date] = None
    last_updated_nppes: Optional[date] = None
    deactivation_date: Optional[date] = None
    deactivation_reason: Optional[str] = None
    reactivation_date: Optional[date] = None

    primary_specialty: Optional[SpecialtyInfo] = None
    secondary_specialties: List[SpecialtyInfo] = []
    addresses: List[PracticeAddress] = []
    phone_numbers: List[PhoneNumber] = []

    address_state: Optional[str] = None
    address_zip5: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    languages: List[str] = []
    accepts_telehealth: bool = False

    ai_bio: Optional[str] = None
    ai_bio_source: Optional[str] = None
    ai_bio_enriched_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SearchFilters(BaseModel):
    state: Optional[str] = None
    zip: Optional[str] = None


class PhysicianSearchParams(BaseModel):
    query: Optional[str] = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = Field(1, ge=1)
    limit: int = Field(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT)
    sort_by: Optional[Literal["name", "specialty"]] = None
    sort_order: Literal["asc", "desc"] = "asc"


class PhysicianSearchResults(BaseModel):
    physicians: List[PhysicianResponse]
    total_count: int
    current_page: int
    total_pages: int


# ========================
# Users
# ========================
class UserCreate(BaseModel):
    user_id: str
    platform_role: UserRole = UserRole.member


class UserUpdate(BaseModel):
    platform_role: Optional[UserRole] = None


class UserResponse(BaseModel):
    user_id: str
    platform_role: UserRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ========================
# Organizations + memberships
# ========================
class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class OrganizationResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MembershipCreate(BaseModel):
    user_id: str
    role: UserRole = UserRole.member


class MembershipResponse(BaseModel):
    user_id: str
    organization_id: uuid.UUID
    role: UserRole
    created_at: datetime

    model_config = {"from_attributes": True}


# ========================
# Finder instances
# ========================
class ThemeSettings(BaseModel):
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    font_family: Optional[str] = None
    logo_url: Optional[str] = None


class DefaultLocation(BaseModel):
    lat: float
    lng: float
    address: Optional[str] = None


class FinderSearchFilters(BaseModel):
    specialties: Optional[List[str]] = None  # taxonomy codes
    languages: Optional[List[str]] = None  # ISO 639-1
    accepting_new_patients: Optional[bool] = None
    telehealth: Optional[bool] = None
    gender: Optional[Gender] = None
    board_certified: Optional[bool] = None


class SearchSettings(BaseModel):
    default_radius: Optional[float] = None  # miles
    max_radius: Optional[float] = None
    default_location: Optional[DefaultLocation] = None
    filters: FinderSearchFilters = Field(default_factory=FinderSearchFilters)


class DisplayFields(BaseModel):
    show_npi: Optional[bool] = None
    show_specialties: Optional[bool] = None
    show_languages: Optional[bool] = None
    show_accepting_patients: Optional[bool] = None
    show_telehealth: Optional[bool] = None
    show_address: Optional[bool] = None
    show_phone: Optional[bool] = None


class DisplaySettings(BaseModel):
    show_map: Optional[bool] = None
    show_filters: Optional[bool] = None
    results_per_page: Optional[int] = Field(None, ge=1, le=MAX_PAGE_LIMIT)
    sort_options: Optional[List[Literal["distance", "name", "specialty"]]] = None
    fields: Optional[DisplayFields] = None


class FinderConfiguration(BaseModel):
    theme: ThemeSettings = Field(default_factory=ThemeSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    display: DisplaySettings = Field(default_factory=DisplaySettings)


class FinderInstanceCreate(BaseModel):
    organization_id: uuid.UUID
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    canonical_host: Optional[str] = None
    custom_domain: Optional[str] = None
    configuration: FinderConfiguration = Field(default_factory=FinderConfiguration)


class FinderInstanceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    canonical_host: Optional[str] = None
    custom_domain: Optional[str] = None
    domain_status: Optional[FinderDomainStatus] = None
    configuration: Optional[FinderConfiguration] = None


class FinderInstanceResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    slug: str
    canonical_host: Optional[str] = None
    custom_domain: Optional[str] = None
    domain_status: Optional[FinderDomainStatus] = None
    embed_script_id: Optional[str] = None
    configuration: FinderConfiguration
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
