"""
Pydantic models for the resume extraction service.

Defines the ResumeData shape the LLM is asked to fill (used to build the
empty template), the enumerations that are part of the output contract,
and the request/response models of the HTTP API.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EmploymentType(str, Enum):
    """Employment type of a work experience."""

    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    INTERNSHIP = "INTERNSHIP"
    CONTRACT = "CONTRACT"


class LocationType(str, Enum):
    """Where the work is performed."""

    ONSITE = "ONSITE"
    REMOTE = "REMOTE"
    HYBRID = "HYBRID"


class DegreeType(str, Enum):
    """Study level of an education entry."""

    HIGH_SCHOOL = "HIGH_SCHOOL"
    ASSOCIATE = "ASSOCIATE"
    BACHELOR = "BACHELOR"
    MASTER = "MASTER"
    DOCTORATE = "DOCTORATE"


class LanguageLevel(str, Enum):
    """Spoken language proficiency."""

    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    NATIVE = "NATIVE"


class ExtractionStatus(str, Enum):
    """Outcome of an LLM extraction call."""

    SUCCESS = "success"
    # Nothing usable came back; the empty object was normalized instead
    DEGENERATE = "degenerate"


class PlanType(str, Enum):
    """Subscription tier controlling credit replenishment."""

    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"


# =============================================================================
# ResumeData Models
# =============================================================================


class ResumeModel(BaseModel):
    """Base for resume sections: camelCase keys on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WorkPreferences(ResumeModel):
    open_to_relocation: bool | None = None
    open_to_remote: bool | None = None
    preferred_location_types: list[LocationType] = Field(default_factory=list)
    preferred_employment_types: list[EmploymentType] = Field(default_factory=list)


class Profile(ResumeModel):
    """Personal details of the candidate."""

    name: str = ""
    surname: str = ""
    email: str = ""
    phone: str = ""
    headline: str = ""
    professional_summary: str = ""
    linkedin: str = ""
    website: str = ""
    country: str = ""
    city: str = ""
    work_preferences: WorkPreferences = Field(default_factory=WorkPreferences)


class DateRange(ResumeModel):
    """Month/year span with an explicit flag for ongoing entries."""

    start_month: int | None = Field(default=None, ge=1, le=12)
    start_year: int | None = None
    end_month: int | None = Field(default=None, ge=1, le=12)
    end_year: int | None = None
    current: bool = False


class WorkExperience(DateRange):
    job_title: str = ""
    company_name: str = ""
    employment_type: EmploymentType | None = None
    location: str = ""
    location_type: LocationType | None = None
    description: str = ""


class Education(DateRange):
    school: str = ""
    degree: DegreeType | None = None
    major: str = ""
    description: str = ""


class Skill(ResumeModel):
    name: str = ""


class License(ResumeModel):
    name: str = ""
    issuing_organization: str = ""
    issue_month: int | None = Field(default=None, ge=1, le=12)
    issue_year: int | None = None
    credential_id: str = ""


class Language(ResumeModel):
    language: str = ""
    level: LanguageLevel | None = None


class Achievement(ResumeModel):
    title: str = ""
    description: str = ""
    date: str = Field(default="", description="YYYY-MM")


class Publication(ResumeModel):
    title: str = ""
    publisher: str = ""
    publication_date: str = Field(default="", description="ISO8601")
    url: str = ""
    description: str = ""


class Honor(ResumeModel):
    title: str = ""
    issuer: str = ""
    description: str = ""
    date: str = Field(default="", description="YYYY-MM")


class ResumeData(ResumeModel):
    """
    Canonical resume document.

    Field declaration order is the canonical serialization order:
    profile first, then the eight collections.
    """

    profile: Profile | None = None
    work_experiences: list[WorkExperience] = Field(default_factory=list)
    educations: list[Education] = Field(default_factory=list)
    skills: list[Skill] = Field(default_factory=list)
    licenses: list[License] = Field(default_factory=list)
    languages: list[Language] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    publications: list[Publication] = Field(default_factory=list)
    honors: list[Honor] = Field(default_factory=list)


def create_empty_resume_template() -> dict[str, Any]:
    """
    Build the empty JSON template shown to the LLM.

    Each collection carries a single blank entry so the model sees the
    shape of its items.
    """
    template = ResumeData(
        profile=Profile(),
        work_experiences=[WorkExperience()],
        educations=[Education()],
        skills=[Skill()],
        licenses=[License()],
        languages=[Language()],
        achievements=[Achievement()],
        publications=[Publication()],
        honors=[Honor()],
    )
    return template.model_dump(mode="json", by_alias=True)


# =============================================================================
# API Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str = Field(default="")
    version: str = Field(default="1.0.0")


class FileSummary(BaseModel):
    """Metadata of an uploaded resume file."""

    id: str = Field(..., description="File ID (UUID)")
    file_name: str = Field(..., description="Original filename")
    file_size: int = Field(..., ge=0, description="Size in bytes")
    status: str = Field(..., description="Processing status")
    uploaded_at: str = Field(..., description="Upload timestamp (ISO format)")
    is_image_based: bool = Field(default=False, description="Whether the OCR path was used")
    has_resume_data: bool = Field(default=False, description="Whether extracted data exists")


class UploadResponse(BaseModel):
    """Response model for a successful upload and extraction."""

    success: bool = Field(default=True)
    file: FileSummary
    resume_data: dict[str, Any] = Field(..., description="Normalized ResumeData")
    warnings: list[str] = Field(default_factory=list)


class ExtractResponse(BaseModel):
    """Response model for the stateless extract endpoint."""

    resume_data: dict[str, Any] = Field(..., description="Normalized ResumeData")
    is_image_based: bool = Field(default=False)
    model: str = Field(..., description="LLM model used")
    warnings: list[str] = Field(default_factory=list)


class FileListResponse(BaseModel):
    files: list[FileSummary] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class FileDetailResponse(BaseModel):
    success: bool = Field(default=True)
    file: FileSummary
    resume_data: dict[str, Any] | None = Field(
        default=None,
        description="Normalized ResumeData, if extraction completed",
    )
    error_message: str | None = None


class CreditsResponse(BaseModel):
    credits: int = Field(..., description="Remaining credits")
    plan_type: PlanType
    credits_per_file: int = Field(..., ge=0)
    has_subscription: bool = Field(default=False)


class HistoryEntry(BaseModel):
    id: str
    file_id: str | None = None
    action: str
    status: str
    message: str | None = None
    credits_used: int = 0
    created_at: str


class HistoryResponse(BaseModel):
    entries: list[HistoryEntry] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class DeleteResponse(BaseModel):
    success: bool = Field(default=True)
    message: str


class CheckoutRequest(BaseModel):
    plan_type: PlanType = Field(..., description="BASIC or PRO")


class CheckoutResponse(BaseModel):
    session_id: str
    url: str | None = None


class PortalResponse(BaseModel):
    url: str


class StripeConfigResponse(BaseModel):
    public_key: str


class WebhookResponse(BaseModel):
    received: bool = True
