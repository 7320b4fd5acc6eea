"""
Pydantic models for the resume extraction pipeline.

Defines the fixed resume schema returned to clients (camelCase on the wire)
plus the request/response models used by the API routers.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class EmploymentType(str, Enum):
    """Employment arrangement of a work experience."""

    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    INTERNSHIP = "INTERNSHIP"
    CONTRACT = "CONTRACT"


class LocationType(str, Enum):
    """Where the work was performed."""

    ONSITE = "ONSITE"
    REMOTE = "REMOTE"
    HYBRID = "HYBRID"


class DegreeType(str, Enum):
    """Highest degree level of an education entry."""

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


def _coerce_enum(value: Any, enum_cls: type[Enum]) -> Any:
    """Map free-form model output onto an enum member, or None if unknown."""
    if value is None or isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    if key == "ON_SITE":
        key = "ONSITE"
    return key if key in enum_cls.__members__ else None


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            return int(value)
    return None


class ResumeModel(BaseModel):
    """
    Base for all resume entities.

    Model output is ingested leniently: null strings become "", null booleans
    become False, null lists become [] and null list items are dropped.
    Bare numbers in string fields (a year, a license number) are kept as text.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _fill_nulls(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, field in cls.model_fields.items():
            for key in {field.alias or name, name}:
                if key not in data:
                    continue
                value = data[key]
                if isinstance(value, list):
                    data[key] = [item for item in value if item is not None]
                elif value is not None:
                    continue
                elif field.default_factory is list:
                    data[key] = []
                elif field.default is False:
                    data[key] = False
                elif field.default == "":
                    data[key] = ""
        return data


class DateRange(ResumeModel):
    """Start/end fields shared by date-bearing entries."""

    start_month: int | None = None
    start_year: int | None = None
    end_month: int | None = None
    end_year: int | None = None
    current: bool = False

    @field_validator("start_month", "end_month", mode="before")
    @classmethod
    def _valid_month(cls, v: Any) -> int | None:
        month = _coerce_int(v)
        return month if month is not None and 1 <= month <= 12 else None

    @field_validator("start_year", "end_year", mode="before")
    @classmethod
    def _valid_year(cls, v: Any) -> int | None:
        return _coerce_int(v)

    @model_validator(mode="after")
    def _current_has_no_end(self) -> "DateRange":
        if self.current:
            self.end_month = None
            self.end_year = None
        return self


class Profile(ResumeModel):
    """Personal and contact information."""

    name: str = ""
    surname: str = ""
    email: str = ""
    headline: str = ""
    professional_summary: str = ""
    linked_in: str | None = None
    website: str | None = None
    country: str = ""
    city: str = ""
    relocation: bool = False
    remote: bool = False


class WorkExperience(DateRange):
    job_title: str = ""
    company: str = ""
    employment_type: EmploymentType | None = None
    location_type: LocationType | None = None
    location: str = ""
    description: str = ""

    @field_validator("employment_type", mode="before")
    @classmethod
    def _employment_type(cls, v: Any) -> Any:
        return _coerce_enum(v, EmploymentType)

    @field_validator("location_type", mode="before")
    @classmethod
    def _location_type(cls, v: Any) -> Any:
        return _coerce_enum(v, LocationType)


class Education(DateRange):
    school: str = ""
    degree: DegreeType | None = None
    major: str = ""
    description: str = ""

    @field_validator("degree", mode="before")
    @classmethod
    def _degree(cls, v: Any) -> Any:
        return _coerce_enum(v, DegreeType)


class Skill(ResumeModel):
    name: str = ""


class License(ResumeModel):
    name: str = ""
    issuer: str = ""
    issue_date: str = ""
    expiry_date: str = ""
    license_number: str = ""


class Language(ResumeModel):
    language: str = ""
    level: LanguageLevel | None = None

    @field_validator("level", mode="before")
    @classmethod
    def _level(cls, v: Any) -> Any:
        return _coerce_enum(v, LanguageLevel)


class Achievement(ResumeModel):
    title: str = ""
    issuer: str = ""
    date: str = Field(default="", description="YYYY-MM")
    description: str = ""


class Publication(ResumeModel):
    title: str = ""
    publisher: str = ""
    publication_date: str = Field(default="", description="ISO8601")
    url: str = ""
    description: str = ""


class Honor(ResumeModel):
    title: str = ""
    issuer: str = ""
    date: str = Field(default="", description="YYYY-MM")
    description: str = ""


class ResumeData(ResumeModel):
    """
    Complete structured result of a resume extraction.

    All nine top-level keys are always present, even when empty:
    {
        "profile": {...},
        "workExperiences": [], "educations": [], "skills": [],
        "licenses": [], "languages": [], "achievements": [],
        "publications": [], "honors": []
    }
    """

    profile: Profile = Field(default_factory=Profile)
    work_experiences: list[WorkExperience] = Field(default_factory=list)
    educations: list[Education] = Field(default_factory=list)
    skills: list[Skill] = Field(default_factory=list)
    licenses: list[License] = Field(default_factory=list)
    languages: list[Language] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    publications: list[Publication] = Field(default_factory=list)
    honors: list[Honor] = Field(default_factory=list)

    @field_validator("profile", mode="before")
    @classmethod
    def _profile_object(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("skills", mode="before")
    @classmethod
    def _wrap_skill_names(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v

    @field_validator("languages", mode="before")
    @classmethod
    def _wrap_language_names(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [{"language": item} if isinstance(item, str) else item for item in v]
        return v

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, the shape clients and storage use."""
        return self.model_dump(mode="json", by_alias=True)


RESUME_TOP_LEVEL_KEYS: tuple[str, ...] = tuple(
    field.alias or name for name, field in ResumeData.model_fields.items()
)


def create_empty_resume_template() -> dict[str, Any]:
    """Return the empty resume template shown to the model as the required shape."""
    return ResumeData().to_wire()


# =============================================================================
# API Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str = Field(default="")
    version: str = Field(default="1.0.0")


class ErrorResponse(BaseModel):
    """
    Typed error envelope returned for every pipeline failure.

    `kind` is stable and meant for programmatic handling; `error` is a
    user-safe message.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    error: str = Field(..., description="User-safe error message")
    kind: str = Field(..., description="Stable error kind")
    message: str | None = Field(default=None, description="Additional guidance")
    credits_remaining: int | None = Field(default=None)
    credits_required: int | None = Field(default=None)


class AuditEntryResponse(BaseModel):
    """One audit trail entry."""

    action: str
    status: str
    message: str
    created_at: str


class JobSummaryResponse(BaseModel):
    """Job status without the extracted data."""

    id: str = Field(..., description="Job ID (UUID)")
    file_name: str
    file_size: int = Field(..., ge=0)
    status: str = Field(..., description="processing, completed or failed")
    error_message: str | None = None
    created_at: str
    completed_at: str | None = None


class JobDetailResponse(JobSummaryResponse):
    """Job status with audit trail and, once completed, the resume data."""

    mode: str | None = Field(default=None, description="Extraction mode used")
    model: str | None = Field(default=None, description="Inference model used")
    audit_trail: list[AuditEntryResponse] = Field(default_factory=list)
    result: dict[str, Any] | None = Field(
        default=None,
        description="Normalized resume data (camelCase keys)",
    )


class JobListResponse(BaseModel):
    """Paginated job history of a principal."""

    jobs: list[JobSummaryResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)
