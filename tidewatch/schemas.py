"""
tidewatch.schemas — Pydantic Input Models
==========================================

Structural validation for everything callers hand to the core: report drafts
and partial updates, media references from the media collaborator, and the
per-role profile variants stored on users.

:func:`validate_payload` turns a pydantic ``ValidationError`` into
:class:`~tidewatch.errors.InvalidContent` so services only ever raise domain
errors.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from tidewatch.constants import Role
from tidewatch.database.models import MediaKind, ReportCategory, Severity
from tidewatch.errors import InvalidContent

M = TypeVar("M", bound=BaseModel)


class AreaUnit(enum.StrEnum):
    SQ_METERS = "sq_meters"
    SQ_KILOMETERS = "sq_kilometers"
    ACRES = "acres"
    HECTARES = "hectares"


# ---------------------------------------------------------------------------
# Report content
# ---------------------------------------------------------------------------
class Address(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str | None = None


class GeoPoint(BaseModel):
    """``coordinates`` is ``[longitude, latitude]``."""

    coordinates: list[float]
    address: Address | None = None

    @field_validator("coordinates")
    @classmethod
    def _check_pair(cls, value: list[float]) -> list[float]:
        if len(value) != 2:
            raise ValueError("Location must include valid coordinates [longitude, latitude]")
        lon, lat = value
        if not -180.0 <= lon <= 180.0:
            raise ValueError("Longitude must be between -180 and 180")
        if not -90.0 <= lat <= 90.0:
            raise ValueError("Latitude must be between -90 and 90")
        return value


class EstimatedArea(BaseModel):
    value: float = Field(gt=0)
    unit: AreaUnit


class MediaRef(BaseModel):
    """An already-stored evidence file, as supplied by the media collaborator."""

    url: str = Field(min_length=1, max_length=500)
    caption: str | None = Field(default=None, max_length=500)
    kind: MediaKind = MediaKind.PHOTO
    duration: float | None = Field(default=None, ge=0)


def _clean_tags(value: list[str] | None) -> list[str]:
    if value is None:
        return []
    return [t.strip() for t in value if t and t.strip()]


class ReportDraft(BaseModel):
    """Everything needed to submit a new report."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=20, max_length=2000)
    category: ReportCategory
    sub_category: str | None = Field(default=None, max_length=100)
    severity: Severity = Severity.MEDIUM
    location: GeoPoint
    tags: list[str] = Field(default_factory=list)
    estimated_area: EstimatedArea | None = None
    media: list[MediaRef] = Field(default_factory=list, max_length=10)
    incident_date: datetime | None = None
    mangrove_area: str | None = Field(default=None, max_length=200)
    nearest_landmark: str | None = Field(default=None, max_length=200)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: list[str] | None) -> list[str]:
        return _clean_tags(value)

    # Content views consumed by the validation score
    @property
    def photos(self) -> list[MediaRef]:
        return [m for m in self.media if m.kind == MediaKind.PHOTO]

    @property
    def coordinates(self) -> list[float]:
        return self.location.coordinates


class ReportUpdate(BaseModel):
    """Partial content update; only fields explicitly set are applied."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=5, max_length=200)
    description: str | None = Field(default=None, min_length=20, max_length=2000)
    category: ReportCategory | None = None
    sub_category: str | None = Field(default=None, max_length=100)
    severity: Severity | None = None
    location: GeoPoint | None = None
    tags: list[str] | None = None
    estimated_area: EstimatedArea | None = None
    media: list[MediaRef] | None = Field(default=None, max_length=10)
    mangrove_area: str | None = Field(default=None, max_length=200)
    nearest_landmark: str | None = Field(default=None, max_length=200)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else _clean_tags(value)


class CommentDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    body: str = Field(min_length=1, max_length=500)


class ReviewDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    notes: str | None = Field(default=None, min_length=10, max_length=1000)


# ---------------------------------------------------------------------------
# Role-specific profile info: one variant per role family
# ---------------------------------------------------------------------------
class CitizenInfo(BaseModel):
    kind: Literal["citizen"] = "citizen"
    local_area: str | None = None
    years_of_experience: int | None = Field(default=None, ge=0)
    fishing_license_no: str | None = None


class NgoInfo(BaseModel):
    kind: Literal["ngo"] = "ngo"
    organization_name: str = Field(min_length=1)
    expertise: list[str] = Field(default_factory=list)


class GovernmentInfo(BaseModel):
    kind: Literal["government"] = "government"
    government_id: str = Field(min_length=1)
    department: str = Field(min_length=1)


RoleInfo = Annotated[CitizenInfo | NgoInfo | GovernmentInfo, Field(discriminator="kind")]
_ROLE_INFO_ADAPTER: TypeAdapter[CitizenInfo | NgoInfo | GovernmentInfo] = TypeAdapter(RoleInfo)


def role_info_kind(role: Role) -> str:
    """The role-info variant a user with *role* must carry."""
    if role == Role.NGO_ADMIN:
        return "ngo"
    if role == Role.GOVERNMENT_OFFICER:
        return "government"
    return "citizen"


def parse_role_info(role: Role, raw: dict[str, Any] | None) -> CitizenInfo | NgoInfo | GovernmentInfo:
    """Validate *raw* as the variant that matches *role*.

    A missing ``kind`` is filled in from the role; a ``kind`` that belongs to
    another role family is rejected.
    """
    expected = role_info_kind(role)
    data = dict(raw or {})
    data.setdefault("kind", expected)
    if data["kind"] != expected:
        raise InvalidContent(
            "Role info does not match role",
            [{"field": "role_info.kind", "message": f"expected '{expected}' for role {role.value}"}],
        )
    try:
        return _ROLE_INFO_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise InvalidContent("Invalid role info", _error_list(exc, prefix="role_info")) from exc


# ---------------------------------------------------------------------------
# ValidationError → InvalidContent
# ---------------------------------------------------------------------------
def _error_list(exc: ValidationError, prefix: str | None = None) -> list[dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        if prefix:
            loc = f"{prefix}.{loc}" if loc else prefix
        errors.append({"field": loc, "message": err["msg"]})
    return errors


def validate_payload(model: type[M], data: M | dict[str, Any]) -> M:
    """Return *data* as a validated *model* instance or raise ``InvalidContent``."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidContent("Validation failed", _error_list(exc)) from exc
