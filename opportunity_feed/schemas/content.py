from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

ContentKind = Literal["job", "opportunity", "event", "resource"]
ContentType = Literal["jobs", "opportunities", "events", "resources"]
SourceName = Literal["promoted", "recommended", "regular"]

CONTENT_TYPES: tuple[ContentType, ...] = ("jobs", "opportunities", "events", "resources")


class _BackendModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ContentMetrics(_BackendModel):
    views: int = Field(default=0, alias="viewCount")
    likes: int = Field(default=0, alias="likeCount")
    saves: int = Field(default=0, alias="saveCount")
    applications: int = Field(default=0, alias="applicationCount")
    registrations: int = Field(default=0, alias="registrationCount")
    downloads: int = Field(default=0, alias="downloadCount")


class Location(_BackendModel):
    country: str | None = None
    province: str | None = None
    city: str | None = None

    def label(self) -> str:
        return self.country or self.province or self.city or ""


class ContentItem(_BackendModel):
    """Shared shape of every listing entry.

    Variants add their domain payload and extend ``searchable_fields``.
    """

    kind: ContentKind
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str = ""
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    metrics: ContentMetrics = Field(default_factory=ContentMetrics)
    is_promoted: bool = Field(default=False, alias="isPromoted")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
        return value

    @field_validator("metrics", mode="before")
    @classmethod
    def _coerce_metrics(cls, value: Any) -> Any:
        return {} if value is None else value

    def searchable_fields(self) -> list[str]:
        return [self.title, self.description or "", *self.tags]

    def paid_token(self) -> str | None:
        return None


class Financial(_BackendModel):
    is_paid: bool | None = Field(default=None, alias="isPaid")
    amount: float | str | None = None
    currency: str | None = None


class _PaidFlagMixin(_BackendModel):
    is_paid: bool | None = Field(default=None, alias="isPaid")
    financial: Financial | None = None

    @property
    def resolved_is_paid(self) -> bool:
        # Either the top-level flag or financial.isPaid; missing reads as free.
        return bool(self.is_paid or (self.financial is not None and self.financial.is_paid))

    def paid_token(self) -> str | None:
        return "paid" if self.resolved_is_paid else "free"


class JobPay(_BackendModel):
    is_paid: bool | None = Field(default=None, alias="isPaid")
    amount: float | str | None = None
    currency: str | None = None
    period: str | None = None


class Job(ContentItem):
    kind: Literal["job"] = "job"
    company: str | None = None
    job_type: str | None = Field(default=None, alias="jobType")
    location: Location | None = None
    requirements: list[str] = Field(default_factory=list)
    pay: JobPay | None = None

    def searchable_fields(self) -> list[str]:
        return [
            *super().searchable_fields(),
            self.company or "",
            self.location.label() if self.location else "",
            self.job_type or "",
            " ".join(self.requirements),
        ]

    def paid_token(self) -> str | None:
        if self.pay is None or self.pay.is_paid is None:
            return None
        return "paid" if self.pay.is_paid else "free"


class Opportunity(_PaidFlagMixin, ContentItem):
    kind: Literal["opportunity"] = "opportunity"
    category: str | None = None
    eligibility: str | None = None
    deadline: datetime | None = None

    def searchable_fields(self) -> list[str]:
        return [*super().searchable_fields(), self.category or "", self.eligibility or ""]


class Event(_PaidFlagMixin, ContentItem):
    kind: Literal["event"] = "event"
    location: Location | None = None
    start_date: datetime | None = Field(default=None, alias="startDate")
    end_date: datetime | None = Field(default=None, alias="endDate")

    def searchable_fields(self) -> list[str]:
        return [*super().searchable_fields(), self.location.label() if self.location else ""]


class Resource(_PaidFlagMixin, ContentItem):
    kind: Literal["resource"] = "resource"
    resource_type: str | None = Field(default=None, alias="type")
    author: str | None = None
    url: str | None = None

    def searchable_fields(self) -> list[str]:
        return [*super().searchable_fields(), self.resource_type or ""]


CONTENT_MODELS: dict[ContentType, type[ContentItem]] = {
    "jobs": Job,
    "opportunities": Opportunity,
    "events": Event,
    "resources": Resource,
}

CONTENT_KINDS: dict[ContentType, ContentKind] = {
    "jobs": "job",
    "opportunities": "opportunity",
    "events": "event",
    "resources": "resource",
}


def require_content_type(value: str) -> ContentType:
    if value not in CONTENT_MODELS:
        raise ValueError(f"unknown content type: {value!r}")
    return value  # type: ignore[return-value]


def parse_content_item(content_type: ContentType, raw: dict[str, Any]) -> ContentItem:
    model = CONTENT_MODELS[require_content_type(content_type)]
    payload = {key: value for key, value in raw.items() if key != "kind"}
    return model.model_validate(payload)


class ContentEnvelope(BaseModel):
    success: bool = False
    data: dict[str, Any] | None = None
    message: str | None = None

    def raw_items_for(self, content_type: ContentType) -> list[Any]:
        if not self.data:
            return []
        raw = self.data.get(content_type)
        return raw if isinstance(raw, list) else []

    @property
    def total_count(self) -> int | None:
        if not self.data:
            return None
        raw = self.data.get("totalCount")
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int) and raw >= 0:
            return raw
        return None


@dataclass(slots=True)
class SourceResult:
    source: SourceName
    ok: bool
    items: list[ContentItem] = field(default_factory=list)
    total_count: int | None = None
    reason: str | None = None

    @classmethod
    def loaded(
        cls,
        source: SourceName,
        items: list[ContentItem],
        *,
        total_count: int | None = None,
    ) -> SourceResult:
        return cls(source=source, ok=True, items=list(items), total_count=total_count)

    @classmethod
    def failed(cls, source: SourceName, reason: str) -> SourceResult:
        return cls(source=source, ok=False, reason=reason)


def parse_items(content_type: ContentType, raw_items: list[Any]) -> tuple[list[ContentItem], int]:
    """Validate raw backend items, returning the parsed items and the number dropped."""
    parsed: list[ContentItem] = []
    dropped = 0
    for raw in raw_items:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        try:
            parsed.append(parse_content_item(content_type, raw))
        except ValidationError:
            dropped += 1
    return parsed, dropped
