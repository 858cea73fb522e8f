"""
CODETIME — API Models.
Centralized Pydantic models for request/response validation.
"""

from typing import Union

from pydantic import BaseModel, Field, field_validator

from codetime.timing.models import Summary, SummaryItem, SummaryType


class HeartbeatRequest(BaseModel):
    time: Union[float, str] = Field(..., description="Epoch seconds or ISO 8601 timestamp")
    entity: str = Field("", max_length=1024, description="File path, URL or app name")
    type: str = Field("file", max_length=32)
    category: str | None = Field(None, max_length=64)
    project: str | None = Field(None, max_length=255)
    branch: str | None = Field(None, max_length=255)
    language: str | None = Field(None, max_length=255)
    is_write: bool = False
    editor: str | None = Field(None, max_length=255)
    operating_system: str | None = Field(None, max_length=255)
    machine: str | None = Field(None, max_length=255)


class HeartbeatBatchResponse(BaseModel):
    accepted: int
    inserted: int
    rejected: int
    errors: list[str] = Field(default_factory=list)


class SummaryItemResponse(BaseModel):
    key: str
    total_seconds: int

    @classmethod
    def from_item(cls, item: SummaryItem) -> "SummaryItemResponse":
        return cls(key=item.key, total_seconds=item.total_seconds)


class SummaryResponse(BaseModel):
    user_id: str
    from_time: str
    to_time: str
    total_seconds: int
    total_hours: float
    projects: list[SummaryItemResponse]
    languages: list[SummaryItemResponse]
    editors: list[SummaryItemResponse]
    operating_systems: list[SummaryItemResponse]
    machines: list[SummaryItemResponse]

    @classmethod
    def from_summary(cls, summary: Summary) -> "SummaryResponse":
        def items(summary_type: SummaryType) -> list[SummaryItemResponse]:
            return [SummaryItemResponse.from_item(i) for i in summary.items_of(summary_type)]

        return cls(
            user_id=summary.user_id,
            from_time=summary.from_time.isoformat(),
            to_time=summary.to_time.isoformat(),
            total_seconds=summary.total_seconds,
            total_hours=summary.total_hours,
            projects=items(SummaryType.PROJECT),
            languages=items(SummaryType.LANGUAGE),
            editors=items(SummaryType.EDITOR),
            operating_systems=items(SummaryType.OS),
            machines=items(SummaryType.MACHINE),
        )


class AliasRequest(BaseModel):
    type: str = Field(..., description="project, language, editor, os or machine")
    key: str = Field(..., max_length=255, description="Canonical key")
    value: str = Field(..., max_length=255, description="Raw key resolved to the canonical key")

    @field_validator("key", "value")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Must not be empty or whitespace only")
        return v


class AliasResponse(BaseModel):
    id: int | None
    type: str
    key: str
    value: str


class LanguageMappingRequest(BaseModel):
    extension: str = Field(..., max_length=32, description="File extension, with or without dot")
    language: str = Field(..., max_length=255)
    backfill: bool = Field(False, description="Also apply to stored heartbeats without a language")


class LanguageMappingResponse(BaseModel):
    id: int | None
    extension: str
    language: str


class BackfillRequest(BaseModel):
    extension: str = Field(..., max_length=32)
    language: str = Field(..., max_length=255)


class BackfillResponse(BaseModel):
    rows_affected: int


class RegenerateResponse(BaseModel):
    user_id: str
    status: str


class HealthResponse(BaseModel):
    status: str
    version: str
    scheduler: str
