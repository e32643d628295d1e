from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DocumentStatus(str, Enum):
    draft = 'draft'
    pending = 'pending'
    approved = 'approved'
    issued = 'issued'
    rejected = 'rejected'
    obsolete = 'obsolete'


class RenderEngine(str, Enum):
    primary = 'final'
    fallback = 'fallback'


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra='ignore',
    )


def _coerce_date(value: Any) -> Any:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and 'T' in value:
        return datetime.fromisoformat(value.strip().replace('Z', '+00:00')).date()
    return value


class DocumentMetadata(_Record):
    doc_name: str
    doc_number: str
    issue_no: str | None = None
    revision_no: int = Field(default=0, ge=0)
    date_of_issue: date | None = None
    review_due_date: date | None = None
    status: DocumentStatus = DocumentStatus.pending

    preparer_name: str | None = None
    approver_name: str | None = None
    issuer_name: str | None = None
    department_names: list[str] = Field(default_factory=list)

    header_info: str | None = None
    footer_info: str | None = None
    content: str | None = None
    reason_for_revision: str | None = None

    @field_validator('doc_name', 'doc_number')
    @classmethod
    def _require_text(cls, value: str) -> str:
        token = str(value or '').strip()
        if not token:
            raise ValueError('must not be empty')
        return token

    @field_validator('issue_no', mode='before')
    @classmethod
    def _issue_no_as_text(cls, value: Any) -> Any:
        if value is None:
            return None
        token = str(value).strip()
        return token or None

    @field_validator('revision_no', mode='before')
    @classmethod
    def _revision_default(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator('date_of_issue', 'review_due_date', mode='before')
    @classmethod
    def _dates(cls, value: Any) -> Any:
        return _coerce_date(value)

    @field_validator('status', mode='before')
    @classmethod
    def _status_lower(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator('department_names', mode='before')
    @classmethod
    def _departments(cls, value: Any) -> Any:
        if value is None:
            return []
        return [str(item).strip() for item in value if str(item or '').strip()]


class ControlCopyInfo(_Record):
    user_id: str
    user_full_name: str
    control_copy_number: int
    date: str


@dataclass(frozen=True)
class RenderDocument:
    """Extracted source content handed to a renderer."""

    html: str = ''
    text: str = ''


@dataclass(frozen=True)
class RenderedArtifact:
    path: Path
    engine: RenderEngine
    size_bytes: int
    page_count: int | None = None
