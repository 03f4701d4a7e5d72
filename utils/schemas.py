"""
Pydantic Schemas - Data Validation Models

Defines the strict schemas used between the CRM source and the pipeline:
- AccountRecord: one account as fetched (frozen snapshot)
- Page: one page of the Web API collection response
- UpdateOutcome / RunSummary: per-record and per-run results

Usage:
    from utils.schemas import Page

    page = Page.model_validate(payload)
    for record in page.value:
        ...
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNPROCESSED = "No"


def utc_now() -> datetime:
    """Current time in UTC, timezone-aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class AccountRecord(BaseModel):
    """Account record as fetched from the CRM.

    Field order is the export column order. Aliases are the Web API
    attribute names; instances are frozen so the processed flag always
    reflects the value at fetch time.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="accountid", min_length=1)
    name: Optional[str] = Field(default=None, alias="name")
    telephone: Optional[str] = Field(default=None, alias="telephone1")
    fax: Optional[str] = Field(default=None, alias="fax")
    website: Optional[str] = Field(default=None, alias="websiteurl")
    address: Optional[str] = Field(default=None, alias="address1_composite")
    revenue: Optional[Decimal] = Field(default=None, alias="revenue")
    number_of_employees: Optional[int] = Field(default=None, alias="numberofemployees")
    preferred_contact_method: Optional[str] = Field(default=None, alias="preferredcontactmethodcode")
    industry: Optional[str] = Field(default=None, alias="industrycode")
    sic: Optional[str] = Field(default=None, alias="sic")
    longitude: Optional[float] = Field(default=None, alias="address1_longitude")
    latitude: Optional[float] = Field(default=None, alias="address1_latitude")
    relationship_type: Optional[str] = Field(default=None, alias="customertypecode")
    due_date: Optional[datetime] = Field(default=None, alias="cr356_duedate")
    processed: str = Field(default=UNPROCESSED, alias="cr356_processed")

    @field_validator(
        "name",
        "telephone",
        "fax",
        "website",
        "address",
        "preferred_contact_method",
        "industry",
        "sic",
        "relationship_type",
        mode="before",
    )
    @classmethod
    def stringify(cls, v: Any) -> Optional[str]:
        # option set codes arrive as integers
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("processed", mode="before")
    @classmethod
    def default_processed(cls, v: Any) -> str:
        if v is None:
            return UNPROCESSED
        if isinstance(v, bool):
            return "TRUE" if v else UNPROCESSED
        return str(v)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class Page(BaseModel):
    """One page of an OData collection response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    value: list[AccountRecord] = Field(default_factory=list)
    next_link: Optional[str] = Field(default=None, alias="@odata.nextLink")


class UpdateStatus(str, Enum):
    UPDATED = "updated"
    FAILED = "failed"


class UpdateOutcome(BaseModel):
    """Result of dispatching the processed-flag update for one record."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    status: UpdateStatus
    attempts: int
    last_status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is UpdateStatus.UPDATED


class RunSummary(BaseModel):
    """Immutable outcome of one pipeline execution."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    started_at: datetime
    completed_at: datetime
    total_fetched: int
    eligible: int
    updated: int
    failed: int
    failures: list[UpdateOutcome] = Field(default_factory=list)
    export_location: str

    @property
    def elapsed(self) -> timedelta:
        return self.completed_at - self.started_at

    def message(self) -> str:
        """Human-readable summary returned by the trigger."""
        return f"Successfully processed {self.total_fetched} records. Time Taken: {self.elapsed}"
