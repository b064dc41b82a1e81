"""Typed shape of the record produced by the extraction service."""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class LocationRecord(_Record):
    city: str = Field(min_length=1)
    country: str | None = None
    region: str | None = None


class CompanyRecord(_Record):
    name: str = Field(min_length=1)
    website: str | None = None
    size: str | None = None
    description: str | None = None
    location: LocationRecord | None = None


class SalaryRecord(_Record):
    min_value: float | None = None
    max_value: float | None = None
    currency: str | None = None
    period: str | None = None
    salary_type: str | None = None


def _unique(names: list[str]) -> list[str]:
    return list(dict.fromkeys(names))


class JobOfferRecord(_Record):
    """One extracted job offer.

    Only ``external_id``, ``title`` and ``source_url`` are required; every
    nested object and tag list is optional and simply omitted from the graph
    when absent.
    """

    external_id: str
    title: str
    source_url: str
    description: str | None = None
    seniority: str | None = None
    source_name: str | None = None
    published_at: datetime | None = None
    expires_at: datetime | None = None

    location: LocationRecord | None = None
    company: CompanyRecord | None = None
    salary: SalaryRecord | None = None
    industry: str | None = None
    profession: str | None = None

    benefits: list[str] | None = None
    requirements: list[str] | None = None
    work_modes: list[str] | None = Field(default=None, alias="workModes")
    contract_types: list[str] | None = Field(default=None, alias="contractTypes")
    keywords: list[str] | None = None

    @field_validator("published_at", "expires_at")
    @classmethod
    def _as_naive_utc(cls, v: datetime | None) -> datetime | None:
        # offsets are folded into UTC; naive values are taken as UTC already
        if v is None or v.tzinfo is None:
            return v
        return v.astimezone(timezone.utc).replace(tzinfo=None)

    @field_validator("industry", "profession")
    @classmethod
    def _blank_is_absent(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("benefits", "requirements", "work_modes", "contract_types", "keywords")
    @classmethod
    def _dedupe_names(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return _unique([name for name in v if name])
