"""Natural-key resolution (find-or-create) for the job offer's dependents.

Each lookup entity is resolved by its business key, never by surrogate id.
Existing rows are returned unchanged, with one exception: a company whose
stored location differs from the freshly resolved company location is
repointed at the new location.

Creation runs inside a SAVEPOINT. When a concurrent ingestion wins the race
to insert the same key, the unique constraint rejects our insert, the
savepoint is rolled back and the winner's row is read back instead.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.schemas import CompanyRecord, JobOfferRecord, LocationRecord, SalaryRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=models.Base)


async def _select_by_key(session: AsyncSession, model: type[ModelT], key: Mapping[str, Any]) -> ModelT | None:
    # filter_by renders None as IS NULL, so nullable key parts match exactly
    stmt = select(model).filter_by(**key).limit(1)
    return (await session.execute(stmt)).scalar_one_or_none()


async def find_or_create(
    session: AsyncSession,
    model: type[ModelT],
    key: Mapping[str, Any],
    attributes: Mapping[str, Any] | None = None,
) -> tuple[ModelT, bool]:
    """Return the single row matching ``key``, creating it if absent.

    Args:
        session: Session of the current unit of work
        model: Mapped class to resolve
        key: Natural-key columns and their values
        attributes: Full attribute set used only when a new row is created

    Returns:
        (instance, created) tuple

    Raises:
        IntegrityError: If the insert conflicts and no winning row can be read back
    """
    existing = await _select_by_key(session, model, key)
    if existing is not None:
        return existing, False

    instance = model(**{**(attributes or {}), **key})
    try:
        async with session.begin_nested():
            session.add(instance)
            await session.flush()
    except IntegrityError:
        winner = await _select_by_key(session, model, key)
        if winner is None:
            raise
        logger.warning(f"Lost creation race for {model.__name__} {dict(key)}; using existing row {winner.id}")
        return winner, False

    logger.debug(f"Created {model.__name__} {instance.id} for {dict(key)}")
    return instance, True


async def resolve_named(session: AsyncSession, model: type[ModelT], name: str) -> ModelT:
    """Resolve a name-keyed entity (industry, profession, tag types)."""
    instance, _ = await find_or_create(session, model, {"name": name})
    return instance


async def resolve_location(session: AsyncSession, location: LocationRecord) -> models.Location:
    instance, _ = await find_or_create(
        session,
        models.Location,
        {"city": location.city, "country": location.country},
        location.model_dump(),
    )
    return instance


async def resolve_salary(session: AsyncSession, salary: SalaryRecord) -> models.Salary:
    instance, _ = await find_or_create(
        session,
        models.Salary,
        {
            "min_value": salary.min_value,
            "max_value": salary.max_value,
            "currency": salary.currency,
            "period": salary.period,
        },
        salary.model_dump(),
    )
    return instance


async def resolve_company(
    session: AsyncSession,
    company: CompanyRecord,
    company_location: models.Location | None = None,
) -> models.Company:
    """Resolve a company by name and backfill its location.

    Only ``location_id`` is ever updated on an existing company, and only
    when a company location was supplied and resolves to a different row.
    """
    attributes = company.model_dump(exclude={"location"})
    attributes["location_id"] = company_location.id if company_location is not None else None

    instance, created = await find_or_create(session, models.Company, {"name": company.name}, attributes)

    if not created and company_location is not None and instance.location_id != company_location.id:
        logger.info(
            f"Company {instance.id} location changed {instance.location_id} -> {company_location.id}"
        )
        instance.location_id = company_location.id
        await session.flush()

    return instance


@dataclass
class ResolvedDependents:
    """Foreign keys produced by dependent-entity resolution."""
    location_id: int | None = None
    company_id: int | None = None
    salary_id: int | None = None
    industry_id: int | None = None
    profession_id: int | None = None

    def as_foreign_keys(self) -> dict[str, int | None]:
        return {
            "location_id": self.location_id,
            "company_id": self.company_id,
            "salary_id": self.salary_id,
            "industry_id": self.industry_id,
            "profession_id": self.profession_id,
        }


async def resolve_dependents(session: AsyncSession, record: JobOfferRecord) -> ResolvedDependents:
    """Resolve every optional nested object of ``record``.

    Omitted objects are skipped and their foreign key stays None. The job
    location and the company location are resolved independently even when
    they carry the same values.
    """
    resolved = ResolvedDependents()

    if record.location is not None:
        resolved.location_id = (await resolve_location(session, record.location)).id

    company_location = None
    if record.company is not None and record.company.location is not None:
        company_location = await resolve_location(session, record.company.location)

    if record.company is not None:
        resolved.company_id = (await resolve_company(session, record.company, company_location)).id

    if record.salary is not None:
        resolved.salary_id = (await resolve_salary(session, record.salary)).id

    if record.industry:
        resolved.industry_id = (await resolve_named(session, models.Industry, record.industry)).id

    if record.profession:
        resolved.profession_id = (await resolve_named(session, models.Profession, record.profession)).id

    return resolved
