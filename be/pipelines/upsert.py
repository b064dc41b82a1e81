"""Root upsert of the job-offer row, keyed by ``external_id``.

``JOB_OFFER_COLUMNS`` is the one place that decides which record fields are
stored directly on ``job_offers``. Nested objects and tag lists never become
columns; they are represented by the foreign keys from resolution and by
the association tables.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import case, func, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.errors import PersistenceError, UpsertFailure
from be.pipelines.resolution import ResolvedDependents
from be.schemas import JobOfferRecord

logger = logging.getLogger(__name__)

# record field -> job_offers column
JOB_OFFER_COLUMNS: dict[str, str] = {
    "external_id": "external_id",
    "title": "title",
    "source_url": "source_url",
    "description": "description",
    "seniority": "seniority",
    "source_name": "source_name",
    "published_at": "published_at",
    "expires_at": "expires_at",
}

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def build_job_offer_row(record: JobOfferRecord, dependents: ResolvedDependents) -> dict[str, Any]:
    """Column values for the upsert.

    Scalar fields are written only when the message supplied them; the five
    foreign keys are always written, so an omitted nested object clears the
    link left by an earlier message.
    """
    supplied = record.model_fields_set
    row = {
        column: getattr(record, field)
        for field, column in JOB_OFFER_COLUMNS.items()
        if field in supplied
    }
    row.update(dependents.as_foreign_keys())
    return row


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise PersistenceError(f"Upsert is not supported on the '{dialect}' dialect") from None


async def upsert_job_offer(
    session: AsyncSession,
    record: JobOfferRecord,
    dependents: ResolvedDependents,
) -> int:
    """Insert the job offer or overwrite the row with the same external_id.

    Returns:
        Surrogate id of the inserted/updated row

    Raises:
        UpsertFailure: If the statement returned no row
    """
    row = build_job_offer_row(record, dependents)

    stmt = _dialect_insert(session)(models.JobOffer).values(**row)
    update_cols = {column: getattr(stmt.excluded, column) for column in row if column != "external_id"}
    # updated_at moves only when a written value differs from the stored one
    changed = or_(*(getattr(models.JobOffer, column).is_distinct_from(value) for column, value in update_cols.items()))
    update_cols["updated_at"] = case((changed, func.now()), else_=models.JobOffer.updated_at)
    stmt = stmt.on_conflict_do_update(
        index_elements=["external_id"],
        set_=update_cols,
    ).returning(models.JobOffer.id)

    job_offer_id = (await session.execute(stmt)).scalar_one_or_none()
    if job_offer_id is None:
        raise UpsertFailure(f"Failed to upsert job offer {record.external_id}")

    logger.info(f"Upserted job offer id={job_offer_id} external_id={record.external_id}")
    return job_offer_id
