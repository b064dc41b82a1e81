"""Tests for the job-offer upsert keyed by external_id."""
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select, update

from be import models
from be.errors import PersistenceError, UpsertFailure
from be.pipelines.resolution import ResolvedDependents, resolve_named
from be.pipelines.upsert import JOB_OFFER_COLUMNS, build_job_offer_row, upsert_job_offer
from be.schemas import JobOfferRecord


def _record(**fields):
    data = {"external_id": "X1", "title": "Engineer", "source_url": "http://a"}
    data.update(fields)
    return JobOfferRecord.model_validate(data)


def _session_returning(row_id, dialect="sqlite"):
    session = MagicMock()
    session.get_bind.return_value.dialect.name = dialect
    result = MagicMock()
    result.scalar_one_or_none.return_value = row_id
    session.execute = AsyncMock(return_value=result)
    return session


class TestBuildRow:
    def test_nested_fields_never_become_columns(self):
        record = _record(
            company={"name": "Acme"},
            salary={"min_value": 1},
            location={"city": "Berlin"},
            industry="Software",
            profession="Developer",
            benefits=["Remote"],
            requirements=["Python"],
            workModes=["remote"],
            contractTypes=["B2B"],
            keywords=["python"],
        )

        row = build_job_offer_row(record, ResolvedDependents(company_id=7))

        assert set(row) == {
            "external_id", "title", "source_url",
            "company_id", "salary_id", "location_id", "industry_id", "profession_id",
        }
        assert row["company_id"] == 7
        assert row["salary_id"] is None

    def test_only_supplied_scalars_are_written(self):
        row = build_job_offer_row(_record(description=None, seniority="senior"), ResolvedDependents())
        assert row["description"] is None
        assert row["seniority"] == "senior"
        assert "source_name" not in row

    def test_allow_list_targets_real_columns(self):
        columns = set(models.JobOffer.__table__.columns.keys())
        assert set(JOB_OFFER_COLUMNS.values()) <= columns


class TestUpsert:
    async def test_insert_then_update_same_row(self, session):
        first_id = await upsert_job_offer(session, _record(description="v1"), ResolvedDependents())
        second_id = await upsert_job_offer(session, _record(title="Senior Engineer"), ResolvedDependents())

        assert first_id == second_id
        assert await session.scalar(select(func.count()).select_from(models.JobOffer)) == 1
        title, description = (
            await session.execute(
                select(models.JobOffer.title, models.JobOffer.description).where(models.JobOffer.id == first_id)
            )
        ).one()
        assert title == "Senior Engineer"
        # description was not part of the second message
        assert description == "v1"

    async def test_foreign_keys_follow_latest_message(self, session):
        industry = await resolve_named(session, models.Industry, "Software")
        job_id = await upsert_job_offer(session, _record(), ResolvedDependents(industry_id=industry.id))
        assert await session.scalar(select(models.JobOffer.industry_id).where(models.JobOffer.id == job_id)) == industry.id

        await upsert_job_offer(session, _record(), ResolvedDependents())
        assert await session.scalar(select(models.JobOffer.industry_id).where(models.JobOffer.id == job_id)) is None

    async def test_distinct_external_ids_make_distinct_rows(self, session):
        a = await upsert_job_offer(session, _record(external_id="A"), ResolvedDependents())
        b = await upsert_job_offer(session, _record(external_id="B"), ResolvedDependents())
        assert a != b

    async def test_no_row_returned_is_upsert_failure(self):
        session = _session_returning(None)
        with pytest.raises(UpsertFailure):
            await upsert_job_offer(session, _record(), ResolvedDependents())

    async def test_unsupported_dialect(self):
        session = _session_returning(1, dialect="oracle")
        with pytest.raises(PersistenceError):
            await upsert_job_offer(session, _record(), ResolvedDependents())

    async def test_updated_at_moves_only_on_change(self, session):
        job_id = await upsert_job_offer(session, _record(description="v1"), ResolvedDependents())
        stamp = datetime(2000, 1, 1)
        await session.execute(update(models.JobOffer).where(models.JobOffer.id == job_id).values(updated_at=stamp))
        updated_at = select(models.JobOffer.updated_at).where(models.JobOffer.id == job_id)

        await upsert_job_offer(session, _record(description="v1"), ResolvedDependents())
        assert await session.scalar(updated_at) == stamp

        await upsert_job_offer(session, _record(description="v2"), ResolvedDependents())
        assert await session.scalar(updated_at) != stamp
