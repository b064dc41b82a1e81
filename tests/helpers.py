"""Payload builders and read-back helpers shared by the tests."""
import json

from sqlalchemy import func, select

from be.models import JobOffer


def make_payload(wrapper_key="json", **fields):
    """Serialize a record the way the extraction service wraps it."""
    record = {
        "external_id": "X1",
        "title": "Engineer",
        "source_url": "http://a",
    }
    record.update(fields)
    record = {k: v for k, v in record.items() if v is not ...}
    return json.dumps({wrapper_key: record})


async def count_rows(session_factory, model):
    """Count committed rows using a short-lived session."""
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def names_linked(session_factory, model, table, job_offer_external_id):
    """Names of ``model`` rows linked to a job offer through ``table``."""
    target = next(c for c in table.c if c.name != "job_offer_id")
    async with session_factory() as session:
        stmt = (
            select(model.name)
            .join(table, target == model.id)
            .join(JobOffer, JobOffer.id == table.c.job_offer_id)
            .where(JobOffer.external_id == job_offer_external_id)
        )
        return set((await session.execute(stmt)).scalars())
