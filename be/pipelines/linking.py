"""Association linking between a job offer and its tag entities.

Every tag type (benefits, requirements, work modes, contract types,
keywords) is described once by an ``AssociationSpec`` and handled by the
same ``AssociationLinker``. A non-empty list replaces the whole association
set for that type; an absent or empty list leaves it untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import Column, Table, delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.pipelines.resolution import resolve_named
from be.schemas import JobOfferRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssociationSpec:
    """A tag entity type and the join table linking it to job offers."""
    field: str
    model: type[models.Base]
    table: Table

    @property
    def owner_column(self) -> Column:
        return self.table.c.job_offer_id

    @property
    def target_column(self) -> Column:
        return next(c for c in self.table.c if c.name != "job_offer_id")


ASSOCIATIONS: tuple[AssociationSpec, ...] = (
    AssociationSpec("benefits", models.Benefit, models.job_offer_benefits),
    AssociationSpec("requirements", models.Requirement, models.job_offer_requirements),
    AssociationSpec("work_modes", models.WorkMode, models.job_offer_work_modes),
    AssociationSpec("contract_types", models.ContractType, models.job_offer_contract_types),
    AssociationSpec("keywords", models.Keyword, models.job_offer_keywords),
)


class AssociationLinker:
    """Resolves tag names and replaces one association set of a job offer."""

    def __init__(self, session: AsyncSession, spec: AssociationSpec):
        self.session = session
        self.spec = spec

    async def link(self, job_offer_id: int, names: list[str] | None) -> None:
        if not names:
            logger.debug(f"No {self.spec.field} supplied for job offer {job_offer_id}; keeping existing links")
            return

        # one AsyncSession runs one statement at a time, names resolve in order
        entity_ids = []
        for name in names:
            entity = await resolve_named(self.session, self.spec.model, name)
            entity_ids.append(entity.id)

        await self.replace_all(job_offer_id, entity_ids)

    async def current_ids(self, job_offer_id: int) -> set[int]:
        stmt = select(self.spec.target_column).where(self.spec.owner_column == job_offer_id)
        return set((await self.session.execute(stmt)).scalars())

    async def replace_all(self, job_offer_id: int, entity_ids: Iterable[int]) -> None:
        """Make the association set exactly ``entity_ids``.

        Stale members are deleted, new ones inserted, unchanged rows are not
        touched.
        """
        wanted = set(entity_ids)
        current = await self.current_ids(job_offer_id)
        stale = current - wanted
        added = wanted - current

        if stale:
            await self.session.execute(
                delete(self.spec.table).where(
                    self.spec.owner_column == job_offer_id,
                    self.spec.target_column.in_(stale),
                )
            )
        if added:
            target = self.spec.target_column.name
            await self.session.execute(
                insert(self.spec.table),
                [{"job_offer_id": job_offer_id, target: entity_id} for entity_id in sorted(added)],
            )

        logger.debug(
            f"Linked {self.spec.field} for job offer {job_offer_id}: "
            f"+{len(added)} -{len(stale)} ={len(current & wanted)}"
        )


async def link_associations(session: AsyncSession, job_offer_id: int, record: JobOfferRecord) -> None:
    """Run the linker for every tag type, in declaration order."""
    for spec in ASSOCIATIONS:
        await AssociationLinker(session, spec).link(job_offer_id, getattr(record, spec.field))
