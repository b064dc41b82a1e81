"""Ingestion pipeline for extracted job offers.

One message is one unit of work:

1. validate the raw payload into a ``JobOfferRecord``
2. resolve dependent entities (locations, company, salary, industry, profession)
3. upsert the job offer by ``external_id``
4. replace the tag associations

All four stages share a single session and transaction. Any failure rolls
back every write made for the message and re-raises the error.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ai.extraction import ExtractionStreamReader
from ai.prompts import build_job_offer_prompt
from be.config import Settings
from be.errors import EmptyExtractionResult, PersistenceError
from be.pipelines.linking import link_associations
from be.pipelines.resolution import resolve_dependents
from be.pipelines.upsert import upsert_job_offer
from be.pipelines.validation import parse_record

logger = logging.getLogger(__name__)


class TransactionState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ABORTED = "aborted"


class UnitOfWork:
    """Owns one session and its transaction for a single message.

    Usage:
        async with UnitOfWork(session_factory) as uow:
            ...  # every storage call goes through uow.session

    Leaving the block normally commits; leaving it with an exception rolls
    back and lets the exception propagate. SQLAlchemy errors surface as
    ``PersistenceError``. A failing rollback is logged and never replaces
    the original error. The session is closed on every exit path.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self.session: AsyncSession | None = None
        self.state: TransactionState | None = None

    async def __aenter__(self) -> UnitOfWork:
        self.session = self._session_factory()
        self.state = TransactionState.OPEN
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc is None:
                await self._commit()
                return False

            logger.error(f"Aborting unit of work: {exc!r}")
            await self._abort()
            if isinstance(exc, SQLAlchemyError):
                raise PersistenceError(f"Storage operation failed: {exc}") from exc
            return False
        finally:
            await self._release()

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._abort()
            raise PersistenceError(f"Commit failed: {e}") from e
        self.state = TransactionState.COMMITTED

    async def _abort(self) -> None:
        try:
            await self.session.rollback()
        except Exception:
            logger.exception("Rollback failed; surfacing the original error")
        finally:
            self.state = TransactionState.ABORTED

    async def _release(self) -> None:
        try:
            await self.session.close()
        except Exception:
            logger.exception("Closing the session failed")


class ExtractionReader(Protocol):
    async def read_responses_from_prompt(self, prompt: str) -> list[str]: ...


PromptBuilder = Callable[[str, str], str]


class JobOfferIngestor:
    """Commits extracted job offers into the normalized store.

    Configuration arrives through the constructor; nothing here reads
    settings or the environment.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        reader: ExtractionReader,
        *,
        prompt_builder: PromptBuilder = build_job_offer_prompt,
        wrapper_key: str = "json",
    ):
        self.session_factory = session_factory
        self.reader = reader
        self.prompt_builder = prompt_builder
        self.wrapper_key = wrapper_key

    async def process_message(self, message: str) -> None:
        """Extract a job offer from free text and commit it.

        Raises:
            EmptyExtractionResult: If the extraction service returned no text
            IngestError: Any error from ``ingest_payload``
        """
        prompt = self.prompt_builder(message, self.wrapper_key)
        responses = await self.reader.read_responses_from_prompt(prompt)
        payload = "".join(responses)
        if not payload:
            raise EmptyExtractionResult("Returned no text from the extraction service")

        await self.ingest_payload(payload)

    async def ingest_payload(self, payload: str) -> None:
        """Validate ``payload`` and commit the full job-offer graph atomically.

        Raises:
            MalformedPayload: If the payload is not the expected JSON shape
            MissingRequiredField: If external_id, title or source_url is missing
            UpsertFailure: If the job-offer upsert returned no row
            PersistenceError: If any storage operation fails
        """
        async with UnitOfWork(self.session_factory) as uow:
            record = parse_record(payload, self.wrapper_key)
            dependents = await resolve_dependents(uow.session, record)
            job_offer_id = await upsert_job_offer(uow.session, record, dependents)
            await link_associations(uow.session, job_offer_id, record)

        logger.info(f"Successfully processed and saved job offer {record.external_id}")


def build_ingestor(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> JobOfferIngestor:
    """Wire the ingestor with the real extraction collaborators."""
    return JobOfferIngestor(
        session_factory,
        ExtractionStreamReader(settings.extraction),
        wrapper_key=settings.ingest.wrapper_key,
    )
