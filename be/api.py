"""FastAPI app exposing the job-offer ingestion pipeline.

Each request is one independent unit of work. Errors from the pipeline are
mapped to HTTP responses by the exception handlers below.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from . import models
from .config import get_settings
from .db import create_engine_from_settings, create_session_factory, iter_sessions
from .errors import (
    EmptyExtractionResult,
    MalformedPayload,
    MissingRequiredField,
    PersistenceError,
    UpsertFailure,
)
from .logging_config import setup_logging
from .pipelines.ingest import JobOfferIngestor, build_ingestor

logger = logging.getLogger(__name__)


# Pydantic request/response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class IngestMessageRequest(BaseModel):
    """Free-text job offer to run through extraction."""
    message: str = Field(min_length=1)


class IngestPayloadRequest(BaseModel):
    """Raw extraction payload, already produced elsewhere."""
    payload: str = Field(min_length=1)


class IngestResponse(BaseModel):
    status: str
    message: str


class LocationDTO(BaseModel):
    city: str
    country: str | None = None
    region: str | None = None


class CompanyDTO(BaseModel):
    name: str
    website: str | None = None
    size: str | None = None
    location: LocationDTO | None = None


class SalaryDTO(BaseModel):
    min_value: float | None = None
    max_value: float | None = None
    currency: str | None = None
    period: str | None = None
    salary_type: str | None = None


class JobOfferDTO(BaseModel):
    """Committed job offer with its resolved graph."""
    id: int
    external_id: str
    title: str
    source_url: str
    description: str | None = None
    seniority: str | None = None
    source_name: str | None = None
    published_at: datetime | None = None
    expires_at: datetime | None = None
    location: LocationDTO | None = None
    company: CompanyDTO | None = None
    salary: SalaryDTO | None = None
    industry: str | None = None
    profession: str | None = None
    benefits: list[str] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    work_modes: list[str] = Field(default_factory=list)
    contract_types: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings once, wire the pipeline, dispose the engine on shutdown."""
    settings = get_settings()
    setup_logging(settings.logging)
    logger.info(f"Application starting up ({settings.app_name} v{settings.version})")

    engine = create_engine_from_settings(settings.db)
    app.state.settings = settings
    app.state.session_factory = create_session_factory(engine)
    app.state.ingestor = build_ingestor(settings, app.state.session_factory)

    yield

    logger.info("Application shutting down")
    await engine.dispose()


app = FastAPI(
    title="Job Offer Ingest",
    version="0.1.0",
    description="Normalizes extracted job offers into a relational store",
    lifespan=lifespan,
)


def get_ingestor(request: Request) -> JobOfferIngestor:
    return request.app.state.ingestor


def get_timeout(request: Request) -> float:
    return request.app.state.settings.ingest.timeout_seconds


async def get_session(request: Request):
    async for session in iter_sessions(request.app.state.session_factory):
        yield session


def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=str(exc)).model_dump(),
    )


# Exception handlers
@app.exception_handler(MissingRequiredField)
async def missing_field_handler(request, exc: MissingRequiredField):
    """Handle records missing an identifying field."""
    logger.warning(f"Rejected record: {exc}")
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "missing_required_field", exc)


@app.exception_handler(MalformedPayload)
async def malformed_payload_handler(request, exc: MalformedPayload):
    """Handle payloads that are not the expected JSON shape."""
    logger.warning(f"Malformed payload: {exc}")
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "malformed_payload", exc)


@app.exception_handler(EmptyExtractionResult)
async def empty_extraction_handler(request, exc: EmptyExtractionResult):
    """Handle an extraction service that answered with nothing."""
    logger.error(f"Empty extraction result: {exc}")
    return _error(status.HTTP_502_BAD_GATEWAY, "empty_extraction_result", exc)


@app.exception_handler(httpx.HTTPError)
async def extraction_service_handler(request, exc: httpx.HTTPError):
    """Handle an extraction service that failed or stayed unreachable."""
    logger.error(f"Extraction service error: {exc}")
    return _error(status.HTTP_502_BAD_GATEWAY, "extraction_service_error", exc)


@app.exception_handler(UpsertFailure)
async def upsert_failure_handler(request, exc: UpsertFailure):
    logger.error(f"Upsert failure: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "upsert_failure", exc)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request, exc: PersistenceError):
    logger.error(f"Persistence error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "persistence_error", exc)


@app.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=request.app.state.settings.version,
    )


async def _run_with_timeout(coro, timeout: float) -> None:
    try:
        await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Ingestion timed out after {timeout}s")
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Ingestion timed out after {timeout}s",
        ) from e


@app.post(
    "/job-offers/messages",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def ingest_message(
    body: IngestMessageRequest,
    ingestor: JobOfferIngestor = Depends(get_ingestor),
    timeout: float = Depends(get_timeout),
) -> IngestResponse:
    """Extract a job offer from free text and commit it.

    This endpoint:
    1. Builds the extraction prompt
    2. Streams the extraction service's answer
    3. Validates, resolves, upserts and links in one transaction
    """
    await _run_with_timeout(ingestor.process_message(body.message), timeout)
    return IngestResponse(status="success", message="Job offer ingested")


@app.post(
    "/job-offers/payloads",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def ingest_payload(
    body: IngestPayloadRequest,
    ingestor: JobOfferIngestor = Depends(get_ingestor),
    timeout: float = Depends(get_timeout),
) -> IngestResponse:
    """Commit an already-extracted payload, skipping the extraction service."""
    await _run_with_timeout(ingestor.ingest_payload(body.payload), timeout)
    return IngestResponse(status="success", message="Job offer ingested")


def _location_dto(location: models.Location | None) -> LocationDTO | None:
    if location is None:
        return None
    return LocationDTO(city=location.city, country=location.country, region=location.region)


@app.get("/job-offers/{external_id}", response_model=JobOfferDTO)
async def get_job_offer(
    external_id: str,
    session: AsyncSession = Depends(get_session),
) -> JobOfferDTO:
    """Read a committed job offer and its resolved relations."""
    stmt = (
        select(models.JobOffer)
        .where(models.JobOffer.external_id == external_id)
        .options(
            selectinload(models.JobOffer.company).selectinload(models.Company.location),
            selectinload(models.JobOffer.location),
            selectinload(models.JobOffer.salary),
            selectinload(models.JobOffer.industry),
            selectinload(models.JobOffer.profession),
            selectinload(models.JobOffer.benefits),
            selectinload(models.JobOffer.requirements),
            selectinload(models.JobOffer.work_modes),
            selectinload(models.JobOffer.contract_types),
            selectinload(models.JobOffer.keywords),
        )
    )
    offer = (await session.execute(stmt)).scalar_one_or_none()
    if offer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job offer {external_id} not found",
        )

    company = None
    if offer.company is not None:
        company = CompanyDTO(
            name=offer.company.name,
            website=offer.company.website,
            size=offer.company.size,
            location=_location_dto(offer.company.location),
        )

    salary = None
    if offer.salary is not None:
        salary = SalaryDTO(
            min_value=offer.salary.min_value,
            max_value=offer.salary.max_value,
            currency=offer.salary.currency,
            period=offer.salary.period,
            salary_type=offer.salary.salary_type,
        )

    return JobOfferDTO(
        id=offer.id,
        external_id=offer.external_id,
        title=offer.title,
        source_url=offer.source_url,
        description=offer.description,
        seniority=offer.seniority,
        source_name=offer.source_name,
        published_at=offer.published_at,
        expires_at=offer.expires_at,
        location=_location_dto(offer.location),
        company=company,
        salary=salary,
        industry=offer.industry.name if offer.industry else None,
        profession=offer.profession.name if offer.profession else None,
        benefits=sorted(b.name for b in offer.benefits),
        requirements=sorted(r.name for r in offer.requirements),
        work_modes=sorted(w.name for w in offer.work_modes),
        contract_types=sorted(c.name for c in offer.contract_types),
        keywords=sorted(k.name for k in offer.keywords),
    )
