"""Tests for the HTTP surface."""
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from be.api import app
from be.config import ExtractionSettings, IngestSettings, Settings
from be.pipelines.ingest import JobOfferIngestor
from tests.helpers import make_payload


class StubReader:
    def __init__(self, chunks):
        self.chunks = chunks

    async def read_responses_from_prompt(self, prompt):
        return self.chunks


@pytest.fixture
def reader():
    return StubReader([])


@pytest_asyncio.fixture
async def client(session_factory, reader):
    app.state.settings = Settings(
        extraction=ExtractionSettings(url="http://llm.test/api/generate", version="test-model"),
        ingest=IngestSettings(timeout_seconds=5),
    )
    app.state.session_factory = session_factory
    app.state.ingestor = JobOfferIngestor(session_factory, reader)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_ingest_payload_and_read_back(client):
    payload = make_payload(
        company={"name": "Acme", "location": {"city": "Paris", "country": "FR"}},
        salary={"min_value": 5000, "max_value": 7000, "currency": "EUR", "period": "month"},
        industry="Software",
        benefits=["Remote", "Gym"],
        workModes=["hybrid"],
    )

    response = await client.post("/job-offers/payloads", json={"payload": payload})
    assert response.status_code == 201

    offer = (await client.get("/job-offers/X1")).json()
    assert offer["title"] == "Engineer"
    assert offer["company"]["name"] == "Acme"
    assert offer["company"]["location"]["city"] == "Paris"
    assert offer["location"] is None
    assert offer["salary"]["currency"] == "EUR"
    assert offer["industry"] == "Software"
    assert offer["benefits"] == ["Gym", "Remote"]
    assert offer["work_modes"] == ["hybrid"]
    assert offer["keywords"] == []


async def test_missing_required_field(client):
    response = await client.post("/job-offers/payloads", json={"payload": make_payload(title=...)})

    assert response.status_code == 422
    assert response.json() == {
        "error": "missing_required_field",
        "detail": "Invalid record format: title is missing",
    }


async def test_malformed_payload(client):
    response = await client.post("/job-offers/payloads", json={"payload": "not json"})
    assert response.status_code == 422
    assert response.json()["error"] == "malformed_payload"


async def test_empty_extraction(client):
    response = await client.post("/job-offers/messages", json={"message": "Engineer at Acme"})
    assert response.status_code == 502
    assert response.json()["error"] == "empty_extraction_result"


async def test_message_goes_through_extraction(client, reader):
    reader.chunks = [make_payload(external_id="M1")]

    response = await client.post("/job-offers/messages", json={"message": "Engineer at Acme"})

    assert response.status_code == 201
    assert (await client.get("/job-offers/M1")).status_code == 200


async def test_unknown_job_offer(client):
    response = await client.get("/job-offers/nope")
    assert response.status_code == 404


@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        httpx.HTTPStatusError(
            "server error",
            request=httpx.Request("POST", "http://llm.test/api/generate"),
            response=httpx.Response(500),
        ),
    ],
)
async def test_extraction_service_failure(client, reader, error):
    reader.read_responses_from_prompt = AsyncMock(side_effect=error)

    response = await client.post("/job-offers/messages", json={"message": "Engineer at Acme"})

    assert response.status_code == 502
    assert response.json()["error"] == "extraction_service_error"
    assert (await client.get("/job-offers/X1")).status_code == 404
