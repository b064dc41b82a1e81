"""Streaming client for the extraction (LLM) service.

The service answers a prompt with newline-delimited JSON objects, each
carrying a ``response`` text fragment, the last one flagged ``done``.
The reader returns the fragments in order; their concatenation is the raw
payload handed to the ingestion pipeline.
"""
from __future__ import annotations

import json
import logging

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from be.config import ExtractionSettings
from be.errors import EmptyExtractionResult, MalformedPayload

logger = logging.getLogger(__name__)


class ExtractionStreamReader:
    """Reads one streamed completion per prompt."""

    def __init__(self, config: ExtractionSettings, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client

    async def read_responses_from_prompt(self, prompt: str) -> list[str]:
        """Send ``prompt`` and collect the streamed text fragments.

        Transport failures (connect/read errors, timeouts) are retried with
        exponential backoff; HTTP error statuses are raised immediately.

        Raises:
            EmptyExtractionResult: If the service produced no text
            MalformedPayload: If a stream line is not JSON
            httpx.HTTPError: On HTTP or exhausted transport failures
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.backoff_min_seconds,
                max=self.config.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                chunks = await self._stream(prompt)

        if not "".join(chunks):
            raise EmptyExtractionResult("Returned no text from the extraction service")
        return chunks

    async def _stream(self, prompt: str) -> list[str]:
        if self._client is not None:
            return await self._collect(self._client, prompt)
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            return await self._collect(client, prompt)

    async def _collect(self, client: httpx.AsyncClient, prompt: str) -> list[str]:
        body = {"model": self.config.version, "prompt": prompt, "stream": True}
        chunks: list[str] = []

        async with client.stream("POST", str(self.config.url), json=body) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except ValueError as e:
                    raise MalformedPayload(f"Extraction stream line is not JSON: {line[:200]}") from e
                if not isinstance(event, dict):
                    raise MalformedPayload(f"Extraction stream line is not an object: {line[:200]}")

                fragment = event.get("response")
                if fragment:
                    chunks.append(fragment)
                if event.get("done"):
                    break

        logger.debug(f"Read {len(chunks)} chunks from the extraction service")
        return chunks
