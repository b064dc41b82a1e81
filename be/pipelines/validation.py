"""Record validation: raw extraction text in, typed ``JobOfferRecord`` out.

Pure functions, no side effects.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from be.errors import MalformedPayload, MissingRequiredField
from be.schemas import JobOfferRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("external_id", "title", "source_url")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def unwrap_record(payload: str, wrapper_key: str = "json") -> dict[str, Any]:
    """Parse ``payload`` and return the object stored under ``wrapper_key``.

    Raises:
        MalformedPayload: If the text is not JSON or the wrapper/record shape is absent
    """
    try:
        document = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedPayload(f"Response is not valid JSON: {e}") from e

    if not isinstance(document, dict) or wrapper_key not in document:
        raise MalformedPayload(f"Response has no top-level '{wrapper_key}' object")

    record = document[wrapper_key]
    if not isinstance(record, dict):
        raise MalformedPayload(f"'{wrapper_key}' is not an object")
    return record


def parse_record(payload: str, wrapper_key: str = "json") -> JobOfferRecord:
    """Parse and validate one extracted job offer.

    Args:
        payload: Raw response text from the extraction service
        wrapper_key: Top-level key wrapping the record

    Returns:
        Validated JobOfferRecord

    Raises:
        MalformedPayload: If parsing fails or a field has the wrong shape
        MissingRequiredField: If external_id, title or source_url is absent/empty
    """
    raw = unwrap_record(payload, wrapper_key)

    for field_name in REQUIRED_FIELDS:
        if _is_blank(raw.get(field_name)):
            raise MissingRequiredField(field_name)

    try:
        record = JobOfferRecord.model_validate(raw)
    except ValidationError as e:
        raise MalformedPayload(f"Record does not match the job offer shape: {e}") from e

    logger.debug(f"Validated record {record.external_id}")
    return record
