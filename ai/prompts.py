"""Prompt construction for job-offer extraction."""
from __future__ import annotations

_FIELDS = """\
- external_id (string, required): identifier of the offer in the source system
- title (string, required)
- source_url (string, required): URL of the original posting
- description (string)
- seniority (string, e.g. "junior", "mid", "senior")
- source_name (string): name of the job board
- published_at, expires_at (ISO 8601 date-time)
- location (object): city, country, region
- company (object): name, website, size, description, location (object: city, country, region)
- salary (object): min_value, max_value (numbers), currency (ISO code), period ("hour", "month", "year"), salary_type ("gross" or "net")
- industry (string)
- profession (string)
- benefits, requirements, workModes, contractTypes, keywords (arrays of strings)"""


def build_job_offer_prompt(message: str, wrapper_key: str = "json") -> str:
    """Build the extraction instruction for one job-offer message.

    Args:
        message: Free-text job offer as received from the source
        wrapper_key: Top-level key the answer must be wrapped in

    Returns:
        Instruction string for the extraction service
    """
    return (
        "Extract the job offer below into a single JSON object.\n"
        f'Answer with JSON only, shaped as {{"{wrapper_key}": {{...}}}}.\n'
        "Omit any field that is not stated in the text; never invent values.\n"
        "Fields:\n"
        f"{_FIELDS}\n\n"
        "Job offer:\n"
        f"{message.strip()}\n"
    )
