"""Parsing helpers for LLM replies."""

import json
import logging

logger = logging.getLogger(__name__)


def parse_llm_json_response(response: str, context: str = "LLM response") -> dict | list:
    """Extract and parse JSON from an LLM response.

    Handles bare JSON and JSON wrapped in a markdown code fence
    (```json ... ```). Returns an empty dict when parsing fails.
    """
    text = response.strip()

    if text.startswith("```"):
        # Drop the opening fence and its optional language tag
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.error("Failed to parse %s as JSON", context)
        logger.debug("Response was: %s", text[:500])
        return {}
