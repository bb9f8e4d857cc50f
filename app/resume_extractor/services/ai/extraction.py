"""
Resume extraction against the OpenAI chat completion API.

The model is asked for a strict JSON object. An empty or unparsable reply
is not an error: it becomes an empty object tagged as degenerate so the
caller can still normalize and return a mostly-empty resume.
"""

import asyncio
import json
import logging
from typing import Any

from pydantic import BaseModel, Field

from ...models import ExtractionStatus
from .exceptions import AIServiceError

logger = logging.getLogger(__name__)


class ExtractionOutcome(BaseModel):
    """Tagged result of one extraction call."""

    status: ExtractionStatus = Field(..., description="success or degenerate")
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Parsed JSON object (empty when degenerate)",
    )
    model: str = Field(..., description="Model that produced the reply")
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_degenerate(self) -> bool:
        return self.status == ExtractionStatus.DEGENERATE


def parse_extraction_content(content: str | None, model: str) -> ExtractionOutcome:
    """
    Parse the raw completion text into an ExtractionOutcome.

    Args:
        content: Message content returned by the API (may be None).
        model: Model name, recorded on the outcome.

    Returns:
        SUCCESS with the parsed object, or DEGENERATE with ``{}``.
    """
    if not content or not content.strip():
        logger.warning("Empty extraction response from %s", model)
        return ExtractionOutcome(
            status=ExtractionStatus.DEGENERATE,
            model=model,
            warnings=["The model returned an empty response"],
        )

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(
            "Failed to parse extraction response from %s: %s (%s...)",
            model,
            e,
            content[:200],
        )
        return ExtractionOutcome(
            status=ExtractionStatus.DEGENERATE,
            model=model,
            warnings=[f"The model returned invalid JSON: {e}"],
        )

    if not isinstance(parsed, dict):
        logger.warning(
            "Extraction response from %s is a %s, expected an object",
            model,
            type(parsed).__name__,
        )
        return ExtractionOutcome(
            status=ExtractionStatus.DEGENERATE,
            model=model,
            warnings=["The model returned JSON that is not an object"],
        )

    return ExtractionOutcome(status=ExtractionStatus.SUCCESS, data=parsed, model=model)


async def extract_resume(
    messages: list[dict[str, Any]],
    client: Any,  # OpenAI client
    model: str,
) -> ExtractionOutcome:
    """
    Run one chat completion requesting a JSON object.

    Args:
        messages: Prompt built by ``prompts.build_text_messages`` or
            ``prompts.build_image_messages``.
        client: OpenAI client instance.
        model: Model name to use.

    Returns:
        ExtractionOutcome for the reply.

    Raises:
        AIServiceError: If the API call itself fails.
    """
    logger.info("Requesting resume extraction from %s", model)

    try:
        response = await asyncio.to_thread(
            client.chat.completions.create,
            model=model,
            messages=messages,
            response_format={"type": "json_object"},
        )
    except Exception as e:
        logger.exception("Resume extraction call failed")
        raise AIServiceError(f"Resume extraction failed: {e}") from e

    content = None
    if response.choices:
        content = response.choices[0].message.content

    outcome = parse_extraction_content(content, model)
    logger.info(
        "Extraction finished with status=%s (%d top-level keys)",
        outcome.status.value,
        len(outcome.data),
    )
    return outcome
