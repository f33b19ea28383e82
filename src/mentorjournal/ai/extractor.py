import json
import logging
import re
from typing import Any, Dict, Sequence

from ..errors import AIServiceError
from ..models import JournalTemplate, Message
from .client import AIService
from .prompts import PromptGenerator

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_object(content: str) -> Dict[str, Any] | None:
    """Return the first ``{...}`` block of content as a dict, or None."""
    match = _JSON_OBJECT.search(content)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class StructuredDataExtractor:
    """Turns a finished conversation into a ``{field label: value}`` map.

    Best effort: any failure is logged and yields an empty dict so that a
    session can always be saved.
    """

    def __init__(self, ai: AIService, prompts: PromptGenerator) -> None:
        self._ai = ai
        self._prompts = prompts

    async def extract(self, template: JournalTemplate, conversation: Sequence[Message]) -> Dict[str, Any]:
        prompt = self._prompts.extraction_prompt(template, conversation)
        try:
            response = await self._ai.generate(prompt)
        except AIServiceError:
            logger.exception(
                "Failed to extract structured data",
                extra={"category": "extraction", "metadata": {"template_id": template.id}},
            )
            return {}

        data = parse_json_object(response)
        if data is None:
            logger.warning("Failed to extract structured data - no JSON found in response")
            return {}
        return data
