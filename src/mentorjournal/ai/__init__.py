"""AI collaborators for the journaling flow: text generation, prompts and extraction."""

from .client import AIService
from .extractor import StructuredDataExtractor, parse_json_object
from .prompts import PromptGenerator, format_conversation

__all__ = [
    "AIService",
    "PromptGenerator",
    "StructuredDataExtractor",
    "format_conversation",
    "parse_json_object",
]
