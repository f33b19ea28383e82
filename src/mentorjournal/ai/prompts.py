"""Prompt construction for guided journaling turns."""

from typing import Iterable, List

from ..models import FieldType, JournalTemplate, Message, TemplateField
from ..settings import Settings, get_settings


def _type_hint(field: TemplateField) -> str | None:
    validation = field.validation or {}
    if field.type is FieldType.SCALE:
        return f"Scale from {validation.get('min', 0)} to {validation.get('max', 10)}"
    if field.type is FieldType.MULTIPLE_CHOICE:
        options = validation.get("options")
        if options:
            return f"Multiple choice ({', '.join(str(o) for o in options)})"
        return None
    if field.type is FieldType.DURATION:
        return 'Duration (e.g., "15 minutes", "1 hour")'
    if field.type is FieldType.DATETIME:
        return "Date/Time"
    if field.type is FieldType.LINKED_GOAL:
        return "Link to a goal"
    if field.type is FieldType.LINKED_HABIT:
        return "Link to a habit"
    return None


def format_conversation(conversation: Iterable[Message]) -> str:
    """Render messages as ``sender: content`` lines."""
    return "\n".join(f"{m.sender.value}: {m.content}" for m in conversation)


class PromptGenerator:
    """Builds system prompts and per-turn prompts from a template and step."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def system_prompt(self, template: JournalTemplate, step: int, compact: bool = False) -> str:
        if compact:
            return self._compact_system_prompt(template, step)
        return self._full_system_prompt(template, step)

    def _compact_system_prompt(self, template: JournalTemplate, step: int) -> str:
        # Only the current question; small models lose track of the full structure.
        lines: List[str] = [f"You are a warm journaling guide for {template.name}.", ""]
        if step < len(template.fields):
            field = template.fields[step]
            lines += ["Next question:", f'"{field.prompt}"']
            if field.ai_coaching:
                lines += ["", f"Tip: {field.ai_coaching}"]
        lines += [
            "",
            "IMPORTANT:",
            "1. Acknowledge the user's answer (don't repeat the question they just answered)",
            "2. Ask the NEXT question",
            "Keep it brief - 2-3 sentences total.",
        ]
        return "\n".join(lines) + "\n"

    def _full_system_prompt(self, template: JournalTemplate, step: int) -> str:
        lines: List[str] = [template.ai_guidance or self._settings.default_guide_prompt, ""]
        lines += [
            f"Template: {template.name}",
            f"Description: {template.description}",
            "",
            "Structure:",
        ]

        for index, field in enumerate(template.fields):
            heading = f"{index + 1}. {field.label}"
            if field.required:
                heading += " (required)"
            if index == step:
                heading += " <- CURRENT STEP"
            lines.append(heading)
            lines.append(f"   Prompt: {field.prompt}")
            if field.help_text:
                lines.append(f"   Help: {field.help_text}")
            if field.ai_coaching:
                lines.append(f"   Coaching: {field.ai_coaching}")
            hint = _type_hint(field)
            if hint:
                lines.append(f"   Type: {hint}")
            lines.append("")

        lines += [
            "Guidelines:",
            "- Ask ONE question at a time",
            "- Be supportive and encouraging",
        ]
        if template.allow_skip_fields:
            lines.append("- If the user skips a field, move on gracefully")
        lines.append("- After the last field, provide a brief summary")
        if template.completion_message:
            lines.append(f"- Completion message: {template.completion_message}")
        lines.append("")

        if template.show_progress_indicator:
            shown = min(step + 1, len(template.fields))
            lines.append(f"Progress: Step {shown} of {len(template.fields)}")

        return "\n".join(lines) + "\n"

    def opening_prompt(self, template: JournalTemplate, compact: bool = False) -> str:
        """Prompt for the mentor's first message (step 0)."""
        return f"{self.system_prompt(template, 0, compact)}\n{self._settings.opening_instruction}"

    def turn_prompt(
        self,
        template: JournalTemplate,
        next_step: int,
        conversation: Iterable[Message],
        compact: bool = False,
    ) -> str:
        """Prompt after a user answer: transition, or closing summary at the end."""
        if next_step >= len(template.fields):
            instruction = self._settings.closing_instruction
        else:
            instruction = self._settings.transition_instruction
        return (
            f"{self.system_prompt(template, next_step, compact)}\n"
            f"{instruction}\n\n"
            f"Conversation so far:\n{format_conversation(conversation)}"
        )

    def extraction_prompt(self, template: JournalTemplate, conversation: Iterable[Message]) -> str:
        lines: List[str] = [
            "Extract structured data from this journaling conversation.",
            "",
            f"Template: {template.name}",
            "Fields to extract:",
        ]
        lines += [f"- {f.label}: {f.type.display_name}" for f in template.fields]
        lines += ["", "Conversation:", format_conversation(conversation), ""]
        lines.append(self._settings.extraction_instruction)
        return "\n".join(lines)
