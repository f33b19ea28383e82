"""Built-in journal templates and the template registry."""

from typing import Dict, List

from .errors import TemplateNotFoundError
from .models import FieldType, JournalTemplate, TemplateCategory, TemplateField

F = FieldType


def _cbt_thought_record() -> JournalTemplate:
    return JournalTemplate(
        id="cbt_thought_record",
        name="CBT Thought Record",
        description="Cognitive Behavioral Therapy technique for examining and reframing negative thoughts",
        emoji="🧠",
        category=TemplateCategory.THERAPY,
        is_system_defined=True,
        fields=(
            TemplateField(
                id="automatic_thought",
                label="Automatic Thought",
                prompt="What thought has been bothering you or going through your mind?",
                type=F.LONG_TEXT,
                help_text="The immediate, often negative thought that popped up",
                ai_coaching="Help the user identify the exact thought, not just the feeling",
            ),
            TemplateField(
                id="situation",
                label="Situation",
                prompt="What situation triggered this thought? What happened?",
                help_text="Just the facts - who, what, when, where",
            ),
            TemplateField(
                id="emotion",
                label="Emotion",
                prompt="What emotion did this thought cause you to feel?",
                help_text="Examples: anxious, sad, angry, frustrated",
            ),
            TemplateField(
                id="intensity",
                label="Intensity",
                prompt="How intense was this emotion on a scale of 0-10?",
                type=F.SCALE,
                validation={"min": 0, "max": 10},
            ),
            TemplateField(
                id="evidence_for",
                label="Evidence For",
                prompt="What evidence supports this thought?",
                type=F.LONG_TEXT,
                ai_coaching="Encourage the user to look for concrete facts, not assumptions",
            ),
            TemplateField(
                id="evidence_against",
                label="Evidence Against",
                prompt="What evidence contradicts this thought?",
                type=F.LONG_TEXT,
                ai_coaching="Help the user find alternative perspectives and facts that challenge the thought",
            ),
            TemplateField(
                id="balanced_thought",
                label="Balanced Thought",
                prompt="Based on the evidence, what would be a more balanced thought?",
                type=F.LONG_TEXT,
                ai_coaching="Guide the user to create a realistic, balanced alternative thought",
            ),
        ),
        ai_guidance=(
            "You are a compassionate CBT therapist. Guide the user through this Thought Record "
            "with curiosity. When you notice cognitive distortions (black-and-white thinking, "
            "catastrophizing, etc.), gently point them out. Be warm and non-judgmental."
        ),
        completion_message=(
            "Great work! Examining your thoughts like this is a powerful skill. "
            "Notice how the balanced thought feels compared to the automatic thought."
        ),
    )


def _gratitude_journal() -> JournalTemplate:
    fields: List[TemplateField] = []
    for n, ordinal in enumerate(("first", "second", "third"), start=1):
        fields.append(
            TemplateField(
                id=f"gratitude_{n}",
                label=f"Gratitude {n}",
                prompt=f"What's the {ordinal} thing you're grateful for{' today' if n == 1 else ''}?",
            )
        )
        fields.append(
            TemplateField(
                id=f"why_{n}",
                label=f"Why it matters {n}",
                prompt="Why does this matter to you?",
                type=F.LONG_TEXT,
                ai_coaching='Encourage the user to dig deeper into the "why"' if n == 1 else None,
            )
        )
    return JournalTemplate(
        id="gratitude_journal",
        name="Gratitude Journal",
        description="Daily practice of acknowledging things you're grateful for",
        emoji="🙏",
        category=TemplateCategory.WELLNESS,
        is_system_defined=True,
        fields=tuple(fields),
        ai_guidance=(
            "You are a warm, encouraging guide for gratitude practice. Help the user appreciate "
            "both big and small things. If they struggle to find things to be grateful for, "
            "gently suggest looking at simple pleasures."
        ),
        completion_message="Beautiful reflections! Regular gratitude practice can shift your perspective over time.",
        show_progress_indicator=False,
    )


def _meditation_log() -> JournalTemplate:
    return JournalTemplate(
        id="meditation_log",
        name="Meditation Log",
        description="Track your meditation practice and insights",
        emoji="🧘",
        category=TemplateCategory.WELLNESS,
        is_system_defined=True,
        fields=(
            TemplateField(
                id="duration",
                label="Duration",
                prompt="How long did you meditate?",
                type=F.DURATION,
                help_text='E.g., "15 minutes", "30 minutes"',
            ),
            TemplateField(
                id="technique",
                label="Technique",
                prompt="What meditation technique did you use?",
                type=F.MULTIPLE_CHOICE,
                validation={
                    "options": [
                        "Breath Focus",
                        "Body Scan",
                        "Loving-Kindness",
                        "Mantra",
                        "Mindfulness",
                        "Other",
                    ]
                },
            ),
            TemplateField(
                id="focus_quality",
                label="Focus Quality",
                prompt="How would you rate your focus quality? (1-5)",
                type=F.SCALE,
                validation={"min": 1, "max": 5},
                help_text="1 = Very distracted, 5 = Very focused",
            ),
            TemplateField(
                id="insights",
                label="Insights",
                prompt="Did you have any insights or observations during the practice?",
                type=F.LONG_TEXT,
                required=False,
            ),
            TemplateField(
                id="challenges",
                label="Challenges",
                prompt="What challenges did you experience, if any?",
                type=F.LONG_TEXT,
                required=False,
                ai_coaching="Normalize challenges in meditation - they're part of the practice",
            ),
        ),
        ai_guidance=(
            "You are a supportive meditation teacher. Help the user reflect on their practice "
            "without judgment. Start by asking about their session in a neutral, open way. "
            "IF they mention challenges with focus or a wandering mind, THEN gently normalize it "
            "as a natural part of practice. Don't assume they struggled - they may have had a great session!"
        ),
        completion_message="Thank you for taking time to reflect on your practice!",
        allow_skip_fields=True,
    )


def _goal_progress() -> JournalTemplate:
    return JournalTemplate(
        id="goal_progress",
        name="Goal Progress Check-in",
        description="Reflect on progress toward a specific goal",
        emoji="🎯",
        category=TemplateCategory.PRODUCTIVITY,
        is_system_defined=True,
        fields=(
            TemplateField(
                id="goal",
                label="Goal",
                prompt="Which goal are you checking in on?",
                type=F.LINKED_GOAL,
                help_text="Select from your active goals",
            ),
            TemplateField(
                id="progress",
                label="Today's Progress",
                prompt="What progress did you make today?",
                type=F.LONG_TEXT,
            ),
            TemplateField(
                id="obstacles",
                label="Obstacles",
                prompt="What obstacles or challenges did you face?",
                type=F.LONG_TEXT,
                required=False,
            ),
            TemplateField(
                id="next_actions",
                label="Next Actions",
                prompt="What are your next steps?",
                type=F.LONG_TEXT,
                ai_coaching="Help the user identify concrete, actionable next steps",
            ),
            TemplateField(
                id="motivation",
                label="Motivation Level",
                prompt="How motivated do you feel about this goal? (1-10)",
                type=F.SCALE,
                validation={"min": 1, "max": 10},
                required=False,
            ),
        ),
        ai_guidance=(
            "You are an accountability coach. Celebrate progress, help troubleshoot obstacles, "
            "and keep the user focused on next actions."
        ),
        completion_message="Great check-in! Consistent reflection like this keeps you moving forward.",
        allow_skip_fields=True,
    )


def _energy_tracking() -> JournalTemplate:
    def energy(field_id: str, label: str, when: str) -> TemplateField:
        return TemplateField(
            id=field_id,
            label=label,
            prompt=f"How was your energy {when}? (1-10)",
            type=F.SCALE,
            validation={"min": 1, "max": 10},
        )

    return JournalTemplate(
        id="energy_tracking",
        name="Energy Tracking",
        description="Track your energy levels throughout the day",
        emoji="⚡",
        category=TemplateCategory.WELLNESS,
        is_system_defined=True,
        fields=(
            energy("morning_energy", "Morning Energy", "this morning"),
            energy("afternoon_energy", "Afternoon Energy", "in the afternoon"),
            TemplateField(
                id="evening_energy",
                label="Evening Energy",
                prompt="How is your energy right now (evening)? (1-10)",
                type=F.SCALE,
                validation={"min": 1, "max": 10},
            ),
            TemplateField(
                id="drains",
                label="Energy Drains",
                prompt="What drained your energy today?",
                type=F.LONG_TEXT,
                ai_coaching="Help the user identify patterns - activities, people, or situations",
            ),
            TemplateField(
                id="boosters",
                label="Energy Boosters",
                prompt="What boosted your energy today?",
                type=F.LONG_TEXT,
                ai_coaching="Encourage the user to do more of what energizes them",
            ),
        ),
        ai_guidance=(
            "You are a wellness coach focused on energy management. Help the user identify "
            "patterns and make connections between activities and energy."
        ),
        completion_message="Understanding your energy patterns can help you design better days!",
    )


def _dream_journal() -> JournalTemplate:
    return JournalTemplate(
        id="dream_journal",
        name="Dream Journal",
        description="Record and reflect on your dreams",
        emoji="🌙",
        category=TemplateCategory.CREATIVE,
        is_system_defined=True,
        fields=(
            TemplateField(
                id="dream_content",
                label="Dream Content",
                prompt="Describe your dream in as much detail as you remember.",
                type=F.LONG_TEXT,
                ai_coaching="Encourage vivid, sensory details",
            ),
            TemplateField(
                id="emotions",
                label="Emotions",
                prompt="What emotions did you experience in the dream?",
            ),
            TemplateField(
                id="symbols",
                label="Notable Symbols",
                prompt="Were there any notable symbols, people, or objects?",
                required=False,
            ),
            TemplateField(
                id="meaning",
                label="Personal Meaning",
                prompt="What do you think this dream might mean for you?",
                type=F.LONG_TEXT,
                required=False,
                ai_coaching="Help the user explore connections to their waking life without over-interpreting",
            ),
        ),
        ai_guidance=(
            "You are a curious and open-minded dream journal guide. Help the user recall details "
            "and explore possible meanings, but emphasize that they are the expert on their own dreams."
        ),
        completion_message="Thanks for recording your dream! Regular dream journaling can improve dream recall.",
        show_progress_indicator=False,
        allow_skip_fields=True,
    )


def _exercise_log() -> JournalTemplate:
    return JournalTemplate(
        id="exercise_log",
        name="Exercise Log",
        description="Track workouts and physical activity",
        emoji="💪",
        category=TemplateCategory.WELLNESS,
        is_system_defined=True,
        fields=(
            TemplateField(
                id="exercise_type",
                label="Exercise Type",
                prompt="What type of exercise did you do today?",
                help_text="e.g., Running, Yoga, Strength training, Swimming, etc.",
                ai_coaching="Be enthusiastic and supportive about any form of movement",
            ),
            TemplateField(
                id="duration",
                label="Duration",
                prompt="How long did you exercise?",
                type=F.DURATION,
                help_text="e.g., 30 minutes, 1 hour",
            ),
            TemplateField(
                id="intensity",
                label="Intensity",
                prompt="How intense was your workout?",
                type=F.SCALE,
                validation={"min": 1, "max": 10},
                help_text="1 = Very light, 10 = Maximum effort",
            ),
            TemplateField(
                id="highlights",
                label="Highlights",
                prompt="What were the highlights or achievements?",
                required=False,
                help_text="New personal record, felt strong, enjoyed the session, etc.",
                ai_coaching="Celebrate wins big and small",
            ),
            TemplateField(
                id="challenges",
                label="Challenges",
                prompt="Were there any challenges or struggles?",
                required=False,
                ai_coaching="Normalize challenges as part of the journey",
            ),
            TemplateField(
                id="how_body_feels",
                label="How Your Body Feels",
                prompt="How does your body feel after this workout?",
                help_text="Energized, tired, sore, strong, etc.",
            ),
            TemplateField(
                id="linked_goal",
                label="Related Goal",
                prompt="Is this workout related to any of your goals?",
                type=F.LINKED_GOAL,
                required=False,
            ),
        ),
        ai_guidance=(
            "You are an enthusiastic and supportive fitness coach. Celebrate all forms of movement "
            "and progress. Be encouraging about challenges and help the user track their fitness journey."
        ),
        completion_message="Great job logging your workout! Consistency is key to building healthy habits.",
        allow_skip_fields=True,
    )


def _food_log() -> JournalTemplate:
    return JournalTemplate(
        id="food_log",
        name="Food Log",
        description="Track meals and eating patterns mindfully",
        emoji="🍎",
        category=TemplateCategory.WELLNESS,
        is_system_defined=True,
        fields=(
            TemplateField(
                id="meal_type",
                label="Meal Type",
                prompt="What meal is this?",
                type=F.MULTIPLE_CHOICE,
                validation={"options": ["Breakfast", "Lunch", "Dinner", "Snack", "Other"]},
            ),
            TemplateField(
                id="what_you_ate",
                label="What You Ate",
                prompt="What did you eat and drink?",
                type=F.LONG_TEXT,
                help_text="Be as detailed as you like",
                ai_coaching="Be non-judgmental and curious",
            ),
            TemplateField(
                id="hunger_before",
                label="Hunger Before Eating",
                prompt="How hungry were you before eating?",
                type=F.SCALE,
                validation={"min": 1, "max": 10},
                help_text="1 = Not hungry at all, 10 = Extremely hungry",
            ),
            TemplateField(
                id="fullness_after",
                label="Fullness After Eating",
                prompt="How full do you feel after eating?",
                type=F.SCALE,
                validation={"min": 1, "max": 10},
                help_text="1 = Still hungry, 10 = Uncomfortably full",
            ),
            TemplateField(
                id="how_you_felt",
                label="How You Felt",
                prompt="How did you feel while eating and after?",
                required=False,
                help_text="Rushed, relaxed, satisfied, guilty, energized, etc.",
                ai_coaching="Help them notice patterns without judgment",
            ),
            TemplateField(
                id="eating_context",
                label="Eating Context",
                prompt="Where and with whom did you eat?",
                required=False,
                help_text="Alone at desk, with family at table, standing in kitchen, etc.",
            ),
            TemplateField(
                id="intentions_or_goals",
                label="Intentions or Goals",
                prompt="Are you working towards any nutrition or wellness goals?",
                required=False,
                ai_coaching="Support their goals without being prescriptive",
            ),
            TemplateField(
                id="linked_goal",
                label="Related Goal",
                prompt="Is this related to any of your goals?",
                type=F.LINKED_GOAL,
                required=False,
            ),
        ),
        ai_guidance=(
            "You are a compassionate and non-judgmental wellness coach. Help the user track their "
            "eating patterns mindfully without shame or strict rules. Focus on awareness, patterns, "
            "and how food makes them feel rather than rigid nutrition advice."
        ),
        completion_message="Thank you for logging this meal! Mindful eating is about awareness, not perfection.",
        allow_skip_fields=True,
    )


def default_templates() -> List[JournalTemplate]:
    return [
        _cbt_thought_record(),
        _gratitude_journal(),
        _meditation_log(),
        _goal_progress(),
        _energy_tracking(),
        _dream_journal(),
        _exercise_log(),
        _food_log(),
    ]


class TemplateRegistry:
    """Lookup of journal templates by id; seeded with the built-in set."""

    def __init__(self, templates: List[JournalTemplate] | None = None) -> None:
        self._templates: Dict[str, JournalTemplate] = {}
        for template in default_templates() if templates is None else templates:
            self.register(template)

    def register(self, template: JournalTemplate) -> None:
        """Add or replace a template. System templates cannot be replaced."""
        existing = self._templates.get(template.id)
        if existing is not None and existing.is_system_defined:
            raise ValueError(f"System template cannot be replaced: {template.id}")
        if not template.fields:
            raise ValueError(f"Template {template.id} has no fields")
        self._templates[template.id] = template

    def get(self, template_id: str) -> JournalTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFoundError(template_id) from None

    def list(self) -> List[JournalTemplate]:
        return list(self._templates.values())
