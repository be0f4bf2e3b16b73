"""Personalised routine generation with template fallbacks."""

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from yogaageproof.domain.ai import RoutineOption, SkinProfile
from yogaageproof.domain.errors import AIResponseParseError, AppError
from yogaageproof.services.ai_client import AIClient
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.ai_parsing import extract_json

ROUTINE_GENERATION_TIMEOUT = 30.0

ROUTINE_SYSTEM_PROMPT = """You are an expert face yoga instructor and skincare \
specialist. Create personalized skincare and face yoga routines based on a \
user's skin profile.

Generate 3-5 unique routine options, each with a different focus (anti-aging, \
hydration, firming, brightening). Each routine combines face yoga exercises \
with product application steps in a logical sequence.

1. FACE YOGA EXERCISES: 3-5 per routine, clear step-by-step instructions, \
30-90 seconds each, with tips for form and breathing.
2. PRODUCT APPLICATION STEPS: 3-5 per routine, with the product category, \
application technique and recommended amount, 30-60 seconds each.
3. ROUTINE STRUCTURE: 10-20 minutes total, ordered cleanse, tone, face yoga, \
serums/treatments, moisturize.
4. OUTPUT FORMAT: a JSON array of routine options. Each option has title, \
description, focusArea, estimatedDurationMinutes, benefits (3-5 strings) and \
steps. Each step has stepNumber, stepType ("face_yoga" or \
"product_application"), title, instructions, tips, durationSeconds, and for \
product steps productCategory (cleanser, toner, serum, moisturizer, eye_cream, \
treatment, sunscreen, mask, oil) and productAmount."""

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutinePreferences:
    """Constraints for a single detailed routine."""

    max_duration_minutes: int | None = None
    include_product_types: tuple[str, ...] = ()
    exclude_product_types: tuple[str, ...] = ()


@dataclass
class RoutineGenerator:
    """Generates routine options through the AI gateway."""

    gateway: AIRequestGateway
    client: AIClient
    timeout: float = ROUTINE_GENERATION_TIMEOUT

    async def generate_options(
        self, profile: SkinProfile, goals: list[str] | None = None
    ) -> list[RoutineOption]:
        """Return 3-5 routine options, or the template routines on failure."""
        prompt = build_options_prompt(profile, goals)
        try:
            text = await self.gateway.execute(
                lambda: self.client.create_message(
                    messages=[{"role": "user", "content": prompt}],
                    system=ROUTINE_SYSTEM_PROMPT,
                    max_tokens=4096,
                    temperature=0.8,
                ),
                timeout=self.timeout,
                operation="Routine generation",
            )
            options = parse_routine_options(text)
        except AppError as exc:
            _logger.warning("Routine generation failed, using templates: %s", exc)
            return fallback_routines()
        if not options:
            _logger.warning("Routine generation returned no options, using templates")
            return fallback_routines()
        return options

    async def generate_detailed_routine(
        self,
        profile: SkinProfile,
        focus_area: str,
        preferences: RoutinePreferences | None = None,
    ) -> RoutineOption:
        """Generate one detailed routine for a focus area."""
        system = (
            "You are an expert face yoga instructor and skincare specialist. "
            f'Create a single detailed routine focused on "{focus_area}" based on '
            "the user's skin profile. Include detailed technique descriptions, "
            "breathing cues for face yoga, application methods for products and "
            "tips for maximizing effectiveness. Return a single routine as a JSON "
            "object with title, description, focusArea, estimatedDurationMinutes, "
            "benefits and steps."
        )
        prompt = build_detailed_prompt(profile, focus_area, preferences)
        text = await self.gateway.execute(
            lambda: self.client.create_message(
                messages=[{"role": "user", "content": prompt}],
                system=system,
                max_tokens=2048,
                temperature=0.7,
            ),
            timeout=self.timeout,
            operation="Detailed routine generation",
        )
        options = parse_routine_options(text)
        if not options:
            raise AIResponseParseError("AI response did not contain a routine")
        return options[0]


def build_options_prompt(profile: SkinProfile, goals: list[str] | None) -> str:
    """Build the user prompt with skin profile context."""
    concerns = "\n".join(
        f"- {concern.type} ({concern.severity}) in areas: {', '.join(concern.areas)}"
        for concern in profile.concerns
    )
    prompt = (
        "Please create personalized routine options for a user with the "
        "following skin profile:\n\n"
        f"SKIN TYPE: {profile.skin_type}\n\n"
        f"DETECTED CONCERNS:\n{concerns or '- No specific concerns detected'}\n\n"
        f"ANALYSIS CONFIDENCE: {round(profile.analysis_confidence * 100)}%"
    )
    if goals:
        goal_lines = "\n".join(f"- {goal.replace('_', ' ')}" for goal in goals)
        prompt += f"\n\nUSER GOALS:\n{goal_lines}"
    prompt += (
        "\n\nPlease generate 3-5 distinct routine options tailored to this "
        "profile. Each routine should have a different focus area while "
        "addressing the user's skin type and concerns. Return only valid JSON."
    )
    return prompt


def build_detailed_prompt(
    profile: SkinProfile, focus_area: str, preferences: RoutinePreferences | None
) -> str:
    concern_types = ", ".join(concern.type for concern in profile.concerns)
    lines = [
        f"Create a detailed {focus_area} routine for:",
        "",
        f"SKIN TYPE: {profile.skin_type}",
        f"CONCERNS: {concern_types or 'None specific'}",
    ]
    if preferences and preferences.max_duration_minutes:
        lines.append(f"MAX DURATION: {preferences.max_duration_minutes} minutes")
    if preferences and preferences.include_product_types:
        lines.append(f"MUST INCLUDE: {', '.join(preferences.include_product_types)}")
    if preferences and preferences.exclude_product_types:
        lines.append(f"EXCLUDE: {', '.join(preferences.exclude_product_types)}")
    return "\n".join(lines)


def parse_routine_options(text: str) -> list[RoutineOption]:
    """Parse a response holding a list of routines, a wrapper, or one routine."""
    payload = extract_json(text)
    if isinstance(payload, dict):
        wrapped = payload.get("routines") or payload.get("options")
        raw_options = wrapped if isinstance(wrapped, list) else [payload]
    elif isinstance(payload, list):
        raw_options = payload
    else:
        raise AIResponseParseError("Unexpected response format")

    options: list[RoutineOption] = []
    for index, raw in enumerate(raw_options):
        if not isinstance(raw, dict):
            continue
        try:
            options.append(RoutineOption.model_validate(_with_defaults(raw, index)))
        except PydanticValidationError as exc:
            raise AIResponseParseError(
                "Failed to parse AI response. Please try again."
            ) from exc
    return options


def _with_defaults(raw: dict[str, object], index: int) -> dict[str, object]:
    """Fill positional titles and step numbers the model left out."""
    data = dict(raw)
    if not data.get("title"):
        data["title"] = f"Routine {index + 1}"
    steps = data.get("steps")
    if isinstance(steps, list):
        filled: list[object] = []
        for step_index, step in enumerate(steps):
            if isinstance(step, dict):
                step = dict(step)
                if not step.get("stepNumber") and not step.get("step_number"):
                    step["step_number"] = step_index + 1
                if not step.get("title"):
                    step["title"] = f"Step {step_index + 1}"
            filled.append(step)
        data["steps"] = filled
    return data


def fallback_routines() -> list[RoutineOption]:
    """Return the pre-built template routines used when AI is unavailable."""
    return [RoutineOption.model_validate(template) for template in _TEMPLATES]


def _product_step(  # noqa: PLR0913
    number: int,
    title: str,
    instructions: str,
    tips: str,
    duration: int,
    category: str,
    amount: str,
) -> dict[str, object]:
    return {
        "step_number": number,
        "step_type": "product_application",
        "title": title,
        "instructions": instructions,
        "tips": tips,
        "duration_seconds": duration,
        "product_category": category,
        "product_amount": amount,
    }


def _yoga_step(
    number: int, title: str, instructions: str, tips: str, duration: int
) -> dict[str, object]:
    return {
        "step_number": number,
        "step_type": "face_yoga",
        "title": title,
        "instructions": instructions,
        "tips": tips,
        "duration_seconds": duration,
    }


_TEMPLATES: list[dict[str, object]] = [
    {
        "title": "Morning Glow Routine",
        "description": (
            "Start your day with a refreshing skincare routine combined with "
            "energizing face yoga."
        ),
        "focus_area": "Brightening",
        "estimated_duration_minutes": 12,
        "benefits": [
            "Wake up tired skin",
            "Reduce puffiness",
            "Boost circulation",
            "Prep skin for the day",
        ],
        "steps": [
            _product_step(
                1,
                "Gentle Cleanse",
                "Apply cleanser to damp face and massage in circular motions for "
                "30 seconds. Rinse with lukewarm water.",
                "Use gentle pressure to avoid irritation",
                60,
                "cleanser",
                "pea-sized",
            ),
            _product_step(
                2,
                "Toner Application",
                "Apply toner to a cotton pad and gently sweep across face, "
                "avoiding eye area.",
                "Pat remaining product into skin for better absorption",
                30,
                "toner",
                "2-3 drops",
            ),
            _yoga_step(
                3,
                "Cheek Lift",
                "Place fingers on cheekbones. Smile wide while pressing down "
                "gently. Hold for 5 seconds, release. Repeat 10 times.",
                "Keep your eyes relaxed during this exercise",
                60,
            ),
            _yoga_step(
                4,
                "Forehead Smoother",
                "Place both palms on forehead. Apply gentle pressure while raising "
                "eyebrows. Hold for 5 seconds. Repeat 8 times.",
                "Breathe deeply throughout",
                50,
            ),
            _product_step(
                5,
                "Serum Application",
                "Apply serum to fingertips and press into skin using gentle "
                "patting motions.",
                "Wait 30 seconds before next step for absorption",
                45,
                "serum",
                "2-3 drops",
            ),
            _product_step(
                6,
                "Moisturize",
                "Apply moisturizer in upward strokes, starting from chin and "
                "moving to forehead.",
                "Don't forget your neck!",
                45,
                "moisturizer",
                "pea-sized",
            ),
        ],
    },
    {
        "title": "Evening Restore Routine",
        "description": (
            "Wind down with a relaxing evening routine to repair and rejuvenate "
            "while you sleep."
        ),
        "focus_area": "Anti-Aging",
        "estimated_duration_minutes": 15,
        "benefits": [
            "Deep cleansing",
            "Relaxation",
            "Skin repair support",
            "Fine line reduction",
        ],
        "steps": [
            _product_step(
                1,
                "Double Cleanse",
                "First, massage oil cleanser onto dry face to remove makeup. "
                "Rinse. Follow with gel cleanser on damp skin.",
                "Take your time with the massage for better cleansing",
                90,
                "cleanser",
                "2 pumps each",
            ),
            _yoga_step(
                2,
                "Jaw Release",
                "Open mouth wide, then slowly close while sliding lower jaw "
                "forward. Hold for 5 seconds. Repeat 8 times.",
                "This helps release tension from the day",
                60,
            ),
            _yoga_step(
                3,
                "Eye Circle Massage",
                "Using ring fingers, gently massage in circles around eyes "
                "starting from inner corners. Do 10 circles in each direction.",
                "Very light pressure only",
                60,
            ),
            _product_step(
                4,
                "Treatment Serum",
                "Apply treatment serum focusing on areas of concern. Pat gently "
                "to absorb.",
                "Allow time to absorb before next step",
                60,
                "treatment",
                "3-4 drops",
            ),
            _product_step(
                5,
                "Eye Cream",
                "Dot eye cream around orbital bone using ring finger. Gently tap "
                "to absorb.",
                "Never pull or tug the delicate eye area",
                45,
                "eye_cream",
                "rice grain sized",
            ),
            _yoga_step(
                6,
                "Face Relaxation",
                "Close eyes, take 5 deep breaths. On each exhale, consciously "
                "relax all facial muscles.",
                "Let go of any tension held in your jaw and forehead",
                60,
            ),
            _product_step(
                7,
                "Night Moisturizer",
                "Apply a generous layer of night cream using upward strokes.",
                "Your skin repairs most while you sleep",
                45,
                "moisturizer",
                "generous amount",
            ),
        ],
    },
    {
        "title": "Quick Refresh",
        "description": "A short but effective routine when you need a quick skin boost.",
        "focus_area": "Hydration",
        "estimated_duration_minutes": 8,
        "benefits": [
            "Quick hydration boost",
            "Circulation increase",
            "Instant refreshment",
        ],
        "steps": [
            _product_step(
                1,
                "Toner Mist",
                "Spritz toner mist across face, keeping eyes closed.",
                "Hold bottle 6-8 inches from face",
                20,
                "toner",
                "3-4 sprays",
            ),
            _yoga_step(
                2,
                "Lion Face",
                "Inhale deeply. On exhale, open mouth wide, stick out tongue, and "
                "widen eyes. Hold 5 seconds. Repeat 5 times.",
                "Great for releasing tension",
                45,
            ),
            _yoga_step(
                3,
                "Fish Face",
                "Suck in cheeks to make a fish face. Try to smile in this "
                "position. Hold 10 seconds. Repeat 5 times.",
                "Tones cheek muscles",
                60,
            ),
            _product_step(
                4,
                "Hydrating Serum",
                "Apply hydrating serum and press into slightly damp skin.",
                "Damp skin absorbs better",
                30,
                "serum",
                "2 drops",
            ),
            _product_step(
                5,
                "Light Moisturizer",
                "Apply light moisturizer to seal in hydration.",
                "Use upward strokes",
                30,
                "moisturizer",
                "small amount",
            ),
        ],
    },
]
