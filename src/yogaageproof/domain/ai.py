"""Models for AI-derived results.

Responses from the model are loosely structured, so validators coerce missing
or out-of-range values to safe defaults instead of rejecting the payload.
"""

from datetime import datetime
from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

SkinType = Literal["oily", "dry", "combination", "sensitive", "normal"]
Severity = Literal["mild", "moderate", "severe"]
StepType = Literal["face_yoga", "product_application"]
SuitabilityLabel = Literal["Excellent", "Good", "Fair", "Not Recommended"]
Assessment = Literal["improved", "stable", "worsened", "inconclusive"]
ChangeType = Literal["improvement", "concern", "neutral"]
ChangeCategory = Literal[
    "texture",
    "tone",
    "fine_lines",
    "hydration",
    "redness",
    "pores",
    "dark_spots",
    "overall",
]
ChangeSeverity = Literal["subtle", "noticeable", "significant"]

SKIN_TYPES: tuple[str, ...] = ("oily", "dry", "combination", "sensitive", "normal")
CONCERN_TYPES: tuple[str, ...] = (
    "fine_lines",
    "wrinkles",
    "dark_spots",
    "uneven_tone",
    "acne",
    "large_pores",
    "dryness",
    "oiliness",
    "redness",
    "sensitivity",
    "dullness",
    "texture",
    "dark_circles",
    "sagging",
    "dehydration",
)
MAX_CONCERNS = 5

_CONCERN_EXPLANATIONS = {
    "fine_lines": "Early signs of aging that respond to hydration and targeted care.",
    "wrinkles": "Deeper lines that benefit from retinoids and steady moisturizing.",
    "dark_spots": "Hyperpigmentation that fades with vitamin C and sun protection.",
    "uneven_tone": "Discoloration that improves with exfoliation and brightening.",
    "acne": "Breakouts managed with consistent cleansing and suitable treatments.",
    "large_pores": "Visible pores minimized by exfoliation and niacinamide.",
    "dryness": "Lack of moisture that needs rich, hydrating products.",
    "oiliness": "Excess sebum that suits lightweight, mattifying products.",
    "redness": "Irritation that calms down with soothing ingredients.",
    "sensitivity": "Reactive skin that needs gentle, fragrance-free products.",
    "dullness": "Low radiance that improves with exfoliation and vitamin C.",
    "texture": "Uneven surface that benefits from regular exfoliation.",
    "dark_circles": "Under-eye discoloration addressed with targeted eye care.",
    "sagging": "Loss of firmness that responds to firming care and face yoga.",
    "dehydration": "Low water content that needs hydrating serums.",
}
_DEFAULT_EXPLANATION = "A common skin concern that the right routine can address."


def _clean(value: object) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def string_list(value: object) -> list[str]:
    """Coerce a loosely typed value into a list of strings."""
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def positive_int(value: object, default: int) -> int:
    """Return value as a positive int, or the default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int | float) and value > 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    return default


def clamp(value: object, low: float, high: float, default: float) -> float:
    """Clamp a numeric value into range, falling back to the default."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    return min(max(float(value), low), high)


def normalize_skin_type(value: object) -> str:
    """Map free-form skin type text onto a known skin type."""
    cleaned = _clean(value)
    if cleaned in SKIN_TYPES:
        return cleaned
    if "oil" in cleaned:
        return "oily"
    if "dry" in cleaned:
        return "dry"
    if "combo" in cleaned or "combination" in cleaned:
        return "combination"
    if "sensitive" in cleaned:
        return "sensitive"
    return "normal"


def normalize_concern_type(value: object) -> str:
    """Map free-form concern text onto a known concern type."""
    cleaned = "_".join(_clean(value).split())
    if cleaned in CONCERN_TYPES:
        return cleaned
    if "line" in cleaned or "wrinkle" in cleaned:
        return "fine_lines" if "fine" in cleaned else "wrinkles"
    if "spot" in cleaned or "hyperpigment" in cleaned:
        return "dark_spots"
    if "pore" in cleaned:
        return "large_pores"
    if "acne" in cleaned or "breakout" in cleaned:
        return "acne"
    return cleaned or "texture"


def normalize_severity(value: object) -> str:
    """Map severity synonyms onto mild, moderate or severe."""
    cleaned = _clean(value)
    if cleaned in {"mild", "low", "minor"}:
        return "mild"
    if cleaned in {"severe", "high", "major"}:
        return "severe"
    return "moderate"


def default_explanation(concern_type: str) -> str:
    return _CONCERN_EXPLANATIONS.get(concern_type, _DEFAULT_EXPLANATION)


class SkinConcern(BaseModel):
    """Single detected skin concern."""

    type: str = "texture"
    severity: Severity = "moderate"
    areas: list[str] = Field(default_factory=list)
    explanation: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: object) -> str:
        return normalize_concern_type(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, value: object) -> str:
        return normalize_severity(value)

    @field_validator("areas", mode="before")
    @classmethod
    def _areas(cls, value: object) -> list[str]:
        return [area.strip().lower() for area in string_list(value)]

    @field_validator("explanation", mode="before")
    @classmethod
    def _explanation(cls, value: object) -> str:
        return value if isinstance(value, str) else ""

    @model_validator(mode="after")
    def _fill_explanation(self) -> "SkinConcern":
        if not self.explanation:
            self.explanation = default_explanation(self.type)
        return self


class SkinAnalysis(BaseModel):
    """Skin profile extracted from a face photo."""

    model_config = ConfigDict(populate_by_name=True)

    skin_type: SkinType = Field(
        default="normal", validation_alias=AliasChoices("skinType", "skin_type")
    )
    concerns: list[SkinConcern] = Field(default_factory=list)
    confidence: float = 0.7

    @field_validator("skin_type", mode="before")
    @classmethod
    def _skin_type(cls, value: object) -> str:
        return normalize_skin_type(value)

    @field_validator("concerns", mode="before")
    @classmethod
    def _concerns(cls, value: object) -> list[object]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict | SkinConcern)][
            :MAX_CONCERNS
        ]

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: object) -> float:
        return clamp(value, 0.0, 1.0, 0.7)

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> "SkinAnalysis":
        """Build from a model response, treating a zero confidence as missing."""
        data = dict(payload)
        if not data.get("confidence"):
            data.pop("confidence", None)
        return cls.model_validate(data)


class SkinAnalysisResult(BaseModel):
    """Outcome of a skin analysis call, including failures."""

    success: bool
    analysis: SkinAnalysis
    model_used: str
    analyzed_at: datetime
    processing_time_ms: int
    error: str | None = None


class SkinProfile(BaseModel):
    """Stored skin profile used as prompt context."""

    model_config = ConfigDict(populate_by_name=True)

    skin_type: str = "normal"
    concerns: list[SkinConcern] = Field(default_factory=list)
    analysis_confidence: float = 0.0

    @field_validator("concerns", mode="before")
    @classmethod
    def _concerns(cls, value: object) -> list[object]:
        if isinstance(value, dict):
            value = value.get("concerns")
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict | SkinConcern)]

    @field_validator("analysis_confidence", mode="before")
    @classmethod
    def _confidence(cls, value: object) -> float:
        return clamp(value, 0.0, 1.0, 0.0)


class RoutineStepOption(BaseModel):
    """One step of a generated routine."""

    model_config = ConfigDict(populate_by_name=True)

    step_number: int = Field(
        default=1, validation_alias=AliasChoices("stepNumber", "step_number")
    )
    step_type: StepType = Field(
        default="face_yoga", validation_alias=AliasChoices("stepType", "step_type")
    )
    title: str = ""
    instructions: str = ""
    tips: str | None = None
    duration_seconds: int = Field(
        default=60,
        validation_alias=AliasChoices("durationSeconds", "duration_seconds", "duration"),
    )
    image_url: str | None = Field(
        default=None, validation_alias=AliasChoices("imageUrl", "image_url")
    )
    product_category: str | None = Field(
        default=None,
        validation_alias=AliasChoices("productCategory", "product_category"),
    )
    product_amount: str | None = Field(
        default=None, validation_alias=AliasChoices("productAmount", "product_amount")
    )

    @field_validator("step_number", mode="before")
    @classmethod
    def _step_number(cls, value: object) -> int:
        return positive_int(value, 1)

    @field_validator("step_type", mode="before")
    @classmethod
    def _step_type(cls, value: object) -> str:
        cleaned = _clean(value)
        return cleaned if cleaned == "product_application" else "face_yoga"

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _duration(cls, value: object) -> int:
        return positive_int(value, 60)

    @field_validator("title", "instructions", mode="before")
    @classmethod
    def _text(cls, value: object) -> str:
        return value if isinstance(value, str) else ""


class RoutineOption(BaseModel):
    """Generated routine combining face yoga and product steps."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    description: str = ""
    focus_area: str = Field(
        default="General Skincare",
        validation_alias=AliasChoices("focusArea", "focus_area"),
    )
    estimated_duration_minutes: int = Field(
        default=15,
        validation_alias=AliasChoices(
            "estimatedDurationMinutes", "estimated_duration_minutes", "duration"
        ),
    )
    benefits: list[str] = Field(default_factory=list)
    steps: list[RoutineStepOption] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _text(cls, value: object) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("focus_area", mode="before")
    @classmethod
    def _focus_area(cls, value: object) -> str:
        return value if isinstance(value, str) and value else "General Skincare"

    @field_validator("estimated_duration_minutes", mode="before")
    @classmethod
    def _duration(cls, value: object) -> int:
        return positive_int(value, 15)

    @field_validator("benefits", mode="before")
    @classmethod
    def _benefits(cls, value: object) -> list[str]:
        return string_list(value) if isinstance(value, list) else []

    @field_validator("steps", mode="before")
    @classmethod
    def _steps(cls, value: object) -> list[object]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict | RoutineStepOption)]


class Product(BaseModel):
    """Catalog product analysed against a skin profile."""

    id: str
    name: str
    brand: str = ""
    category: str = ""
    description: str | None = None
    ingredients: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)
    skin_types: list[str] = Field(default_factory=list)
    usage_instructions: str | None = None

    @field_validator("ingredients", "benefits", "skin_types", mode="before")
    @classmethod
    def _lists(cls, value: object) -> list[str]:
        return string_list(value)


def label_for_score(score: int) -> str:
    """Suitability label bands for a 0-100 score."""
    if score >= 80:  # noqa: PLR2004
        return "Excellent"
    if score >= 60:  # noqa: PLR2004
        return "Good"
    if score >= 40:  # noqa: PLR2004
        return "Fair"
    return "Not Recommended"


class ProductInsight(BaseModel):
    """Personalised suitability analysis of a product."""

    model_config = ConfigDict(populate_by_name=True)

    suitability_score: int = Field(
        default=50,
        validation_alias=AliasChoices("suitabilityScore", "suitability_score"),
    )
    suitability_label: SuitabilityLabel = Field(
        default="Fair",
        validation_alias=AliasChoices("suitabilityLabel", "suitability_label"),
    )
    summary: str = "Analysis unavailable."
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    usage_tips: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("usageTips", "usage_tips")
    )
    alternatives: list[str] | None = None

    @field_validator("suitability_score", mode="before")
    @classmethod
    def _score(cls, value: object) -> int:
        return round(clamp(value, 0, 100, 50))

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value: object) -> str:
        return value if isinstance(value, str) and value else "Analysis unavailable."

    @field_validator("pros", "cons", "usage_tips", mode="before")
    @classmethod
    def _lists(cls, value: object) -> list[str]:
        return string_list(value) if isinstance(value, list) else []

    @field_validator("alternatives", mode="before")
    @classmethod
    def _alternatives(cls, value: object) -> list[str] | None:
        return string_list(value) if isinstance(value, list) else None

    @model_validator(mode="before")
    @classmethod
    def _derive_label(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        label = data.get("suitabilityLabel", data.get("suitability_label"))
        if label not in ("Excellent", "Good", "Fair", "Not Recommended"):
            data = {
                key: value
                for key, value in data.items()
                if key not in {"suitabilityLabel", "suitability_label"}
            }
            score = data.get("suitabilityScore", data.get("suitability_score"))
            if isinstance(score, int | float) and not isinstance(score, bool):
                clamped = round(clamp(score, 0, 100, 50))
                data["suitability_label"] = label_for_score(clamped)
        return data


class ChangeArea(BaseModel):
    """Region where a before/after comparison found a change."""

    type: ChangeType = "neutral"
    category: ChangeCategory = "overall"
    area: str = ""
    description: str = ""
    severity: ChangeSeverity = "subtle"

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: object) -> str:
        cleaned = _clean(value)
        return cleaned if cleaned in {"improvement", "concern"} else "neutral"

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: object) -> str:
        cleaned = "_".join(_clean(value).split())
        allowed = {
            "texture",
            "tone",
            "fine_lines",
            "hydration",
            "redness",
            "pores",
            "dark_spots",
        }
        return cleaned if cleaned in allowed else "overall"

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, value: object) -> str:
        cleaned = _clean(value)
        return cleaned if cleaned in {"noticeable", "significant"} else "subtle"

    @field_validator("area", "description", mode="before")
    @classmethod
    def _text(cls, value: object) -> str:
        return value if isinstance(value, str) else ""


class PhotoComparison(BaseModel):
    """Before/after comparison of two progress photos."""

    model_config = ConfigDict(populate_by_name=True)

    overall_assessment: Assessment = Field(
        default="inconclusive",
        validation_alias=AliasChoices("overallAssessment", "overall_assessment"),
    )
    change_areas: list[ChangeArea] = Field(
        default_factory=list,
        validation_alias=AliasChoices("changeAreas", "change_areas"),
    )
    confidence_score: float = Field(
        default=0.5,
        validation_alias=AliasChoices("confidenceScore", "confidence_score"),
    )
    summary: str = "Comparison completed"

    @field_validator("overall_assessment", mode="before")
    @classmethod
    def _assessment(cls, value: object) -> str:
        cleaned = _clean(value)
        allowed = {"improved", "stable", "worsened"}
        return cleaned if cleaned in allowed else "inconclusive"

    @field_validator("change_areas", mode="before")
    @classmethod
    def _changes(cls, value: object) -> list[object]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict | ChangeArea)]

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, value: object) -> float:
        return clamp(value, 0.0, 1.0, 0.5)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value: object) -> str:
        return value if isinstance(value, str) and value else "Comparison completed"


class ComparisonResult(BaseModel):
    """Outcome of a comparison call, including failures."""

    success: bool
    comparison: PhotoComparison
    days_between: int
    model_used: str
    compared_at: datetime
    processing_time_ms: int
    error: str | None = None
