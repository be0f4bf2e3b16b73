"""Before/after progress photo comparison."""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import ValidationError as PydanticValidationError

from yogaageproof.domain.ai import (
    ChangeArea,
    ComparisonResult,
    PhotoComparison,
)
from yogaageproof.domain.errors import AppError, user_friendly_message
from yogaageproof.services.ai_client import AIClient
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.ai_parsing import extract_object

PHOTO_COMPARISON_TIMEOUT = 15.0
MAX_COMPARISON_DAYS = 365
_SECONDS_PER_DAY = 86400

COMPARISON_PROMPT = """You are a professional dermatological AI assistant. \
Compare these two facial photos taken at different times and identify changes \
in skin condition.

Photo 1 (BEFORE): Taken on {before_date}
Photo 2 (AFTER): Taken on {after_date}
Time elapsed: {days_between} days

Respond with a JSON object (no markdown, just valid JSON) containing:

{{
  "overallAssessment": "one of: improved, stable, worsened, inconclusive",
  "changeAreas": [
    {{
      "type": "one of: improvement, concern, neutral",
      "category": "one of: texture, tone, fine_lines, hydration, redness, pores, \
dark_spots, overall",
      "area": "specific facial area (e.g., 'forehead', 'under eyes', 'cheeks')",
      "description": "user-friendly description of the change observed",
      "severity": "one of: subtle, noticeable, significant"
    }}
  ],
  "confidenceScore": 0.85,
  "summary": "A brief 2-3 sentence encouraging summary of the overall changes"
}}

Account for differences in lighting, angle and distance. If these make the \
comparison unreliable, set overallAssessment to "inconclusive" and \
confidenceScore below 0.5. Identify the 3-7 most notable change areas.

Return ONLY valid JSON, no additional text."""

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonInput:
    """Two progress photos and when they were taken."""

    before_image: bytes
    after_image: bytes
    before_date: datetime
    after_date: datetime

    @property
    def days_between(self) -> int:
        return days_between(self.before_date, self.after_date)


@dataclass(frozen=True)
class ComparisonValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ChangeStatistics:
    """Counts of change areas by type."""

    improvement_count: int
    concern_count: int
    neutral_count: int
    total_changes: int
    has_significant_changes: bool


@dataclass
class PhotoComparisonService:
    """Compares two photos through the AI gateway."""

    gateway: AIRequestGateway
    client: AIClient
    timeout: float = PHOTO_COMPARISON_TIMEOUT
    clock: Callable[[], float] = field(default=time.monotonic)

    async def compare(self, comparison_input: ComparisonInput) -> ComparisonResult:
        """Compare photos; failures produce an inconclusive result."""
        started = self.clock()
        days = comparison_input.days_between
        prompt = COMPARISON_PROMPT.format(
            before_date=comparison_input.before_date.date().isoformat(),
            after_date=comparison_input.after_date.date().isoformat(),
            days_between=days,
        )
        try:
            text = await self.gateway.execute(
                lambda: self.client.create_message(
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=2048,
                    images=[comparison_input.before_image, comparison_input.after_image],
                ),
                timeout=self.timeout,
                operation="Photo comparison",
            )
            comparison = PhotoComparison.model_validate(extract_object(text))
        except (AppError, PydanticValidationError) as exc:
            _logger.warning("Photo comparison failed: %s", exc)
            return ComparisonResult(
                success=False,
                comparison=PhotoComparison(
                    overall_assessment="inconclusive",
                    change_areas=[],
                    confidence_score=0.0,
                    summary="Unable to complete comparison",
                ),
                days_between=0,
                model_used=self.client.model,
                compared_at=datetime.now(tz=UTC),
                processing_time_ms=int((self.clock() - started) * 1000),
                error=user_friendly_message(exc),
            )
        return ComparisonResult(
            success=True,
            comparison=comparison,
            days_between=days,
            model_used=self.client.model,
            compared_at=datetime.now(tz=UTC),
            processing_time_ms=int((self.clock() - started) * 1000),
        )


def days_between(before: datetime, after: datetime) -> int:
    """Whole days from ``before`` to ``after``, rounded down."""
    return math.floor((after - before).total_seconds() / _SECONDS_PER_DAY)


def validate_comparison_input(
    comparison_input: ComparisonInput, now: datetime | None = None
) -> ComparisonValidation:
    """Check the photo dates before spending an AI call on them."""
    current = now or datetime.now(tz=UTC)
    errors: list[str] = []
    if not comparison_input.before_image:
        errors.append("Missing before photo")
    if not comparison_input.after_image:
        errors.append("Missing after photo")
    if comparison_input.before_date >= comparison_input.after_date:
        errors.append("Before date must be earlier than after date")
    if comparison_input.after_date > current:
        errors.append("After date cannot be in the future")
    if comparison_input.days_between > MAX_COMPARISON_DAYS:
        errors.append(
            "Photos are more than 1 year apart - comparison may be less accurate"
        )
    return ComparisonValidation(valid=not errors, errors=errors)


def change_statistics(comparison: PhotoComparison) -> ChangeStatistics:
    changes = comparison.change_areas
    return ChangeStatistics(
        improvement_count=sum(1 for change in changes if change.type == "improvement"),
        concern_count=sum(1 for change in changes if change.type == "concern"),
        neutral_count=sum(1 for change in changes if change.type == "neutral"),
        total_changes=len(changes),
        has_significant_changes=any(
            change.severity in {"noticeable", "significant"} for change in changes
        ),
    )


def group_changes_by_category(
    comparison: PhotoComparison,
) -> dict[str, list[ChangeArea]]:
    grouped: dict[str, list[ChangeArea]] = {}
    for change in comparison.change_areas:
        grouped.setdefault(change.category, []).append(change)
    return grouped


def assessment_message(assessment: str, days: int) -> str:
    """User-facing message for an overall assessment."""
    if days < 7:  # noqa: PLR2004
        time_phrase = "short time"
    elif days < 30:  # noqa: PLR2004
        time_phrase = "few weeks"
    else:
        time_phrase = "time period"
    if assessment == "improved":
        return (
            f"Great progress in this {time_phrase}! "
            "Your routine is showing positive results."
        )
    if assessment == "stable":
        return f"Your skin condition has remained stable over this {time_phrase}."
    if assessment == "worsened":
        return (
            "Some concerns detected. Consider adjusting your routine or "
            "consulting a dermatologist."
        )
    if assessment == "inconclusive":
        return (
            "Unable to make a clear comparison. "
            "Try taking photos in similar lighting and angles."
        )
    return "Comparison completed."
