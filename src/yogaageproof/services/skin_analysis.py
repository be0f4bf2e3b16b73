"""Skin type and concern detection from a face photo."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import ValidationError as PydanticValidationError

from yogaageproof.domain.ai import SkinAnalysis, SkinAnalysisResult
from yogaageproof.domain.errors import AppError, user_friendly_message
from yogaageproof.services.ai_client import AIClient
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.ai_parsing import extract_object

SKIN_ANALYSIS_TIMEOUT = 10.0

ANALYSIS_PROMPT = """You are a professional dermatological AI assistant. \
Analyze this facial photo and provide a detailed skin analysis.

Respond with a JSON object (no markdown, just valid JSON) containing:

{
  "skinType": "one of: oily, dry, combination, sensitive, normal",
  "concerns": [
    {
      "type": "one of: fine_lines, wrinkles, dark_spots, uneven_tone, acne, \
large_pores, dryness, oiliness, redness, sensitivity, dullness, texture, \
dark_circles, sagging, dehydration",
      "severity": "one of: mild, moderate, severe",
      "areas": ["list of affected facial areas"],
      "explanation": "brief user-friendly explanation of this concern"
    }
  ],
  "confidence": 0.85,
  "notes": "any additional observations about the skin"
}

Guidelines:
1. Be accurate but gentle in your assessment
2. Focus on the 3-5 most significant concerns
3. Provide actionable insights in explanations
4. Confidence should reflect image quality and visibility
5. Use friendly, non-clinical language for explanations

Return ONLY valid JSON, no additional text."""

_logger = logging.getLogger(__name__)


@dataclass
class SkinAnalyzer:
    """Runs skin analysis through the AI gateway."""

    gateway: AIRequestGateway
    client: AIClient
    timeout: float = SKIN_ANALYSIS_TIMEOUT
    clock: Callable[[], float] = field(default=time.monotonic)

    async def analyze(self, image_bytes: bytes) -> SkinAnalysisResult:
        """Analyze a photo; failures produce an unsuccessful result."""
        started = self.clock()
        try:
            text = await self.gateway.execute(
                lambda: self.client.create_message(
                    messages=[{"role": "user", "content": ANALYSIS_PROMPT}],
                    max_tokens=1024,
                    images=[image_bytes],
                ),
                timeout=self.timeout,
                operation="Skin analysis",
            )
            analysis = SkinAnalysis.from_payload(extract_object(text))
        except (AppError, PydanticValidationError) as exc:
            _logger.warning("Skin analysis failed: %s", exc)
            return SkinAnalysisResult(
                success=False,
                analysis=SkinAnalysis(skin_type="normal", concerns=[], confidence=0.0),
                model_used=self.client.model,
                analyzed_at=datetime.now(tz=UTC),
                processing_time_ms=self._elapsed_ms(started),
                error=user_friendly_message(exc),
            )
        return SkinAnalysisResult(
            success=True,
            analysis=analysis,
            model_used=self.client.model,
            analyzed_at=datetime.now(tz=UTC),
            processing_time_ms=self._elapsed_ms(started),
        )

    def _elapsed_ms(self, started: float) -> int:
        return int((self.clock() - started) * 1000)
