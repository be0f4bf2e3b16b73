"""Personalised product suitability analysis."""

import logging
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError

from yogaageproof.domain.ai import Product, ProductInsight, SkinProfile
from yogaageproof.domain.errors import AIResponseParseError, AppError
from yogaageproof.services.ai_client import AIClient
from yogaageproof.services.ai_gateway import AIRequestGateway
from yogaageproof.services.ai_parsing import extract_object

PRODUCT_INSIGHT_TIMEOUT = 20.0

INSIGHT_SYSTEM_PROMPT = """You are an expert skincare formulator and dermatology \
consultant. Analyze skincare products and provide personalized recommendations \
based on a user's skin profile.

Consider ingredient compatibility with the skin type, active ingredients that \
address the user's concerns, potential irritants, texture and absorption, and \
optimal usage timing and layering. Be honest and balanced.

OUTPUT FORMAT (JSON):
{
  "suitabilityScore": number (0-100),
  "suitabilityLabel": "Excellent" | "Good" | "Fair" | "Not Recommended",
  "summary": "2-3 sentence personalized summary",
  "pros": ["benefit 1", ...],
  "cons": ["consideration 1", ...],
  "usageTips": ["specific tip for this user", ...],
  "alternatives": ["alternative product type if score is low"]
}

SUITABILITY GUIDELINES:
- 80-100 (Excellent): Perfect match for skin type and concerns
- 60-79 (Good): Generally suitable with minor considerations
- 40-59 (Fair): May work but with cautions
- 0-39 (Not Recommended): Contains potential irritants or unsuitable ingredients"""

_logger = logging.getLogger(__name__)


@dataclass
class ProductInsightService:
    """Scores products against a user's skin profile."""

    gateway: AIRequestGateway
    client: AIClient
    timeout: float = PRODUCT_INSIGHT_TIMEOUT

    async def get_insight(self, product: Product, profile: SkinProfile) -> ProductInsight:
        """Return the AI suitability analysis for one product."""
        prompt = build_insight_prompt(product, profile)
        text = await self.gateway.execute(
            lambda: self.client.create_message(
                messages=[{"role": "user", "content": prompt}],
                system=INSIGHT_SYSTEM_PROMPT,
                max_tokens=1024,
                temperature=0.7,
            ),
            timeout=self.timeout,
            operation="Product insight analysis",
        )
        try:
            return ProductInsight.model_validate(extract_object(text))
        except PydanticValidationError as exc:
            raise AIResponseParseError(
                "Failed to parse AI response. Please try again."
            ) from exc

    async def get_insight_or_fallback(
        self, product: Product, profile: SkinProfile
    ) -> ProductInsight:
        """Return the AI insight, or the rule-based one when AI is unavailable."""
        try:
            return await self.get_insight(product, profile)
        except AppError as exc:
            _logger.warning(
                "Product insight failed for %s, using fallback: %s", product.id, exc
            )
            return fallback_insight(product, profile)

    async def get_batch_insights(
        self, products: list[Product], profile: SkinProfile
    ) -> dict[str, ProductInsight]:
        """Analyze products one by one, skipping the ones that fail."""
        insights: dict[str, ProductInsight] = {}
        for product in products:
            try:
                insights[product.id] = await self.get_insight(product, profile)
            except AppError as exc:
                _logger.warning(
                    "Failed to get insight for product %s: %s", product.id, exc
                )
        return insights


def build_insight_prompt(product: Product, profile: SkinProfile) -> str:
    concerns = ", ".join(
        f"{concern.type} ({concern.severity})" for concern in profile.concerns
    )
    return (
        "Analyze this product for the user's skin profile:\n\n"
        "PRODUCT INFORMATION:\n"
        f"- Name: {product.name}\n"
        f"- Brand: {product.brand}\n"
        f"- Category: {product.category}\n"
        f"- Description: {product.description or 'Not provided'}\n"
        f"- Key Ingredients: {', '.join(product.ingredients) or 'Not listed'}\n"
        f"- Claimed Benefits: {', '.join(product.benefits) or 'Not specified'}\n"
        f"- Labeled for Skin Types: {', '.join(product.skin_types) or 'Not specified'}\n"
        f"- Usage Instructions: {product.usage_instructions or 'Not provided'}\n\n"
        "USER'S SKIN PROFILE:\n"
        f"- Skin Type: {profile.skin_type}\n"
        f"- Concerns: {concerns or 'None specific'}\n"
        f"- Analysis Confidence: {round(profile.analysis_confidence * 100)}%\n\n"
        "Please provide a personalized analysis of this product's suitability. "
        "Return only valid JSON."
    )


def fallback_insight(product: Product, profile: SkinProfile) -> ProductInsight:
    """Rule-based insight from labeled skin types, used when AI is unavailable."""
    labeled = [skin_type.lower() for skin_type in product.skin_types]
    user_skin_type = profile.skin_type.lower()
    category = product.category.replace("_", " ")
    if not labeled or user_skin_type in labeled:
        return ProductInsight(
            suitability_score=70,
            suitability_label="Good",
            summary=(
                f"This {category} appears to be suitable for {user_skin_type} "
                "skin based on its labeled skin types."
            ),
            pros=["Labeled as suitable for your skin type"],
            cons=["Full ingredient analysis not available"],
            usage_tips=["Patch test before full use", "Follow package instructions"],
        )
    return ProductInsight(
        suitability_score=40,
        suitability_label="Fair",
        summary=(
            f"This product may not be optimized for {user_skin_type} skin. "
            "Consider products specifically formulated for your skin type."
        ),
        pros=[],
        cons=["Not specifically formulated for your skin type"],
        usage_tips=["Patch test recommended", "Monitor for any reactions"],
        alternatives=[f"Look for {category}s labeled for {user_skin_type} skin"],
    )
