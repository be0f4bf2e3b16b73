"""AI feature endpoints, all routed through the request gateway."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import AwareDatetime, Base64Bytes, BaseModel, Field

from yogaageproof.domain.ai import (
    ComparisonResult,
    Product,
    ProductInsight,
    RoutineOption,
    SkinAnalysisResult,
    SkinProfile,
)
from yogaageproof.services.photo_comparison import (
    ComparisonInput,
    assessment_message,
    change_statistics,
    validate_comparison_input,
)
from yogaageproof.services.routine_generator import RoutinePreferences

if TYPE_CHECKING:
    from yogaageproof.containers import AppContainer

router = APIRouter(prefix="/ai", tags=["ai"])


class RoutineOptionsRequest(BaseModel):
    """Skin profile and goals used to tailor routine options."""

    profile: SkinProfile
    goals: list[str] = Field(default_factory=list)


class DetailedRoutineRequest(BaseModel):
    profile: SkinProfile
    focus_area: str
    max_duration_minutes: int | None = Field(default=None, gt=0)
    include_product_types: list[str] = Field(default_factory=list)
    exclude_product_types: list[str] = Field(default_factory=list)


class ProductInsightRequest(BaseModel):
    """Product to assess against a skin profile."""

    product: Product
    profile: SkinProfile


class BatchInsightRequest(BaseModel):
    products: list[Product]
    profile: SkinProfile


class ComparisonRequest(BaseModel):
    """Two base64-encoded photos and their capture dates."""

    before_image: Base64Bytes
    after_image: Base64Bytes
    before_date: AwareDatetime
    after_date: AwareDatetime


class ComparisonResponse(BaseModel):
    result: ComparisonResult
    message: str
    statistics: dict[str, object]


@router.get("/stats")
async def gateway_stats(request: Request) -> dict[str, object]:
    """Return queue depth and admissions in the current rate window."""
    container: AppContainer = request.app.state.container
    return asdict(container.ai_gateway.stats())


@router.post("/skin-analysis")
async def analyze_skin(request: Request) -> SkinAnalysisResult:
    """Analyse a face photo sent as the raw request body."""
    container: AppContainer = request.app.state.container
    image_bytes = await request.body()
    if not image_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty photo")
    return await container.skin_analyzer.analyze(image_bytes)


@router.post("/routines")
async def routine_options(
    payload: RoutineOptionsRequest, request: Request
) -> list[RoutineOption]:
    """Return routine options, falling back to templates on failure."""
    container: AppContainer = request.app.state.container
    return await container.routine_generator.generate_options(
        payload.profile, payload.goals
    )


@router.post("/routines/detailed")
async def detailed_routine(
    payload: DetailedRoutineRequest, request: Request
) -> RoutineOption:
    container: AppContainer = request.app.state.container
    preferences = RoutinePreferences(
        max_duration_minutes=payload.max_duration_minutes,
        include_product_types=tuple(payload.include_product_types),
        exclude_product_types=tuple(payload.exclude_product_types),
    )
    return await container.routine_generator.generate_detailed_routine(
        payload.profile, payload.focus_area, preferences
    )


@router.post("/product-insights")
async def product_insight(
    payload: ProductInsightRequest, request: Request
) -> ProductInsight:
    container: AppContainer = request.app.state.container
    return await container.product_insights.get_insight_or_fallback(
        payload.product, payload.profile
    )


@router.post("/product-insights/batch")
async def batch_product_insights(
    payload: BatchInsightRequest, request: Request
) -> dict[str, ProductInsight]:
    """Return insights keyed by product id; failed products are left out."""
    container: AppContainer = request.app.state.container
    return await container.product_insights.get_batch_insights(
        payload.products, payload.profile
    )


@router.post("/comparisons")
async def compare_photos(payload: ComparisonRequest, request: Request) -> ComparisonResponse:
    container: AppContainer = request.app.state.container
    comparison_input = ComparisonInput(
        before_image=payload.before_image,
        after_image=payload.after_image,
        before_date=payload.before_date,
        after_date=payload.after_date,
    )
    validation = validate_comparison_input(comparison_input)
    if not validation.valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=validation.errors
        )
    result = await container.photo_comparison.compare(comparison_input)
    return ComparisonResponse(
        result=result,
        message=assessment_message(
            result.comparison.overall_assessment, result.days_between
        ),
        statistics=asdict(change_statistics(result.comparison)),
    )
