"""
Admin API Endpoints
===================

- POST /api/admin/coefficients/batch - Re-score every user (moving average)
- POST /api/admin/cache/clear - Drop all cached coefficients and shares
- PUT /api/admin/users/{username}/coefficient - Manual coefficient override
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from credence import InvestmentService

from .dependencies import get_investment_service

router = APIRouter()


class CoefficientOverride(BaseModel):
    """Input for a manual coefficient override (clamped to the configured bounds)."""
    coefficient: float


@router.post("/admin/coefficients/batch")
async def batch_update_coefficients(
    service: InvestmentService = Depends(get_investment_service)
):
    report = await service.batch_update_coefficients()
    result = report.to_dict()
    result["cache"] = service.cache.stats()
    return result


@router.post("/admin/cache/clear")
async def clear_cache(
    service: InvestmentService = Depends(get_investment_service)
):
    service.clear_cache()
    return {"cleared": True, "cache": service.cache.stats()}


@router.put("/admin/users/{username}/coefficient")
async def set_user_coefficient(
    username: str,
    input: CoefficientOverride,
    service: InvestmentService = Depends(get_investment_service)
):
    entry = await service.set_manual_coefficient(username, input.coefficient)
    return entry.to_dict()
