"""
Investment API Endpoints
========================

- POST /api/invest - Invest coins into content, paying dividends to earlier investors
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from credence import InvestmentService

from .dependencies import get_investment_service

router = APIRouter()


class InvestRequest(BaseModel):
    """Input for an investment."""
    contentId: int
    amount: int
    username: str = Field(..., min_length=1)


@router.post("/invest")
async def invest(
    input: InvestRequest,
    service: InvestmentService = Depends(get_investment_service)
):
    """Invest into content. Dividends are priced before the investment is added."""
    outcome = await service.invest(input.username, input.contentId, input.amount)
    return outcome.to_dict()
