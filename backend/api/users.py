"""
User API Endpoints
==================

- GET /api/users/{username}/coefficient - Coefficient, balances and recent history
- GET /api/users/{username}/investments - Per-content holdings
"""
from fastapi import APIRouter, Depends

from credence import InvestmentService

from .dependencies import get_investment_service

router = APIRouter()


@router.get("/users/{username}/coefficient")
async def get_user_coefficient(
    username: str,
    service: InvestmentService = Depends(get_investment_service)
):
    summary = await service.user_summary(username)
    return summary.to_dict()


@router.get("/users/{username}/investments")
async def get_user_investments(
    username: str,
    service: InvestmentService = Depends(get_investment_service)
):
    holdings = await service.user_investments(username)
    return {
        "username": username,
        "investments": [h.to_dict() for h in holdings],
    }
