"""
Content API Endpoints
=====================

- GET /api/contents/{content_id}/shares - Effective-share table of a content
"""
from fastapi import APIRouter, Depends

from credence import InvestmentService

from .dependencies import get_investment_service

router = APIRouter()


@router.get("/contents/{content_id}/shares")
async def get_content_shares(
    content_id: int,
    service: InvestmentService = Depends(get_investment_service)
):
    view = await service.content_shares(content_id)
    return view.to_dict()
