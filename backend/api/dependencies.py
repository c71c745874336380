"""
FastAPI dependencies shared by the credence routers.
"""
from fastapi import HTTPException, Request

from credence import InvestmentService


def get_investment_service(request: Request) -> InvestmentService:
    """The application's InvestmentService (built in main.lifespan)."""
    service = getattr(request.app.state, "investment_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Investment service not initialized")
    return service
