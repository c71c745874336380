"""
Credence Service - FastAPI Backend

Coefficient-weighted investments, dividends and effective shares.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import install_error_handlers, routers
from config import create_postgres_pool, get_settings
from credence import EngineParameters, InvestmentService
from repositories import ContentRepository, InvestmentRepository, UserRepository

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    pool = await create_postgres_pool(settings)
    app.state.db_pool = pool
    app.state.investment_service = InvestmentService(
        users=UserRepository(pool),
        contents=ContentRepository(pool),
        investments=InvestmentRepository(pool),
        params=EngineParameters.from_settings(settings),
    )
    logger.info(f"Credence service ready ({settings.environment})")
    yield
    # Shutdown
    await pool.close()
    logger.info("PostgreSQL pool closed")


app = FastAPI(
    title="Credence Service",
    description="Coefficient-weighted dividend and effective-share engine",
    version="1.0.0",
    lifespan=lifespan,
)

# Enable CORS for webapp
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# API endpoints - all under /api/*
for router, tags in routers:
    app.include_router(router, prefix="/api", tags=tags)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/health")
async def api_health():
    return {"status": "ok", "service": "credence"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
