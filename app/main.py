"""
Growth AI Engine
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager

from app.config import get_settings
from app.utils.logger import log
from app import __version__

# Import routers
from app.api import health, dynamic_pricing, viral, optimization, next_gen, enterprise_wallet
from app.middleware.auth_middleware import AuthMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from app.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Start the scheduler for continuous optimization
    from app.scheduler import start_scheduler, stop_scheduler
    try:
        start_scheduler()
    except Exception as e:
        log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    try:
        stop_scheduler()
    except Exception as e:
        log.warning(f"Scheduler shutdown error: {str(e)}")
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    AI-Powered Growth Engine

    - Dynamic pricing: market rules plus an LLM multiplier
    - Viral content generation and multi-day campaigns
    - Self-optimization recommendations with continuous auto-apply
    - Combined full analysis across all three engines
    - Enterprise multi-signature escrow wallet records (Solana)

    Every LLM-backed step falls back to deterministic defaults when the
    model is unavailable or answers with malformed JSON.
    """,
    lifespan=lifespan
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Errors use the same envelope as successful responses"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Bearer-token authentication for enterprise routes
app.add_middleware(AuthMiddleware)

# Gzip compression
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(dynamic_pricing.router)
app.include_router(viral.router)
app.include_router(optimization.router)
app.include_router(next_gen.router)
app.include_router(enterprise_wallet.router)


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "description": "AI-Powered Growth Engine",
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "endpoints": {
            "ai_status": "GET /api/ai/status",
            "calculate_price": "POST /api/ai/dynamic-pricing/calculate",
            "batch_pricing": "POST /api/ai/dynamic-pricing/batch",
            "generate_viral": "POST /api/ai/viral/generate",
            "create_campaign": "POST /api/ai/viral/create-campaign",
            "analyze_performance": "POST /api/ai/optimization/analyze",
            "continuous_optimization": "GET /api/ai/optimization/continuous",
            "optimization_dashboard": "GET /api/ai/optimization/dashboard",
            "full_analysis": "POST /api/ai/next-gen/full-analysis",
            "create_escrow": "POST /api/enterprise/wallet/create-escrow",
            "release_escrow": "POST /api/enterprise/wallet/release-escrow",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=settings.api_workers,
    )
