from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import health, wallet
from .config import CHAIN_REGISTRY, settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

setup_logging()

ENDPOINTS = {
    "wallet": "/api/wallet/{address_or_name}",
    "health": "/api/health",
    "providers": "/api/health/providers",
}

# Create FastAPI app
app = FastAPI(
    title="Wallet API",
    description="Multi-chain wallet portfolio aggregation backend",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(wallet.router, tags=["Wallet"])
app.include_router(health.router, tags=["Health"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Wallet API",
        "version": "0.1.0",
        "description": "Multi-chain wallet portfolio aggregation backend",
        "chains": [
            {"key": CHAIN_REGISTRY[key].key, "name": CHAIN_REGISTRY[key].display_name}
            for key in settings.enabled_chains
        ],
        "endpoints": ENDPOINTS,
        "docs": "/docs",
    }


@app.exception_handler(404)
async def not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not found",
            "path": request.url.path,
            "availableEndpoints": ["/", *ENDPOINTS.values()],
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "wallet_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
