import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..cache import portfolio_cache, price_cache
from ..services.portfolio import PortfolioService, get_portfolio_service

router = APIRouter(prefix="/api/health")

_STARTED_AT = time.monotonic()


@router.get("")
async def health() -> Dict[str, Any]:
    """Liveness plus cache statistics"""

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptimeSeconds": round(time.monotonic() - _STARTED_AT, 1),
        "caches": {
            "portfolio": portfolio_cache.stats(),
            "prices": price_cache.stats(),
        },
    }


@router.get("/providers")
async def provider_health(
    service: PortfolioService = Depends(get_portfolio_service),
) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    names = list(service.providers)
    results = await asyncio.gather(*(service.providers[name].health_check() for name in names))
    provider_status = dict(zip(names, results))

    # Unconfigured providers don't count against overall health
    all_healthy = all(
        status["status"] in ["healthy", "unavailable"]
        for status in provider_status.values()
    )
    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] == "healthy"
    )

    return {
        "status": "healthy" if all_healthy and available_providers > 0 else "degraded",
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status),
        "config": service.config.describe(),
    }
