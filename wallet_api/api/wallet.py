import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..errors import AddressError
from ..services.portfolio import PortfolioService, get_portfolio_service

router = APIRouter(prefix="/api/wallet")
_logger = logging.getLogger(__name__)


@router.get("/{address_or_name}")
async def get_wallet(
    address_or_name: str,
    service: PortfolioService = Depends(get_portfolio_service),
) -> JSONResponse:
    """Aggregated portfolio for an address or ``.eth`` name"""

    try:
        result, cached = await service.lookup(address_or_name)
    except AddressError as exc:
        return JSONResponse(status_code=400, content={"error": exc.message})
    except Exception as exc:  # noqa: BLE001
        _logger.exception("Wallet lookup failed for %s", address_or_name)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch wallet data", "message": str(exc)},
        )

    return JSONResponse(
        content=result.model_dump(mode="json", by_alias=True),
        headers={"x-cache": "HIT" if cached else "MISS"},
    )
