from .portfolio import ActivityRecord, NFTCollection, NFTItem, PortfolioResult, TokenHolding

__all__ = [
    "ActivityRecord",
    "NFTCollection",
    "NFTItem",
    "PortfolioResult",
    "TokenHolding",
]
