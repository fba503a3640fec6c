"""Human-readable number formatting and content-addressed URI rewriting."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

Number = Union[Decimal, float, int]

_SUFFIXES = (
    (Decimal(10) ** 9, "B"),
    (Decimal(10) ** 6, "M"),
    (Decimal(10) ** 3, "K"),
)


def format_token_balance(balance: Number) -> str:
    """Compact display form of a token balance: ``0.0123``, ``12.34K``, ``1.20B``."""

    value = Decimal(str(balance))
    if value == 0:
        return "0"
    if value < Decimal("0.000001"):
        return "<0.000001"
    if value < Decimal("0.01"):
        return f"{value:.6f}"
    if value < 1:
        return f"{value:.4f}"
    if value < 10_000:
        return f"{value:.2f}"
    for threshold, suffix in _SUFFIXES:
        if value >= threshold:
            return f"{value / threshold:.2f}{suffix}"
    return f"{value:.2f}"


def scale_units(raw: int, decimals: int) -> Decimal:
    """Convert a raw integer amount into token units without float rounding."""

    return Decimal(raw).scaleb(-decimals)


def gateway_uri(uri: Optional[str], ipfs_gateway: str, arweave_gateway: str) -> Optional[str]:
    """Rewrite ``ipfs://`` and ``ar://`` URIs to their HTTP gateway form.

    Returns None for anything that is not HTTP(S) afterwards (``data:``,
    ``javascript:``, bare paths).
    """

    if not uri:
        return None
    uri = uri.strip()
    if not uri:
        return None

    lowered = uri.lower()
    if lowered.startswith("ipfs://"):
        path = uri[len("ipfs://"):]
        if path.lower().startswith("ipfs/"):
            path = path[len("ipfs/"):]
        return f"{ipfs_gateway.rstrip('/')}/{path}"
    if lowered.startswith("ar://"):
        return f"{arweave_gateway.rstrip('/')}/{uri[len('ar://'):]}"
    if lowered.startswith(("https://", "http://")):
        return uri
    return None


__all__ = ["format_token_balance", "gateway_uri", "scale_units"]
