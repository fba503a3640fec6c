"""Address validation and name-service resolution."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional

from web3 import Web3

from ..config import NAME_SERVICE_SUFFIX
from ..errors import InvalidAddress, NameNotFound, ProviderError, ResolutionFailed
from ..providers.base import NameResolverProvider

logger = logging.getLogger(__name__)

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_NAME_RE = re.compile(r"^(?:[^\s./]+\.)+[^\s./]+$")


def is_name_service_name(value: str) -> bool:
    return value.lower().endswith(NAME_SERVICE_SUFFIX)


def is_valid_evm_address(address: str) -> bool:
    """Hex-format check plus EIP-55 checksum validation for mixed-case input."""

    if not address or not _EVM_ADDRESS_RE.fullmatch(address):
        return False
    digits = address[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    return Web3.is_checksum_address(address)


def cache_key_for(value: str) -> str:
    return f"portfolio:{value.strip().lower()}"


@dataclass(frozen=True)
class ResolvedAddress:
    address: str
    ens_name: Optional[str] = None


class AddressResolver:
    """Turns a raw address or ``.eth`` name into a canonical address."""

    def __init__(self, provider: NameResolverProvider, timeout: float = 4.0):
        self._provider = provider
        self._timeout = timeout

    async def resolve(self, value: str) -> ResolvedAddress:
        candidate = (value or "").strip()

        if not is_name_service_name(candidate):
            if not is_valid_evm_address(candidate):
                raise InvalidAddress("Invalid Ethereum address", value=candidate)
            return ResolvedAddress(address=candidate)

        if not _NAME_RE.fullmatch(candidate):
            raise InvalidAddress("Invalid ENS name", value=candidate)

        try:
            address = await asyncio.wait_for(self._provider.resolve_name(candidate), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("ENS resolution timed out for %s", candidate)
            raise ResolutionFailed("ENS resolution timed out", value=candidate) from None
        except ProviderError as exc:
            raise ResolutionFailed(f"ENS resolution failed: {exc}", value=candidate) from exc
        except Exception as exc:  # noqa: BLE001
            logger.warning("ENS resolution error for %s: %s", candidate, exc)
            raise ResolutionFailed("ENS resolution failed", value=candidate) from exc

        if not address:
            raise NameNotFound("ENS name has no address record", value=candidate)
        if not is_valid_evm_address(address):
            raise ResolutionFailed("ENS name resolved to an invalid address", value=candidate)

        logger.info("ENS resolved: %s -> %s", candidate, address)
        return ResolvedAddress(address=address, ens_name=candidate)


__all__ = [
    "AddressResolver",
    "ResolvedAddress",
    "cache_key_for",
    "is_name_service_name",
    "is_valid_evm_address",
]
