"""
Pricing Service
Pool price derivation from concentrated-liquidity AMM state, NO HTTP dependencies.

All fixed-point math stays in Python ints / Fractions; floats only appear at
the final USD step.
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Callable, Optional
import logging
import threading
import time

from clawg.config import REFERENCE_PRICE_TTL_SECONDS
from clawg.services.errors import DerivationError

logger = logging.getLogger(__name__)

Q96 = 2 ** 96
Q192 = Q96 * Q96

WORD_HEX_LENGTH = 64  # one 32-byte ABI word


@dataclass
class PoolPrice:
    """Derived price information for a pool-priced token."""
    price_usd: float
    price_in_quote: float
    quote_price_usd: float
    market_cap_usd: float = 0.0


def decode_uint(result_hex: str, word_index: int = 0) -> int:
    """
    Decode one 32-byte unsigned word from an eth_call result.

    Raises:
        DerivationError: empty, short or non-hex result
    """
    if not isinstance(result_hex, str) or not result_hex.startswith('0x'):
        raise DerivationError(f'Unexpected call result: {result_hex!r}')

    body = result_hex[2:]
    start = word_index * WORD_HEX_LENGTH
    end = start + WORD_HEX_LENGTH
    if len(body) < end:
        raise DerivationError(f'Call result too short: {len(body) // 2} bytes')

    try:
        return int(body[start:end], 16)
    except ValueError as e:
        raise DerivationError(f'Call result is not hex: {e}') from e


def decode_sqrt_price(result_hex: str) -> int:
    """sqrtPriceX96 is the first word of both V3 slot0() and V4 getSlot0()."""
    sqrt_price = decode_uint(result_hex)
    # uint160
    if sqrt_price >= 2 ** 160:
        raise DerivationError('sqrtPriceX96 exceeds uint160')
    return sqrt_price


def sqrt_price_to_ratio(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Fraction:
    """
    Price of one whole token0 expressed in token1.

    ratio_raw = sqrtP^2 / 2^192 (token1 base units per token0 base unit),
    scaled by 10^(decimals0 - decimals1) to whole-token units.
    """
    if sqrt_price_x96 < 0:
        raise DerivationError('sqrtPriceX96 cannot be negative')
    if decimals0 < 0 or decimals1 < 0:
        raise DerivationError('Token decimals cannot be negative')

    return Fraction(sqrt_price_x96 * sqrt_price_x96 * 10 ** decimals0, Q192 * 10 ** decimals1)


def price_in_quote(
    sqrt_price_x96: int,
    token_decimals: int,
    quote_decimals: int,
    is_token0: bool
) -> Fraction:
    """Price of one whole token in the pool's other asset, whichever side it sits on."""
    if is_token0:
        return sqrt_price_to_ratio(sqrt_price_x96, token_decimals, quote_decimals)

    quote_per_token = sqrt_price_to_ratio(sqrt_price_x96, quote_decimals, token_decimals)
    if quote_per_token == 0:
        return Fraction(0)
    return 1 / quote_per_token


def derive_token_price(
    sqrt_price_x96: int,
    token_decimals: int,
    quote_decimals: int,
    is_token0: bool,
    quote_price_usd: float
) -> PoolPrice:
    """
    Convert pool state into a USD unit price.

    Args:
        sqrt_price_x96: Q64.96 square-root price from slot0
        token_decimals: Decimals of the token being priced
        quote_decimals: Decimals of the other pool asset
        is_token0: Whether the priced token is token0
        quote_price_usd: USD price of the quote asset

    Returns:
        PoolPrice (market cap left at 0)
    """
    if quote_price_usd < 0:
        raise DerivationError('Quote price cannot be negative')

    ratio = price_in_quote(sqrt_price_x96, token_decimals, quote_decimals, is_token0)
    return PoolPrice(
        price_usd=float(ratio) * quote_price_usd,
        price_in_quote=float(ratio),
        quote_price_usd=quote_price_usd,
    )


def market_cap(price_usd: float, total_supply_raw: int, decimals: int) -> float:
    """Market cap from a raw (base-unit) total supply."""
    if total_supply_raw <= 0 or price_usd <= 0:
        return 0.0
    return price_usd * float(Fraction(total_supply_raw, 10 ** decimals))


class ReferencePriceCache:
    """
    Caches the reference currency USD price for a bounded interval.
    The loader is only called once the cached value has expired, and only
    by one thread at a time.
    """

    def __init__(
        self,
        ttl_seconds: float = REFERENCE_PRICE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._price: Optional[float] = None
        self._fetched_at: float = 0.0
        self._lock = threading.Lock()

    def get(self, loader: Callable[[], float]) -> float:
        with self._lock:
            if self._price is not None and self._clock() - self._fetched_at < self.ttl_seconds:
                return self._price

            price = loader()
            self._price = price
            self._fetched_at = self._clock()
        logger.info(f"[Pricing] Reference price updated: ${price:.2f}")
        return price

    def peek(self) -> Optional[float]:
        """Cached value regardless of age, for display."""
        return self._price

    def clear(self):
        with self._lock:
            self._price = None
            self._fetched_at = 0.0
