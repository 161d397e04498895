"""
Snapshot Merger
Folds partial source results into one metrics record. Pure, no database access.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional
import logging

from clawg.config import SOURCE_DISAGREEMENT_THRESHOLD
from clawg.services.sources.base import PartialMetrics

logger = logging.getLogger(__name__)

UNSIGNED_FIELDS = ['price_usd', 'market_cap', 'holders', 'volume_24h', 'liquidity']
SIGNED_FIELDS = ['price_change_24h']


@dataclass
class TokenMetrics:
    """A complete, merged metrics record."""
    price_usd: float = 0.0
    market_cap: float = 0.0
    holders: int = 0
    volume_24h: float = 0.0
    liquidity: float = 0.0
    price_change_24h: float = 0.0

    # Provenance
    sources: dict = field(default_factory=dict)
    holders_carried_forward: bool = False
    disagreements: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'price_usd': self.price_usd,
            'market_cap': self.market_cap,
            'holders': self.holders,
            'volume_24h': self.volume_24h,
            'liquidity': self.liquidity,
            'price_change_24h': self.price_change_24h,
            'sources': self.sources,
            'holders_carried_forward': self.holders_carried_forward,
            'disagreements': self.disagreements,
        }


def is_usable(field_name: str, value) -> bool:
    """Unsigned fields need a positive value; signed fields need a non-zero one."""
    if value is None:
        return False
    if field_name in SIGNED_FIELDS:
        return value != 0
    return value > 0


def disagrees(winner: float, other: float, threshold: float) -> bool:
    if winner == other:
        return False
    scale = max(abs(winner), abs(other))
    return abs(winner - other) / scale > threshold


def merge_metrics(
    results: Iterable[PartialMetrics],
    holders_fallback: Optional[Callable[[], int]] = None,
    threshold: float = SOURCE_DISAGREEMENT_THRESHOLD
) -> TokenMetrics:
    """
    Merge partial results, given in source priority order.

    Per field, the first usable value wins. If no source reports holders,
    holders_fallback() supplies the last known positive count. Every other
    field stays at zero when no source has it.

    Args:
        results: Partial metrics, highest priority first
        holders_fallback: Lookup of the last positive holder count
        threshold: Relative gap above which a losing value is logged

    Returns:
        TokenMetrics
    """
    merged = TokenMetrics()
    results = list(results)

    for field_name in UNSIGNED_FIELDS + SIGNED_FIELDS:
        winner = None
        for result in results:
            value = getattr(result, field_name, None)
            if not is_usable(field_name, value):
                continue
            if winner is None:
                winner = result
                setattr(merged, field_name, value)
                merged.sources[field_name] = result.source
            elif disagrees(getattr(winner, field_name), value, threshold):
                if field_name not in merged.disagreements:
                    merged.disagreements.append(field_name)
                logger.warning(
                    f"[Merger] {field_name}: {winner.source}={getattr(winner, field_name)} "
                    f"vs {result.source}={value}, keeping {winner.source}"
                )

    merged.holders = int(merged.holders)

    if merged.holders == 0 and holders_fallback is not None:
        previous = holders_fallback() or 0
        if previous > 0:
            merged.holders = previous
            merged.holders_carried_forward = True
            merged.sources['holders'] = 'carry_forward'

    return merged
