"""
Base Market Source
Abstract base class for market data adapters and the aggregator that runs them.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields
from itertools import groupby
from typing import Callable, List, Optional
import logging
import time

import requests

from clawg.config import SOURCE_STAGE_DELAY_SECONDS
from clawg.services.errors import MarketDataError

logger = logging.getLogger(__name__)


@dataclass
class PartialMetrics:
    """
    Metrics from a single source. None means the source does not report
    the field at all; 0 means it reported zero.
    """
    source: str
    price_usd: Optional[float] = None
    market_cap: Optional[float] = None
    holders: Optional[int] = None
    volume_24h: Optional[float] = None
    liquidity: Optional[float] = None
    price_change_24h: Optional[float] = None

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def to_float(value) -> Optional[float]:
    """Parse provider numbers that may arrive as strings, null or garbage."""
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class BaseMarketSource(ABC):
    """
    Abstract base class for market data sources.
    Sources in a later stage run after the earlier stages have finished.
    """

    name: str = 'base'
    stage: int = 0

    @abstractmethod
    def supports(self, chain: str, contract_address: str) -> bool:
        """Whether this source can price the token at all."""
        raise NotImplementedError

    @abstractmethod
    def fetch(self, chain: str, contract_address: str, decimals: int) -> Optional[PartialMetrics]:
        """
        Fetch metrics for one token.

        Raises:
            MarketDataError or requests.RequestException on provider failure
        """
        raise NotImplementedError

    def fetch_safe(self, chain: str, contract_address: str, decimals: int) -> Optional[PartialMetrics]:
        """Fetch, turning any provider or derivation failure into no data."""
        try:
            return self.fetch(chain, contract_address, decimals)
        except (MarketDataError, requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"[Sources] {self.name} failed for {chain}:{contract_address}: {e}")
            return None


class MarketDataAggregator:
    """
    Runs every applicable source for a token.
    Sources in the same stage run concurrently; stages are separated by a
    fixed delay. Results come back in source priority order.
    """

    def __init__(
        self,
        sources: Optional[List[BaseMarketSource]] = None,
        stage_delay: float = SOURCE_STAGE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep
    ):
        if sources is None:
            from .registry import default_sources
            sources = default_sources()
        self.sources = sources
        self.stage_delay = stage_delay
        self._sleep = sleep

    def applicable_sources(self, chain: str, contract_address: str) -> List[BaseMarketSource]:
        return [s for s in self.sources if s.supports(chain, contract_address)]

    def collect(self, chain: str, contract_address: str, decimals: int = 18) -> List[PartialMetrics]:
        """
        Collect partial metrics from every applicable source.

        Returns:
            Non-failing results, ordered by source priority
        """
        applicable = self.applicable_sources(chain, contract_address)
        if not applicable:
            logger.info(f"[Sources] No source can price {chain}:{contract_address}")
            return []

        priority = {id(s): i for i, s in enumerate(applicable)}
        collected = {}

        staged = sorted(applicable, key=lambda s: s.stage)
        for index, (_, group) in enumerate(groupby(staged, key=lambda s: s.stage)):
            group = list(group)
            if index > 0 and self.stage_delay > 0:
                self._sleep(self.stage_delay)

            with ThreadPoolExecutor(max_workers=len(group)) as pool:
                futures = {
                    id(s): pool.submit(s.fetch_safe, chain, contract_address, decimals)
                    for s in group
                }
                for key, future in futures.items():
                    collected[key] = future.result()

        ordered = sorted(collected.items(), key=lambda item: priority[item[0]])
        return [result for _, result in ordered if result is not None]
