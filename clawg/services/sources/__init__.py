"""
Market Data Sources
Independent adapters that each produce partial token metrics.
"""

from .base import BaseMarketSource, PartialMetrics, MarketDataAggregator
from .onchain import UniswapPoolSource, JsonRpcClient
from .geckoterminal import GeckoPoolSource, GeckoHolderSource
from .registry import default_sources

__all__ = [
    'BaseMarketSource',
    'PartialMetrics',
    'MarketDataAggregator',
    'UniswapPoolSource',
    'JsonRpcClient',
    'GeckoPoolSource',
    'GeckoHolderSource',
    'default_sources',
]
