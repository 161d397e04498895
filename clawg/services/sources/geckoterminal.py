"""
GeckoTerminal Sources
Aggregator adapters for any token address on a supported network.
"""

from typing import Optional
import logging

import requests

from clawg.config import GECKO_API_BASE, GECKO_NETWORK, GECKO_TIMEOUT_SECONDS
from clawg.services.errors import MarketDataError
from .base import BaseMarketSource, PartialMetrics, to_float

logger = logging.getLogger(__name__)


class GeckoTerminalSource(BaseMarketSource):
    """Shared request handling for the GeckoTerminal endpoints."""

    name = 'geckoterminal'

    def __init__(self, api_base: str = GECKO_API_BASE, timeout: float = GECKO_TIMEOUT_SECONDS):
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout

    def supports(self, chain: str, contract_address: str) -> bool:
        return chain.lower() in GECKO_NETWORK

    def token_url(self, chain: str, contract_address: str) -> str:
        network = GECKO_NETWORK[chain.lower()]
        return f"{self.api_base}/networks/{network}/tokens/{contract_address}"

    def get_json(self, url: str, params: Optional[dict] = None) -> dict:
        response = requests.get(
            url,
            params=params,
            headers={'Accept': 'application/json'},
            timeout=self.timeout
        )
        if response.status_code == 429:
            raise MarketDataError('GeckoTerminal rate limit hit')
        if response.status_code != 200:
            raise MarketDataError(f'GeckoTerminal returned status {response.status_code}')

        data = response.json()
        if not isinstance(data, dict):
            raise MarketDataError('GeckoTerminal returned a non-object payload')
        return data


def as_object(value, what: str) -> dict:
    """Nested JSON object, empty when missing. Any other type is a malformed payload."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MarketDataError(f"GeckoTerminal {what} is not an object")
    return value


class GeckoPoolSource(GeckoTerminalSource):
    """Price, FDV, volume, liquidity and price change from the token's top pool."""

    name = 'gecko_pools'
    stage = 0

    def fetch(self, chain: str, contract_address: str, decimals: int) -> Optional[PartialMetrics]:
        data = self.get_json(f"{self.token_url(chain, contract_address)}/pools", params={'page': 1})

        pools = data.get('data') or []
        if not isinstance(pools, list):
            raise MarketDataError('GeckoTerminal pool list is not an array')
        if not pools:
            return None
        pool = as_object(as_object(pools[0], 'pool').get('attributes'), 'pool attributes')

        volume = as_object(pool.get('volume_usd'), 'volume_usd')
        change = as_object(pool.get('price_change_percentage'), 'price_change_percentage')
        cap = to_float(pool.get('fdv_usd'))
        if not cap:
            cap = to_float(pool.get('market_cap_usd'))

        return PartialMetrics(
            source=self.name,
            price_usd=to_float(pool.get('base_token_price_usd')),
            market_cap=cap,
            volume_24h=to_float(volume.get('h24')),
            liquidity=to_float(pool.get('reserve_in_usd')),
            price_change_24h=to_float(change.get('h24')),
        )


class GeckoHolderSource(GeckoTerminalSource):
    """Holder count from the token info endpoint. Staggered after the pool lookup."""

    name = 'gecko_info'
    stage = 1

    def fetch(self, chain: str, contract_address: str, decimals: int) -> Optional[PartialMetrics]:
        data = self.get_json(f"{self.token_url(chain, contract_address)}/info")

        info = as_object(data.get('data'), 'info')
        attributes = as_object(info.get('attributes'), 'info attributes')
        holders = as_object(attributes.get('holders'), 'holders').get('count')
        if holders is None:
            return None

        return PartialMetrics(source=self.name, holders=int(holders))
