"""
On-chain Pool Source
Direct Uniswap pool reads over raw JSON-RPC for pre-registered pools.
"""

from typing import Dict, List, Optional
import logging

import requests

from clawg.config import (
    KNOWN_POOLS, ONCHAIN_DEX_TYPES, RPC_URLS, RPC_TIMEOUT_SECONDS,
    SELECTOR_V3_SLOT0, SELECTOR_V4_GET_SLOT0, SELECTOR_TOTAL_SUPPLY,
    V4_STATE_VIEW, REFERENCE_POOL_CHAIN, REFERENCE_POOL_ADDRESS,
    REFERENCE_TOKEN_DECIMALS, REFERENCE_QUOTE_DECIMALS, PoolConfig
)
from clawg.services.errors import DerivationError, RpcError
from clawg.services.pricing import (
    ReferencePriceCache, decode_sqrt_price, decode_uint,
    derive_token_price, market_cap
)
from .base import BaseMarketSource, PartialMetrics

logger = logging.getLogger(__name__)


def pool_key(chain: str, contract_address: str) -> str:
    return f"{chain}:{contract_address}".lower()


class JsonRpcClient:
    """Batched eth_call with failover across a chain's RPC endpoints."""

    def __init__(self, rpc_urls: Optional[Dict[str, List[str]]] = None, timeout: float = RPC_TIMEOUT_SECONDS):
        self.rpc_urls = rpc_urls if rpc_urls is not None else RPC_URLS
        self.timeout = timeout

    def eth_call_batch(self, chain: str, calls: List[Dict[str, str]]) -> List[str]:
        """
        Send several eth_calls in one HTTP request.

        Args:
            chain: Chain whose endpoints to use
            calls: [{'to': address, 'data': calldata}, ...]

        Returns:
            Raw hex results in call order

        Raises:
            RpcError: every endpoint failed, or a call reverted
        """
        urls = self.rpc_urls.get(chain, [])
        if not urls:
            raise RpcError(f'No RPC endpoints configured for {chain}')

        batch = [
            {
                'jsonrpc': '2.0',
                'method': 'eth_call',
                'params': [{'to': c['to'], 'data': c['data']}, 'latest'],
                'id': i + 1,
            }
            for i, c in enumerate(calls)
        ]

        last_error = None
        for url in urls:
            try:
                response = requests.post(url, json=batch, timeout=self.timeout)
                if response.status_code != 200:
                    last_error = f'{url} returned {response.status_code}'
                    continue
                payload = response.json()
                if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
                    last_error = f'{url} returned a non-batch response'
                    continue
            except (requests.RequestException, ValueError) as e:
                last_error = f'{url}: {e}'
                continue

            payload.sort(key=lambda r: r.get('id', 0))
            results = []
            for item in payload:
                error = item.get('error')
                if error:
                    if not isinstance(error, dict):
                        raise RpcError(str(error))
                    raise RpcError(error.get('message', 'eth_call reverted'))
                results.append(item.get('result') or '0x')
            if len(results) != len(calls):
                raise RpcError(f'Expected {len(calls)} results, got {len(results)}')
            return results

        raise RpcError(f'All RPCs failed for {chain} ({last_error})')


class UniswapPoolSource(BaseMarketSource):
    """
    Prices tokens with a known Uniswap V3/V4 pool against WETH, then converts
    to USD through the WETH/USDC reference pool. Reports price and market cap.
    """

    name = 'uniswap_pool'
    stage = 0

    # Shared so every token lookup in a batch reuses the same reference price
    reference_cache = ReferencePriceCache()

    def __init__(
        self,
        rpc: Optional[JsonRpcClient] = None,
        pools: Optional[Dict[str, PoolConfig]] = None,
        reference_cache: Optional[ReferencePriceCache] = None
    ):
        self.rpc = rpc or JsonRpcClient()
        self.pools = pools if pools is not None else KNOWN_POOLS
        if reference_cache is not None:
            self.reference_cache = reference_cache

    def pool_for(self, chain: str, contract_address: str) -> Optional[PoolConfig]:
        return self.pools.get(pool_key(chain, contract_address))

    def supports(self, chain: str, contract_address: str) -> bool:
        pool = self.pool_for(chain, contract_address)
        return pool is not None and pool.dex_type in ONCHAIN_DEX_TYPES

    def load_reference_price(self) -> float:
        """ETH price in USD from the V3 WETH/USDC pool (USDC taken as $1)."""
        result = self.rpc.eth_call_batch(REFERENCE_POOL_CHAIN, [
            {'to': REFERENCE_POOL_ADDRESS, 'data': SELECTOR_V3_SLOT0},
        ])[0]
        derived = derive_token_price(
            decode_sqrt_price(result),
            token_decimals=REFERENCE_TOKEN_DECIMALS,
            quote_decimals=REFERENCE_QUOTE_DECIMALS,
            is_token0=True,
            quote_price_usd=1.0,
        )
        if derived.price_usd <= 0:
            raise DerivationError('Reference pool returned a zero price')
        return derived.price_usd

    def slot0_call(self, chain: str, pool: PoolConfig) -> Dict[str, str]:
        if pool.dex_type == 'uniswap_v4':
            state_view = V4_STATE_VIEW.get(chain)
            if not state_view:
                raise DerivationError(f'No V4 StateView registered for {chain}')
            pool_id = pool.pool_address[2:] if pool.pool_address.startswith('0x') else pool.pool_address
            return {'to': state_view, 'data': SELECTOR_V4_GET_SLOT0 + pool_id}
        return {'to': pool.pool_address, 'data': SELECTOR_V3_SLOT0}

    def fetch(self, chain: str, contract_address: str, decimals: int) -> Optional[PartialMetrics]:
        pool = self.pool_for(chain, contract_address)
        if pool is None or pool.dex_type not in ONCHAIN_DEX_TYPES:
            return None

        quote_price = self.reference_cache.get(self.load_reference_price)

        slot0_result, supply_result = self.rpc.eth_call_batch(chain, [
            self.slot0_call(chain, pool),
            {'to': contract_address, 'data': SELECTOR_TOTAL_SUPPLY},
        ])

        derived = derive_token_price(
            decode_sqrt_price(slot0_result),
            token_decimals=decimals,
            quote_decimals=pool.quote_decimals,
            is_token0=pool.is_token0,
            quote_price_usd=quote_price,
        )
        total_supply = decode_uint(supply_result)

        return PartialMetrics(
            source=self.name,
            price_usd=derived.price_usd,
            market_cap=market_cap(derived.price_usd, total_supply, decimals),
        )
