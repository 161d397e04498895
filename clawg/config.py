"""
Clawg Configuration
All constants, environment variables, provider endpoints and scoring tables.
"""

import os
from dataclasses import dataclass


# =============================================================================
# ENVIRONMENT
# =============================================================================

ENV = os.environ.get('ENV', 'development')
IS_PRODUCTION = ENV == 'production'
DEBUG = not IS_PRODUCTION

# Database
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///clawg_dev.db')
if DATABASE_URL.startswith('postgres://'):
    DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

# Auth keys
ADMIN_KEY = os.environ.get('ADMIN_KEY', 'clawg-dev-admin')
CRON_SECRET = os.environ.get('CRON_SECRET', 'clawg-cron-secret')

# Feature flags
ENABLE_ADMIN = os.environ.get('ENABLE_ADMIN', 'true').lower() == 'true'
ENABLE_SCHEDULER = os.environ.get('START_SCHEDULER', 'false').lower() == 'true'


# =============================================================================
# ON-CHAIN READS
# =============================================================================

# JSON-RPC endpoints per chain, tried in order until one answers
RPC_URLS = {
    'base': [
        'https://base-mainnet.public.blastapi.io',
        'https://1rpc.io/base',
        'https://base.llamarpc.com',
    ],
}
RPC_TIMEOUT_SECONDS = 10

# Function selectors
SELECTOR_V3_SLOT0 = '0x3850c7bd'
SELECTOR_V4_GET_SLOT0 = '0xc815641c'
SELECTOR_TOTAL_SUPPLY = '0x18160ddd'

# Uniswap V4 StateView contract per chain
V4_STATE_VIEW = {
    'base': '0xa3c0c9b65bad0b08107aa264b0f3db444b867a71',
}


@dataclass(frozen=True)
class PoolConfig:
    """A pre-registered pool that can price a token directly on-chain."""
    dex_type: str         # uniswap_v4 / uniswap_v3 / raydium_launchlab
    pool_address: str     # pool contract, or PoolId for V4
    is_token0: bool       # is the listed token token0 in the pair?
    quote_decimals: int = 18


# Keyed by "chain:address", lowercase
KNOWN_POOLS = {
    # Base CLAWG / WETH on Uniswap V4
    'base:0x06a127f0b53f83dd5d94e83d96b55a279705bb07': PoolConfig(
        dex_type='uniswap_v4',
        pool_address='0xdc591017ff208c02a8e05baf3a7e2ed9785101f2e789b602b402ae9d529bafe0',
        is_token0=True,
    ),
    # Solana CLAWG / SOL on Raydium LaunchLab (no direct reader yet)
    'solana:hqq7wtkme1lskkhllb6zri2rssxnbbqb4tohzbanbvbjf': PoolConfig(
        dex_type='raydium_launchlab',
        pool_address='EZSyfLfLpbyD5FctevtUHv1YYJxf4G2w8w93d4qLwaVw',
        is_token0=True,
        quote_decimals=9,
    ),
}

# Reference pool for the quote currency: Uniswap V3 WETH (18) / USDC (6) on Base
REFERENCE_POOL_CHAIN = 'base'
REFERENCE_POOL_ADDRESS = '0xd0b53D9277642d899DF5C87A3966A349A798F224'
REFERENCE_TOKEN_DECIMALS = 18
REFERENCE_QUOTE_DECIMALS = 6
REFERENCE_PRICE_TTL_SECONDS = int(os.environ.get('REFERENCE_PRICE_TTL_SECONDS', 300))

ONCHAIN_DEX_TYPES = ['uniswap_v3', 'uniswap_v4']


# =============================================================================
# AGGREGATOR (GeckoTerminal)
# =============================================================================

GECKO_API_BASE = os.environ.get('GECKO_API_BASE', 'https://api.geckoterminal.com/api/v2')
GECKO_TIMEOUT_SECONDS = 10
GECKO_REQUESTS_PER_MINUTE = int(os.environ.get('GECKO_REQUESTS_PER_MINUTE', 30))
GECKO_CALLS_PER_TOKEN = 2  # /pools + /info

GECKO_NETWORK = {
    'ethereum': 'eth',
    'base': 'base',
    'arbitrum': 'arbitrum',
    'solana': 'solana',
    'monad': 'monad',
}


# =============================================================================
# BATCH PACING
# =============================================================================

# Delay between adapter stages within one token (holder lookup is staggered)
SOURCE_STAGE_DELAY_SECONDS = float(os.environ.get('SOURCE_STAGE_DELAY_SECONDS', 1.0))

# Fixed delay between tokens in the snapshot refresh job
SNAPSHOT_PACING_SECONDS = float(os.environ.get(
    'SNAPSHOT_PACING_SECONDS',
    60.0 * GECKO_CALLS_PER_TOKEN / GECKO_REQUESTS_PER_MINUTE,
))

# Relative gap between two non-zero source values that gets logged
SOURCE_DISAGREEMENT_THRESHOLD = float(os.environ.get('SOURCE_DISAGREEMENT_THRESHOLD', 0.25))


# =============================================================================
# ANALYTICS CONSTANTS
# =============================================================================

REACTION_TYPES = ['fire', 'ship', 'claw', 'brain', 'bug']
GROWTH_PERIOD_DAYS = 7
AUDIENCE_RATE_SCALE = 1000
AUDIENCE_SCORE_MAX = 100


# =============================================================================
# SIGNAL SCORE CONSTANTS
# =============================================================================

SIGNAL_MAX_SCORE = 100

SIGNAL_COMPONENT_MAX = {
    'build': 30,
    'token': 30,
    'social': 30,
    'verification': 10,
}

BUILD_WINDOW_DAYS = 90
BUILD_RECENT_DAYS = 7
BUILD_FULL_COUNT = 20
BUILD_FULL_RECENT = 5

# (market cap strictly above, points) - highest first
MARKET_CAP_TIERS = [
    (100_000_000, 15),
    (10_000_000, 12),
    (1_000_000, 9),
    (100_000, 6),
    (10_000, 3),
    (1_000, 1),
]
TOKEN_FULL_HOLDERS = 1_000
TOKEN_FULL_LIQUIDITY = 100_000
TOKEN_FULL_VOLUME = 50_000

SOCIAL_FULL_ENGAGEMENT_RATE = 0.05
SOCIAL_FULL_GROWTH = 50

VERIFICATION_POINTS = {
    'identity': 5,
    'twitter': 2,
    'github': 2,
    'website': 1,
}


# =============================================================================
# SCHEDULER INTERVALS
# =============================================================================

SNAPSHOT_INTERVAL_MINUTES = int(os.environ.get('SNAPSHOT_INTERVAL_MINUTES', 15))
ANALYTICS_CRON_MINUTE = 0
SIGNAL_CRON_MINUTE = 10


# =============================================================================
# VERSION INFO
# =============================================================================

VERSION = '1.0.0'
VERSION_NAME = 'Signal Engine'
FEATURES = ['token_snapshots', 'multi_source_merge', 'engagement_analytics', 'signal_score']
