"""
Market data errors.
Raised inside the pricing and source layers; sources turn them into "no data".
"""


class MarketDataError(Exception):
    """A provider could not produce usable metrics."""


class DerivationError(MarketDataError):
    """On-chain state could not be decoded into a price."""


class RpcError(MarketDataError):
    """Every JSON-RPC endpoint failed or returned an error object."""
