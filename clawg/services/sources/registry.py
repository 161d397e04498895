"""
Source priority list. Earlier sources win field conflicts in the merger;
adding a provider is one entry here.
"""

from .onchain import UniswapPoolSource
from .geckoterminal import GeckoPoolSource, GeckoHolderSource


def default_sources():
    return [
        UniswapPoolSource(),
        GeckoPoolSource(),
        GeckoHolderSource(),
    ]
