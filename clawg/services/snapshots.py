"""
Snapshot Service
Append-only token metrics time series.
"""

from datetime import datetime, timedelta
from typing import List, Optional
import logging

from clawg.models import db, AgentToken, TokenSnapshot
from clawg.services.merger import TokenMetrics, merge_metrics
from clawg.services.sources import MarketDataAggregator

logger = logging.getLogger(__name__)


class SnapshotService:
    """
    Snapshot store.
    Writes never update an existing row. Reads join against the token
    registry, so snapshots of unlinked tokens are left out.
    """

    @staticmethod
    def live_snapshots():
        return TokenSnapshot.query.join(AgentToken, AgentToken.id == TokenSnapshot.token_id)

    @staticmethod
    def append_snapshot(token_id: int, metrics: TokenMetrics, snapshot_at: Optional[datetime] = None) -> TokenSnapshot:
        """Insert one snapshot row. Caller commits."""
        snapshot = TokenSnapshot(
            token_id=token_id,
            price_usd=metrics.price_usd,
            market_cap=metrics.market_cap,
            holders=metrics.holders,
            volume_24h=metrics.volume_24h,
            liquidity=metrics.liquidity,
            price_change_24h=metrics.price_change_24h,
            snapshot_at=snapshot_at or datetime.utcnow()
        )
        db.session.add(snapshot)
        return snapshot

    @staticmethod
    def last_positive_holders(token_id: int) -> int:
        """Most recent positive holder count recorded for a token, or 0."""
        snapshot = TokenSnapshot.query.filter(
            TokenSnapshot.token_id == token_id,
            TokenSnapshot.holders > 0
        ).order_by(TokenSnapshot.snapshot_at.desc(), TokenSnapshot.id.desc()).first()
        return snapshot.holders if snapshot else 0

    @staticmethod
    def fetch_metrics(token: AgentToken, aggregator: Optional[MarketDataAggregator] = None) -> TokenMetrics:
        """Collect from every source and merge, with holder carry-forward."""
        aggregator = aggregator or MarketDataAggregator()
        results = aggregator.collect(token.chain, token.contract_address, token.decimals or 18)
        return merge_metrics(
            results,
            holders_fallback=lambda: SnapshotService.last_positive_holders(token.id)
        )

    @staticmethod
    def record_snapshot(token: AgentToken, aggregator: Optional[MarketDataAggregator] = None) -> TokenSnapshot:
        """
        Fetch, merge and persist one snapshot for a token.

        Returns:
            The committed TokenSnapshot
        """
        metrics = SnapshotService.fetch_metrics(token, aggregator)
        snapshot = SnapshotService.append_snapshot(token.id, metrics)
        db.session.commit()

        logger.info(
            f"[Snapshots] {token.symbol} ({token.chain}): ${metrics.price_usd:.8g} "
            f"mcap=${metrics.market_cap:,.0f} holders={metrics.holders} "
            f"sources={sorted(set(metrics.sources.values()))}"
        )
        return snapshot

    @staticmethod
    def latest_snapshot(token_id: int) -> Optional[TokenSnapshot]:
        return SnapshotService.live_snapshots().filter(
            TokenSnapshot.token_id == token_id
        ).order_by(TokenSnapshot.snapshot_at.desc(), TokenSnapshot.id.desc()).first()

    @staticmethod
    def get_history(
        token_id: int,
        days: int = 30,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[TokenSnapshot]:
        """
        Snapshots in a time window, oldest first.

        Args:
            token_id: Token to read
            days: Window length when since is not given
            since: Inclusive window start
            until: Inclusive window end (default: now)
        """
        if since is None:
            since = datetime.utcnow() - timedelta(days=days)

        query = SnapshotService.live_snapshots().filter(
            TokenSnapshot.token_id == token_id,
            TokenSnapshot.snapshot_at >= since
        )
        if until is not None:
            query = query.filter(TokenSnapshot.snapshot_at <= until)

        return query.order_by(TokenSnapshot.snapshot_at.asc(), TokenSnapshot.id.asc()).all()

    @staticmethod
    def snapshot_to_dict(snapshot: Optional[TokenSnapshot]) -> Optional[dict]:
        if snapshot is None:
            return None
        return {
            'price_usd': snapshot.price_usd,
            'market_cap': snapshot.market_cap,
            'holders': snapshot.holders,
            'volume_24h': snapshot.volume_24h,
            'liquidity': snapshot.liquidity,
            'price_change_24h': snapshot.price_change_24h,
            'snapshot_at': snapshot.snapshot_at.isoformat() if snapshot.snapshot_at else None
        }
