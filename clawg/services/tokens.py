"""
Token Service
Token registry operations and directory reads with NO HTTP dependencies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError

from clawg.models import db, Agent, AgentToken, TokenSnapshot
from clawg.services.snapshots import SnapshotService

logger = logging.getLogger(__name__)

DIRECTORY_PAGE_SIZE = 50
DIRECTORY_MAX_PAGE_SIZE = 100

# Sort key per directory mode, applied descending
DIRECTORY_SORTS = {
    'signal': lambda entry: entry[0].signal_score or 0,
    'newest': lambda entry: entry[0].created_at or datetime.min,
    'trending': lambda entry: entry[0].growth_trend or 0,
    'marketCap': lambda entry: (entry[2].market_cap or 0) if entry[2] else 0,
}


@dataclass
class LinkTokenRequest:
    """Data required to link a token to an agent."""
    agent_id: int
    chain: str
    contract_address: str
    symbol: str
    name: str
    decimals: int = 18
    launchpad: Optional[str] = None
    is_primary: bool = False


@dataclass
class TokenResult:
    """Result of a registry operation."""
    success: bool
    token: Optional[AgentToken] = None
    error: Optional[str] = None


class TokenService:
    """
    Token registry.
    At most one primary token per agent.
    """

    @staticmethod
    def link_token(request: LinkTokenRequest, record_initial_snapshot: bool = True) -> TokenResult:
        """
        Link a token to an agent, optionally as its primary token.

        Returns:
            TokenResult with token or error
        """
        agent = db.session.get(Agent, request.agent_id)
        if not agent:
            return TokenResult(success=False, error='Agent not found')

        if request.decimals is None or request.decimals < 0:
            return TokenResult(success=False, error='Invalid decimals')

        chain = request.chain.lower()
        contract_address = request.contract_address.lower()

        existing = AgentToken.query.filter_by(
            agent_id=request.agent_id,
            chain=chain,
            contract_address=contract_address
        ).first()
        if existing:
            return TokenResult(success=False, error='Token already linked for this chain')

        if request.is_primary:
            TokenService._clear_primary(request.agent_id)

        token = AgentToken(
            agent_id=request.agent_id,
            chain=chain,
            contract_address=contract_address,
            symbol=request.symbol.upper(),
            name=request.name,
            decimals=request.decimals,
            launchpad=request.launchpad or None,
            is_primary=bool(request.is_primary)
        )
        db.session.add(token)

        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            return TokenResult(success=False, error='Token already linked for this chain')

        TokenService._refresh_token_count(agent)
        db.session.commit()

        logger.info(f"🔗 Token linked: {token.symbol} ({chain}) → agent {agent.handle} (primary={token.is_primary})")

        if record_initial_snapshot:
            try:
                SnapshotService.record_snapshot(token)
            except Exception as e:
                db.session.rollback()
                logger.error(f"[Tokens] Initial snapshot failed for {token.symbol}: {e}")

        return TokenResult(success=True, token=token)

    @staticmethod
    def unlink_token(token_id: int, agent_id: int) -> TokenResult:
        """Remove a token link. Its snapshots stay in the store as orphans."""
        token = AgentToken.query.filter_by(id=token_id, agent_id=agent_id).first()
        if not token:
            return TokenResult(success=False, error='Token not found')

        symbol, chain = token.symbol, token.chain
        db.session.delete(token)
        db.session.flush()

        agent = db.session.get(Agent, agent_id)
        if agent:
            TokenService._refresh_token_count(agent)
        db.session.commit()

        logger.info(f"✂️ Token unlinked: {symbol} ({chain}) from agent {agent_id}")
        return TokenResult(success=True)

    @staticmethod
    def set_primary_token(token_id: int, agent_id: int) -> TokenResult:
        token = AgentToken.query.filter_by(id=token_id, agent_id=agent_id).first()
        if not token:
            return TokenResult(success=False, error='Token not found')

        TokenService._clear_primary(agent_id)
        token.is_primary = True
        db.session.commit()

        return TokenResult(success=True, token=token)

    @staticmethod
    def _clear_primary(agent_id: int):
        AgentToken.query.filter_by(agent_id=agent_id, is_primary=True).update({'is_primary': False})

    @staticmethod
    def _refresh_token_count(agent: Agent):
        agent.token_count = AgentToken.query.filter_by(agent_id=agent.id).count()

    @staticmethod
    def get_token(token_id: int) -> Optional[AgentToken]:
        return db.session.get(AgentToken, token_id)

    @staticmethod
    def get_agent_tokens(agent_id: int) -> List[AgentToken]:
        """Primary token first, then in link order."""
        return AgentToken.query.filter_by(agent_id=agent_id).order_by(
            AgentToken.is_primary.desc(),
            AgentToken.created_at.asc(),
            AgentToken.id.asc()
        ).all()

    @staticmethod
    def get_primary_token(agent_id: int) -> Optional[AgentToken]:
        """The agent's primary token, falling back to its oldest linked token."""
        tokens = TokenService.get_agent_tokens(agent_id)
        return tokens[0] if tokens else None

    @staticmethod
    def get_all_linked_tokens() -> List[AgentToken]:
        return AgentToken.query.order_by(AgentToken.id.asc()).all()

    @staticmethod
    def get_trending_tokens(hours: int = 24, limit: int = 10) -> List[dict]:
        """
        Biggest 24h movers among snapshots taken in the window.
        Uses each token's newest snapshot in the window.
        """
        since = datetime.utcnow() - timedelta(hours=hours)
        newest = db.session.query(
            TokenSnapshot.token_id,
            func.max(TokenSnapshot.snapshot_at).label('snapshot_at')
        ).filter(
            TokenSnapshot.snapshot_at >= since
        ).group_by(TokenSnapshot.token_id).subquery()

        rows = db.session.query(TokenSnapshot, AgentToken).select_from(TokenSnapshot).join(
            newest,
            and_(
                TokenSnapshot.token_id == newest.c.token_id,
                TokenSnapshot.snapshot_at == newest.c.snapshot_at
            )
        ).join(
            AgentToken, AgentToken.id == TokenSnapshot.token_id
        ).order_by(TokenSnapshot.id.desc()).all()

        # Two snapshots can share a timestamp; keep the later row
        latest = {}
        for snapshot, token in rows:
            latest.setdefault(token.id, (snapshot, token))

        ranked = sorted(latest.values(), key=lambda pair: pair[0].price_change_24h or 0, reverse=True)
        return [TokenService.token_to_dict(token, snapshot) for snapshot, token in ranked[:limit]]

    @staticmethod
    def get_new_tokens(days: int = 7, limit: int = 20) -> List[dict]:
        since = datetime.utcnow() - timedelta(days=days)
        tokens = AgentToken.query.filter(
            AgentToken.created_at >= since
        ).order_by(AgentToken.created_at.desc()).limit(limit).all()

        return [
            TokenService.token_to_dict(t, SnapshotService.latest_snapshot(t.id))
            for t in tokens
        ]

    # -------------------------------------------------------------------------
    # Directory
    # -------------------------------------------------------------------------

    @staticmethod
    def get_token_directory(
        sort_by: str = 'signal',
        chain: Optional[str] = None,
        min_market_cap: Optional[float] = None,
        page: int = 1,
        page_size: int = DIRECTORY_PAGE_SIZE
    ) -> dict:
        """
        Verified agents with linked tokens, one entry per agent.

        Each entry shows the agent's primary token, or its oldest one when no
        primary is set. With a chain filter the entry uses the agent's best
        token on that chain and agents without one are left out.

        Args:
            sort_by: 'signal', 'newest', 'trending' or 'marketCap' (default: signal)
            min_market_cap: drop entries whose latest snapshot is below this
            page_size: capped at DIRECTORY_MAX_PAGE_SIZE
        """
        if sort_by not in DIRECTORY_SORTS:
            sort_by = 'signal'
        page = max(page, 1)
        page_size = max(1, min(page_size, DIRECTORY_MAX_PAGE_SIZE))

        query = AgentToken.query.join(Agent, Agent.id == AgentToken.agent_id).filter(
            Agent.erc8004_agent_id.isnot(None)
        )
        if chain:
            query = query.filter(AgentToken.chain == chain.lower())
        tokens = query.order_by(
            AgentToken.agent_id.asc(),
            AgentToken.is_primary.desc(),
            AgentToken.created_at.asc(),
            AgentToken.id.asc()
        ).all()

        entries = []
        seen = set()
        for token in tokens:
            if token.agent_id in seen:
                continue
            seen.add(token.agent_id)

            snapshot = SnapshotService.latest_snapshot(token.id)
            if min_market_cap is not None:
                if snapshot is None or (snapshot.market_cap or 0) < min_market_cap:
                    continue
            entries.append((token.agent, token, snapshot))

        # Ties keep agent id order
        entries.sort(key=DIRECTORY_SORTS[sort_by], reverse=True)

        start = (page - 1) * page_size
        return {
            'sort': sort_by,
            'page': page,
            'page_size': page_size,
            'total': len(entries),
            'items': [
                {
                    'agent': {
                        'id': agent.id,
                        'handle': agent.handle,
                        'display_name': agent.display_name,
                        'signal_score': agent.signal_score or 0,
                        'growth_trend': agent.growth_trend or 0,
                        'token_count': agent.token_count or 0,
                    },
                    'token': TokenService.token_to_dict(token, snapshot)
                }
                for agent, token, snapshot in entries[start:start + page_size]
            ]
        }

    @staticmethod
    def token_to_dict(token: AgentToken, snapshot: Optional[TokenSnapshot] = None) -> dict:
        """
        Convert token to dictionary for JSON response.
        """
        return {
            'id': token.id,
            'agent_id': token.agent_id,
            'chain': token.chain,
            'contract_address': token.contract_address,
            'symbol': token.symbol,
            'name': token.name,
            'decimals': token.decimals,
            'launchpad': token.launchpad,
            'is_primary': token.is_primary,
            'created_at': token.created_at.isoformat() if token.created_at else None,

            # Latest metrics
            'metrics': SnapshotService.snapshot_to_dict(snapshot)
        }
