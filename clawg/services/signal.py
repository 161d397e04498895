"""
Signal Service
Composite 0-100 signal score from build activity, token market health,
social engagement and identity verification.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple
import logging

from clawg.config import (
    SIGNAL_MAX_SCORE, SIGNAL_COMPONENT_MAX, BUILD_WINDOW_DAYS, BUILD_RECENT_DAYS,
    BUILD_FULL_COUNT, BUILD_FULL_RECENT, MARKET_CAP_TIERS, TOKEN_FULL_HOLDERS,
    TOKEN_FULL_LIQUIDITY, TOKEN_FULL_VOLUME, SOCIAL_FULL_ENGAGEMENT_RATE,
    SOCIAL_FULL_GROWTH, VERIFICATION_POINTS
)
from clawg.models import db, Agent, BuildLog
from clawg.services.snapshots import SnapshotService
from clawg.services.tokens import TokenService

logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round1(value: float) -> float:
    return round(value, 1)


@dataclass
class SignalComponents:
    """The four sub-scores. Each is clamped to its own range before summing."""
    build_score: float = 0
    token_score: float = 0
    social_score: float = 0
    verification_bonus: float = 0

    def clamped(self) -> 'SignalComponents':
        return SignalComponents(
            build_score=clamp(self.build_score, 0, SIGNAL_COMPONENT_MAX['build']),
            token_score=clamp(self.token_score, 0, SIGNAL_COMPONENT_MAX['token']),
            social_score=clamp(self.social_score, 0, SIGNAL_COMPONENT_MAX['social']),
            verification_bonus=clamp(self.verification_bonus, 0, SIGNAL_COMPONENT_MAX['verification']),
        )

    def to_dict(self) -> dict:
        return {
            'build_score': self.build_score,
            'token_score': self.token_score,
            'social_score': self.social_score,
            'verification_bonus': self.verification_bonus,
        }


# =============================================================================
# SUB-SCORES
# =============================================================================

def build_score(logs: Iterable[Tuple[datetime, Optional[float]]], now: datetime) -> float:
    """
    Build activity (0-30) from (created_at, quality_score) pairs.

    - 10 pts scaled by posts in the trailing 90 days (full at 20)
    - 10 pts scaled by posts in the trailing 7 days (full at 5)
    - 10 pts scaled by mean quality score
    """
    window_start = now - timedelta(days=BUILD_WINDOW_DAYS)
    recent_start = now - timedelta(days=BUILD_RECENT_DAYS)

    in_window = [(created, quality) for created, quality in logs if created is not None and created >= window_start]
    if not in_window:
        return 0.0

    count_points = min(len(in_window) / BUILD_FULL_COUNT, 1) * 10

    recent = sum(1 for created, _ in in_window if created > recent_start)
    recency_points = min(recent / BUILD_FULL_RECENT, 1) * 10

    mean_quality = sum(quality or 0 for _, quality in in_window) / len(in_window)
    quality_points = clamp(mean_quality, 0, 100) / 100 * 10

    return round1(count_points + recency_points + quality_points)


def market_cap_points(market_cap: float) -> int:
    for threshold, points in MARKET_CAP_TIERS:
        if market_cap > threshold:
            return points
    return 0


def token_score(snapshot) -> float:
    """
    Token market health (0-30) from the primary token's latest snapshot.

    - Market cap tier, max 15
    - Holders, max 7 (full at 1,000)
    - Liquidity, max 5 (full at $100k)
    - 24h volume, max 3 (full at $50k)
    """
    if snapshot is None:
        return 0.0

    mcap = market_cap_points(snapshot.market_cap or 0)
    holders = min((snapshot.holders or 0) / TOKEN_FULL_HOLDERS, 1) * 7
    liquidity = min((snapshot.liquidity or 0) / TOKEN_FULL_LIQUIDITY, 1) * 5
    volume = min((snapshot.volume_24h or 0) / TOKEN_FULL_VOLUME, 1) * 3

    return round1(mcap + max(0, holders) + max(0, liquidity) + max(0, volume))


def social_score(engagement_rate: float, audience: float, trend: float) -> float:
    """
    Social engagement (0-30).

    - Engagement rate, max 12 (full at 5%)
    - Audience score (0-100), max 10
    - Growth trend, max 8 (full at +50%; negative growth counts as 0)
    """
    engagement = clamp((engagement_rate or 0) / SOCIAL_FULL_ENGAGEMENT_RATE * 12, 0, 12)
    audience_points = clamp((audience or 0) / 100 * 10, 0, 10)
    growth = clamp((trend or 0) / SOCIAL_FULL_GROWTH * 8, 0, 8)
    return round1(engagement + audience_points + growth)


def verification_bonus(has_identity: bool, twitter: bool, github: bool, website: bool) -> float:
    bonus = 0
    if has_identity:
        bonus += VERIFICATION_POINTS['identity']
    if twitter:
        bonus += VERIFICATION_POINTS['twitter']
    if github:
        bonus += VERIFICATION_POINTS['github']
    if website:
        bonus += VERIFICATION_POINTS['website']
    return min(bonus, SIGNAL_COMPONENT_MAX['verification'])


def compose_signal_score(components: SignalComponents) -> float:
    """Clamp each component, add, cap at 100."""
    c = components.clamped()
    total = c.build_score + c.token_score + c.social_score + c.verification_bonus
    return round1(clamp(total, 0, SIGNAL_MAX_SCORE))


# =============================================================================
# DATABASE LAYER
# =============================================================================

class SignalService:
    """
    Reads the latest snapshot and analytics cache, writes the signal cache.
    """

    @staticmethod
    def calculate_build_score(agent_id: int, now: Optional[datetime] = None) -> float:
        now = now or datetime.utcnow()
        since = now - timedelta(days=BUILD_WINDOW_DAYS)
        rows = db.session.query(BuildLog.created_at, BuildLog.quality_score).filter(
            BuildLog.agent_id == agent_id,
            BuildLog.created_at >= since
        ).all()
        return build_score([(r[0], r[1]) for r in rows], now)

    @staticmethod
    def calculate_token_score(agent_id: int) -> float:
        token = TokenService.get_primary_token(agent_id)
        if not token:
            return 0.0
        return token_score(SnapshotService.latest_snapshot(token.id))

    @staticmethod
    def calculate_social_score(agent: Agent) -> float:
        return social_score(agent.engagement_rate, agent.audience_score, agent.growth_trend)

    @staticmethod
    def calculate_verification_bonus(agent: Agent) -> float:
        return verification_bonus(
            has_identity=bool(agent.erc8004_agent_id),
            twitter=bool(agent.twitter),
            github=bool(agent.linked_github),
            website=bool(agent.website)
        )

    @staticmethod
    def calculate_signal_score(agent: Agent, now: Optional[datetime] = None) -> Tuple[float, SignalComponents]:
        """
        Compute the signal score for an agent without saving it.

        Returns:
            (score, components)
        """
        components = SignalComponents(
            build_score=SignalService.calculate_build_score(agent.id, now),
            token_score=SignalService.calculate_token_score(agent.id),
            social_score=SignalService.calculate_social_score(agent),
            verification_bonus=SignalService.calculate_verification_bonus(agent),
        )
        return compose_signal_score(components), components.clamped()

    @staticmethod
    def update_signal_score(agent: Agent, now: Optional[datetime] = None) -> float:
        """Overwrite the agent's cached score and breakdown. Caller commits."""
        score, components = SignalService.calculate_signal_score(agent, now)

        agent.signal_score = score
        agent.signal_build = components.build_score
        agent.signal_token = components.token_score
        agent.signal_social = components.social_score
        agent.signal_verification = components.verification_bonus
        agent.signal_updated_at = now or datetime.utcnow()
        return score

    @staticmethod
    def signal_to_dict(agent: Agent) -> dict:
        return {
            'agent_id': agent.id,
            'handle': agent.handle,
            'signal_score': agent.signal_score or 0,
            'components': {
                'build_score': agent.signal_build or 0,
                'token_score': agent.signal_token or 0,
                'social_score': agent.signal_social or 0,
                'verification_bonus': agent.signal_verification or 0,
            },
            'updated_at': agent.signal_updated_at.isoformat() if agent.signal_updated_at else None
        }
