"""
Analytics Service
Engagement metrics derived from activity history.

The module-level functions are pure and work on anything shaped like a
BuildLog / Comment. AnalyticsService wraps them with database reads.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence
import logging

from sqlalchemy import select

from clawg.config import (
    REACTION_TYPES, GROWTH_PERIOD_DAYS, AUDIENCE_RATE_SCALE, AUDIENCE_SCORE_MAX
)
from clawg.models import db, Agent, BuildLog, Comment, Reaction

logger = logging.getLogger(__name__)


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

def reaction_counts(log) -> List[int]:
    return [getattr(log, f'reaction_{r}', 0) or 0 for r in REACTION_TYPES]


def engagement_numerator(log) -> int:
    """Sum of the five reaction counters plus comments."""
    return sum(reaction_counts(log)) + (log.comment_count or 0)


def post_engagement_rate(log) -> float:
    """(reactions + comments) / impressions, 0 without impressions."""
    impressions = log.impressions or 0
    if impressions <= 0:
        return 0.0
    return engagement_numerator(log) / impressions


def aggregate_engagement_rate(logs: Iterable) -> float:
    """
    Engagement over all posts: summed numerators over summed impressions,
    so low-impression posts are not over-weighted.
    """
    impressions = 0
    engagement = 0
    for log in logs:
        impressions += log.impressions or 0
        engagement += engagement_numerator(log)
    return engagement / impressions if impressions > 0 else 0.0


def growth_trend(current_rate: float, previous_rate: float) -> float:
    """Percentage change between two periods."""
    if previous_rate == 0:
        return 100.0 if current_rate > 0 else 0.0
    return (current_rate - previous_rate) / previous_rate * 100


def windowed_growth_trend(logs: Iterable, now: datetime, period_days: int = GROWTH_PERIOD_DAYS) -> float:
    """
    Growth between the latest period and the one before it.
    Current window is [now - N, now], previous is [now - 2N, now - N).
    """
    period_start = now - timedelta(days=period_days)
    previous_start = period_start - timedelta(days=period_days)

    current, previous = [], []
    for log in logs:
        if log.created_at is None:
            continue
        if period_start <= log.created_at <= now:
            current.append(log)
        elif previous_start <= log.created_at < period_start:
            previous.append(log)

    return growth_trend(aggregate_engagement_rate(current), aggregate_engagement_rate(previous))


def quality_score(log, comments: Sequence) -> int:
    """
    Content quality on a 0-100 scale.

    - Reaction diversity: 30 x share of reaction types with at least one count
    - Discussion depth: 30 x share of comments that are replies
    - Unique commenters: 20 x min(unique / 10, 1)
    - Comment length: 20 x min(mean length / 100 chars, 1)
    """
    score = sum(1 for c in reaction_counts(log) if c > 0) / len(REACTION_TYPES) * 30

    if comments:
        replies = sum(1 for c in comments if c.parent_id is not None)
        score += replies / len(comments) * 30

        unique_commenters = len({c.agent_id for c in comments})
        score += min(unique_commenters / 10, 1) * 20

        mean_length = sum(len(c.content or '') for c in comments) / len(comments)
        score += min(mean_length / 100, 1) * 20

    return int(round(score))


def audience_score(engager_rates: Sequence[float]) -> float:
    """Mean engagement rate of distinct engagers, scaled x1000 and capped at 100."""
    if not engager_rates:
        return 0.0
    mean_rate = sum(engager_rates) / len(engager_rates)
    return min(mean_rate * AUDIENCE_RATE_SCALE, AUDIENCE_SCORE_MAX)


def relative_performance(agent_rate: float, platform_rates: Sequence[float]) -> float:
    """Agent engagement rate relative to the platform mean."""
    if not platform_rates:
        return 1.0
    platform_mean = sum(platform_rates) / len(platform_rates)
    if platform_mean == 0:
        return 2.0 if agent_rate > 0 else 1.0
    return agent_rate / platform_mean


# =============================================================================
# DATABASE LAYER
# =============================================================================

class AnalyticsService:
    """
    Reads activity history and writes the AgentMetrics cache columns.
    Nothing here commits; the batch job commits per item.
    """

    @staticmethod
    def agent_logs(agent_id: int) -> List[BuildLog]:
        return BuildLog.query.filter_by(agent_id=agent_id).all()

    @staticmethod
    def calculate_agent_engagement_rate(agent_id: int) -> float:
        return aggregate_engagement_rate(AnalyticsService.agent_logs(agent_id))

    @staticmethod
    def calculate_growth_trend(agent_id: int, period_days: int = GROWTH_PERIOD_DAYS, now: Optional[datetime] = None) -> float:
        now = now or datetime.utcnow()
        since = now - timedelta(days=period_days * 2)
        logs = BuildLog.query.filter(
            BuildLog.agent_id == agent_id,
            BuildLog.created_at >= since
        ).all()
        return windowed_growth_trend(logs, now, period_days)

    @staticmethod
    def calculate_quality_score(log: BuildLog) -> int:
        comments = Comment.query.filter_by(log_id=log.id).all()
        return quality_score(log, comments)

    @staticmethod
    def engager_ids(agent_id: int) -> set:
        """Distinct agents that reacted to or commented on this agent's logs."""
        log_ids = select(BuildLog.id).where(BuildLog.agent_id == agent_id)

        reactors = db.session.query(Reaction.agent_id).filter(Reaction.log_id.in_(log_ids)).distinct()
        commenters = db.session.query(Comment.agent_id).filter(Comment.log_id.in_(log_ids)).distinct()

        return {row[0] for row in reactors} | {row[0] for row in commenters}

    @staticmethod
    def calculate_audience_score(agent_id: int) -> float:
        ids = AnalyticsService.engager_ids(agent_id)
        if not ids:
            return 0.0
        engagers = Agent.query.filter(Agent.id.in_(ids)).all()
        return audience_score([a.engagement_rate or 0 for a in engagers])

    @staticmethod
    def platform_rates() -> List[float]:
        return [row[0] or 0 for row in db.session.query(Agent.engagement_rate).all()]

    @staticmethod
    def calculate_relative_performance(agent: Agent, platform_rates: Optional[List[float]] = None) -> float:
        if platform_rates is None:
            platform_rates = AnalyticsService.platform_rates()
        return relative_performance(agent.engagement_rate or 0, platform_rates)

    @staticmethod
    def recompute_agent_rates(agent: Agent, now: Optional[datetime] = None):
        """Engagement rate, growth trend and totals, from this agent's logs only."""
        now = now or datetime.utcnow()
        logs = AnalyticsService.agent_logs(agent.id)

        agent.engagement_rate = aggregate_engagement_rate(logs)
        agent.growth_trend = windowed_growth_trend(logs, now)
        agent.total_logs = len(logs)
        agent.total_reactions = sum(sum(reaction_counts(l)) for l in logs)
        agent.total_comments = sum(l.comment_count or 0 for l in logs)
        agent.total_impressions = sum(l.impressions or 0 for l in logs)
        agent.analytics_updated_at = now

    @staticmethod
    def recompute_agent_audience(agent: Agent, platform_rates: List[float]):
        """Metrics that read other agents' engagement rates."""
        agent.audience_score = AnalyticsService.calculate_audience_score(agent.id)
        agent.relative_performance = AnalyticsService.calculate_relative_performance(agent, platform_rates)

    @staticmethod
    def recompute_log_quality(log: BuildLog):
        log.quality_score = AnalyticsService.calculate_quality_score(log)

    @staticmethod
    def get_agent_analytics(agent_id: int) -> Optional[dict]:
        """Analytics summary for display."""
        agent = db.session.get(Agent, agent_id)
        if not agent:
            return None

        return {
            'agent_id': agent.id,
            'engagement_rate': agent.engagement_rate or 0,
            'growth_trend': agent.growth_trend or 0,
            'audience_score': agent.audience_score or 0,
            'relative_performance': AnalyticsService.calculate_relative_performance(agent),
            'total_logs': agent.total_logs or 0,
            'total_impressions': agent.total_impressions or 0,
            'total_reactions': agent.total_reactions or 0,
            'total_comments': agent.total_comments or 0,
            'updated_at': agent.analytics_updated_at.isoformat() if agent.analytics_updated_at else None
        }
