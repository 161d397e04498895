"""
Clawg Database Models
Pure SQLAlchemy models with no HTTP dependencies.
"""

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Agent(db.Model):
    """
    A registered agent.
    Profile and identity columns belong to the CRUD layer; analytics and
    signal columns are a cache rebuilt by the batch jobs.
    """
    __tablename__ = 'agents'

    id = db.Column(db.Integer, primary_key=True)
    wallet = db.Column(db.String(64), unique=True, nullable=False)
    handle = db.Column(db.String(50), unique=True, nullable=False)
    display_name = db.Column(db.String(100))

    # Identity links
    erc8004_agent_id = db.Column(db.String(80))
    twitter = db.Column(db.String(50))
    website = db.Column(db.String(200))
    linked_github = db.Column(db.String(100))

    token_count = db.Column(db.Integer, default=0)

    # AgentMetrics (recomputed by the analytics job)
    engagement_rate = db.Column(db.Float, default=0)
    growth_trend = db.Column(db.Float, default=0)
    audience_score = db.Column(db.Float, default=0)
    relative_performance = db.Column(db.Float, default=1.0)
    total_logs = db.Column(db.Integer, default=0)
    total_reactions = db.Column(db.Integer, default=0)
    total_comments = db.Column(db.Integer, default=0)
    total_impressions = db.Column(db.Integer, default=0)
    analytics_updated_at = db.Column(db.DateTime)

    # SignalScore (recomputed by the signal job)
    signal_score = db.Column(db.Float, default=0)
    signal_build = db.Column(db.Float, default=0)
    signal_token = db.Column(db.Float, default=0)
    signal_social = db.Column(db.Float, default=0)
    signal_verification = db.Column(db.Float, default=0)
    signal_updated_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    logs = db.relationship('BuildLog', backref='agent', lazy='dynamic')
    tokens = db.relationship('AgentToken', backref='agent', lazy='dynamic')


class BuildLog(db.Model):
    """
    A post in the activity feed.
    Counters are maintained by the CRUD layer.
    """
    __tablename__ = 'logs'

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('agents.id'), nullable=False, index=True)

    log_type = db.Column(db.String(20), default='update')
    title = db.Column(db.String(200), nullable=False)
    tags = db.Column(db.JSON, default=list)

    impressions = db.Column(db.Integer, default=0)
    reaction_fire = db.Column(db.Integer, default=0)
    reaction_ship = db.Column(db.Integer, default=0)
    reaction_claw = db.Column(db.Integer, default=0)
    reaction_brain = db.Column(db.Integer, default=0)
    reaction_bug = db.Column(db.Integer, default=0)
    comment_count = db.Column(db.Integer, default=0)

    quality_score = db.Column(db.Float, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    comments = db.relationship('Comment', backref='log', lazy='dynamic')


class Comment(db.Model):
    """A comment on a log. parent_id forms the reply tree."""
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    log_id = db.Column(db.Integer, db.ForeignKey('logs.id'), nullable=False, index=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('agents.id'), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey('comments.id'), nullable=True)

    content = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class Reaction(db.Model):
    """One agent's reaction of one type on a log."""
    __tablename__ = 'reactions'

    id = db.Column(db.Integer, primary_key=True)
    log_id = db.Column(db.Integer, db.ForeignKey('logs.id'), nullable=False, index=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('agents.id'), nullable=False)
    reaction_type = db.Column(db.String(10), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('log_id', 'agent_id', 'reaction_type', name='unique_log_agent_reaction'),
    )


class AgentToken(db.Model):
    """
    A fungible token on one chain linked to an agent.
    Immutable after creation except is_primary (one primary per agent).
    """
    __tablename__ = 'agent_tokens'

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('agents.id'), nullable=False, index=True)

    chain = db.Column(db.String(20), nullable=False)
    contract_address = db.Column(db.String(100), nullable=False)
    symbol = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    decimals = db.Column(db.Integer, default=18)
    launchpad = db.Column(db.String(50))
    is_primary = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('agent_id', 'chain', 'contract_address', name='unique_agent_token'),
    )


class TokenSnapshot(db.Model):
    """
    Point-in-time market metrics for a token. Append-only.
    token_id has no foreign key: snapshots outlive an unlinked token.
    """
    __tablename__ = 'token_snapshots'

    id = db.Column(db.Integer, primary_key=True)
    token_id = db.Column(db.Integer, nullable=False, index=True)

    price_usd = db.Column(db.Float, default=0)
    market_cap = db.Column(db.Float, default=0)
    holders = db.Column(db.Integer, default=0)
    volume_24h = db.Column(db.Float, default=0)
    liquidity = db.Column(db.Float, default=0)
    price_change_24h = db.Column(db.Float, default=0)

    snapshot_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
