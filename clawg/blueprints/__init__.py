"""
Clawg Blueprints
HTTP routes - thin wrappers around services.
"""

from .public import public_bp
from .tokens import tokens_bp
from .signal import signal_bp
from .cron import cron_bp

__all__ = [
    'public_bp',
    'tokens_bp',
    'signal_bp',
    'cron_bp',
]
