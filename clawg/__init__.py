"""
Clawg Signal Engine
Token market data aggregation and agent signal scoring.
"""

from .config import VERSION, VERSION_NAME
from .models import db

__version__ = VERSION
__all__ = ['db', 'VERSION', 'VERSION_NAME']
