"""
Admin Module
ISOLATED - Can be completely removed/disabled for production.

Scheduler controls (list jobs, run now, cancel) and token registry maintenance.

To disable: Set ENABLE_ADMIN=false in environment
"""

from .admin_bp import admin_bp

__all__ = ['admin_bp']
