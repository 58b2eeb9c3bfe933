"""
HTTP routers, all mounted under ``/api``.
"""

from cliprelay.routers import relay, storage, ai

__all__ = ["relay", "storage", "ai"]
