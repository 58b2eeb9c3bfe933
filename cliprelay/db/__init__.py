"""
Database module - models and engine.

Uses SQLModel with SQLite or PostgreSQL; optional at runtime.
"""

from cliprelay.db import models, engine

__all__ = ["models", "engine"]
