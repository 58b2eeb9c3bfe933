"""
Tasks module - background job definitions.

Jobs run on an in-process APScheduler started by the app lifespan.
"""

from cliprelay.tasks import schedule

__all__ = ["schedule"]
