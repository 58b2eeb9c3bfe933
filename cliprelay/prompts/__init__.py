"""
Prompt builders - pure functions from request data to (system, user) strings.
"""

from cliprelay.prompts import common, notes, imaging

__all__ = ["common", "notes", "imaging"]
