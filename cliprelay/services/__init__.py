"""
Services module - business logic layer.

Services take the gateway and storage explicitly so routes and tests
can supply their own.
"""

from cliprelay.services import notes, pipeline

__all__ = ["notes", "pipeline"]
