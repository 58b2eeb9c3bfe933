"""
cliprelay - phone/desktop text relay with per-user storage and LLM note tools.
"""

__version__ = "0.1.0"
