"""
HTTP boundary: accepts clip requests, streams progress and serves results.
"""

from .app import create_app

__all__ = ["create_app"]
