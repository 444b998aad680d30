"""
API v1 package.

Contains versioned API routes for the Listening Circle auth API.
"""

from listening_circle.api.v1.routes import router

__all__ = ["router"]
