"""
API package - FastAPI routes and schemas.
"""

from healthflow.api.routes import graph, websocket

__all__ = ["graph", "websocket"]
