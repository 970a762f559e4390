"""
API package - FastAPI routes and schemas.
"""

from flowcanvas.api.routes import execution, node_types, websocket, workflow

__all__ = ["execution", "node_types", "websocket", "workflow"]
