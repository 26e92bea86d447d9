"""Local HTTP introspection surface.

FastAPI endpoints for browsing cached events, event schemas and live world
snapshots, served by uvicorn on a background thread.
"""

from simrelay.adapters.web.runner import IntrospectionServerRunner
from simrelay.adapters.web.server import (
    ErrorResponse,
    IntrospectionServer,
    create_introspection_server,
)

__all__ = [
    "ErrorResponse",
    "IntrospectionServer",
    "IntrospectionServerRunner",
    "create_introspection_server",
]
