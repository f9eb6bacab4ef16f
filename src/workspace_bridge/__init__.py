"""
Workspace Bridge - connects workspace settings messages to Workspace custom resources.

Inbound settings messages are applied to the cluster as Workspace objects and
status changes observed on those objects are published back to the queue.
"""

__version__ = "0.1.0"


def get_app():
    """Get the FastAPI application instance (lazy import to avoid initialization issues)."""
    from .main import app
    return app


__all__ = ["get_app", "__version__"]
