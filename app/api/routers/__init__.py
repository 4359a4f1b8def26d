"""
app/api/routers package marker.
"""

from app.api.routers.paginated_execution import router as paginated_execution_router

__all__ = [
    "paginated_execution_router",
]
