"""
app/repositories package marker.
"""

from app.repositories.collected_item_repository import CollectedItemRepository

__all__ = [
    "CollectedItemRepository",
]
