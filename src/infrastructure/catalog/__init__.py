"""
Repository implementations for catalog items.
"""

from .repository import CatalogRepository, InMemoryCatalogRepository, ItemNotFoundError

__all__ = ["CatalogRepository", "InMemoryCatalogRepository", "ItemNotFoundError"]
