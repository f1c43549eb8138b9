"""
Catalog domain - food and drink items.
"""

from .models import Drink, Food

__all__ = ["Drink", "Food"]
