"""
Chicken & Rice API - backend for a food-ordering storefront.

This package contains the complete application:
- core: Framework-agnostic domain types (storage keys, catalog items)
- infrastructure: Cloud storage, image transforms, catalog persistence
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
