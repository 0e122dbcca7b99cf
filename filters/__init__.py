"""
Filters Package.

Selects the inventory categories scraped from the platform API.
"""

from .filter import Category, Filter, DEFAULT_DISABLED


__all__ = [
    "Category",
    "Filter",
    "DEFAULT_DISABLED",
]
