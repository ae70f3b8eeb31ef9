"""Charger directory services."""

from .index import ChargerIndex, filter_in_bounds
from .search import SearchCriteria, run_search
from .service import ChargerDirectory

__all__ = [
    "ChargerDirectory",
    "ChargerIndex",
    "SearchCriteria",
    "filter_in_bounds",
    "run_search",
]
