"""Export services."""

from .geojson import (
    bounds_to_wkt,
    charger_to_feature,
    chargers_to_feature_collection,
)

__all__ = [
    "bounds_to_wkt",
    "charger_to_feature",
    "chargers_to_feature_collection",
]
