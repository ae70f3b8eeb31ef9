"""Viewport filtering of charger snapshots."""

from __future__ import annotations

from typing import Sequence

from shapely import STRtree
from shapely.geometry import Point, box

from ...models.domain import Bounds, Charger


class ChargerIndex:
    """R-tree over charger locations, built once per snapshot.

    The tree narrows candidates by envelope; ``Bounds.contains`` makes the
    final inclusive decision so results match a linear scan exactly.
    """

    def __init__(self, chargers: Sequence[Charger]) -> None:
        self._chargers = list(chargers)
        self._tree = STRtree(
            [Point(charger.location.longitude, charger.location.latitude) for charger in self._chargers]
        )

    def __len__(self) -> int:
        return len(self._chargers)

    def within(self, bounds: Bounds) -> list[Charger]:
        if not self._chargers:
            return []
        if bounds.crosses_antimeridian:
            windows = [
                box(bounds.west, bounds.south, 180.0, bounds.north),
                box(-180.0, bounds.south, bounds.east, bounds.north),
            ]
        else:
            windows = [box(bounds.west, bounds.south, bounds.east, bounds.north)]

        hits: set[int] = set()
        for window in windows:
            hits.update(int(index) for index in self._tree.query(window))
        return [
            self._chargers[index]
            for index in sorted(hits)
            if bounds.contains(self._chargers[index].location)
        ]


def filter_in_bounds(chargers: Sequence[Charger], bounds: Bounds, index_threshold: int = 0) -> list[Charger]:
    """Chargers inside ``bounds``, in snapshot order.

    Collections larger than ``index_threshold`` go through ``ChargerIndex``;
    a threshold of 0 always uses the index.
    """
    if len(chargers) > index_threshold:
        return ChargerIndex(chargers).within(bounds)
    return [charger for charger in chargers if bounds.contains(charger.location)]
