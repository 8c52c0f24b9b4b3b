"""Conversion between WGS84 latitude/longitude and British National Grid."""

from __future__ import annotations

import math
from dataclasses import dataclass

from pyproj import CRS, Transformer

WGS84_EPSG = 4326
BRITISH_NATIONAL_GRID_EPSG = 27700


@dataclass(frozen=True)
class GridPoint:
    eastings: float
    northings: float


class CoordinateConverter:
    def __init__(self) -> None:
        wgs84 = CRS.from_epsg(WGS84_EPSG)
        grid = CRS.from_epsg(BRITISH_NATIONAL_GRID_EPSG)
        self._to_grid = Transformer.from_crs(wgs84, grid, always_xy=True)
        self._to_wgs84 = Transformer.from_crs(grid, wgs84, always_xy=True)
        self._metres_per_unit = grid.axis_info[0].unit_conversion_factor

    def to_grid(self, latitude: float, longitude: float) -> GridPoint:
        """Project to whole-metre eastings/northings (truncated, not rounded)."""
        eastings, northings = self._to_grid.transform(longitude, latitude)
        return GridPoint(eastings=int(eastings), northings=int(northings))

    def to_wgs84(self, point: GridPoint) -> tuple[float, float]:
        longitude, latitude = self._to_wgs84.transform(point.eastings, point.northings)
        return latitude, longitude

    def distance_m(self, origin: GridPoint, other: GridPoint) -> float:
        """Straight-line distance on the projected grid, in metres."""
        grid_units = math.hypot(other.eastings - origin.eastings, other.northings - origin.northings)
        return grid_units * self._metres_per_unit
