"""Text and radius search over the postcode store.

Radius search is two-phase: a square bounding box of side ``2 * radius``
around the projected origin is fetched from the store, then each candidate's
distance is measured through the coordinate converter and only those strictly
inside the radius are kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from codepoint.common.postcode import normalise_search_term
from codepoint.search.coordinates import GridPoint
from codepoint.store.db import session_scope
from codepoint.store.models import Postcode
from codepoint.store.postcodes import postcodes_in_bounding_box, search_postcodes_by_text

DEFAULT_RADIUS_KM = 0.5
DEFAULT_PAGE_SIZE = 20
DISTANCE_PLACES = Decimal("0.001")
COORDINATE_PLACES = 6


class Converter(Protocol):
    def to_grid(self, latitude: float, longitude: float) -> GridPoint: ...

    def to_wgs84(self, point: GridPoint) -> tuple[float, float]: ...

    def distance_m(self, origin: GridPoint, other: GridPoint) -> float: ...


@dataclass(frozen=True)
class BoundingBox:
    min_eastings: float
    max_eastings: float
    min_northings: float
    max_northings: float


@dataclass(frozen=True)
class NearbyPostcode:
    postcode: str
    distance_km: float
    latitude: float
    longitude: float


@dataclass(frozen=True)
class LocationSearchResult:
    search_radius: float
    count: int
    results: list[NearbyPostcode]


@dataclass(frozen=True)
class PostcodeSummary:
    postcode: str
    eastings: int
    northings: int


@dataclass(frozen=True)
class TextSearchResult:
    search_term: str
    page: int
    per_page: int
    total: int
    last_page: int
    postcodes: list[PostcodeSummary]


def bounding_box(eastings: float, northings: float, radius_km: float) -> BoundingBox:
    radius_m = radius_km * 1000
    return BoundingBox(
        min_eastings=eastings - radius_m,
        max_eastings=eastings + radius_m,
        min_northings=northings - radius_m,
        max_northings=northings + radius_m,
    )


def metres_to_km(distance_m: float) -> float:
    return float(Decimal(str(distance_m / 1000)).quantize(DISTANCE_PLACES, rounding=ROUND_HALF_UP))


class SearchService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        converter: Converter,
        *,
        radius_km: float = DEFAULT_RADIUS_KM,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.session_factory = session_factory
        self.converter = converter
        self.radius_km = radius_km
        self.page_size = page_size

    def search_text(self, text: str, page: int = 1) -> TextSearchResult:
        term = normalise_search_term(text)
        with session_scope(self.session_factory) as session:
            result = search_postcodes_by_text(session, term, page=page, per_page=self.page_size)
            postcodes = [
                PostcodeSummary(postcode=row.postcode, eastings=row.eastings, northings=row.northings)
                for row in result.items
            ]
        return TextSearchResult(
            search_term=term,
            page=result.page,
            per_page=result.per_page,
            total=result.total,
            last_page=result.last_page,
            postcodes=postcodes,
        )

    def nearby_candidates(self, origin: GridPoint) -> list[Postcode]:
        box = bounding_box(origin.eastings, origin.northings, self.radius_km)
        with session_scope(self.session_factory) as session:
            return postcodes_in_bounding_box(
                session,
                min_eastings=box.min_eastings,
                max_eastings=box.max_eastings,
                min_northings=box.min_northings,
                max_northings=box.max_northings,
            )

    def within_radius(self, origin: GridPoint, candidates: list[Postcode]) -> list[NearbyPostcode]:
        results: list[NearbyPostcode] = []
        for candidate in candidates:
            point = GridPoint(eastings=candidate.eastings, northings=candidate.northings)
            distance_km = metres_to_km(self.converter.distance_m(origin, point))
            if distance_km >= self.radius_km:
                continue
            latitude, longitude = self.converter.to_wgs84(point)
            results.append(
                NearbyPostcode(
                    postcode=candidate.postcode,
                    distance_km=distance_km,
                    latitude=round(latitude, COORDINATE_PLACES),
                    longitude=round(longitude, COORDINATE_PLACES),
                )
            )
        return results

    def search_location(self, latitude: float, longitude: float) -> LocationSearchResult:
        origin = self.converter.to_grid(latitude, longitude)
        candidates = self.nearby_candidates(origin)
        results = self.within_radius(origin, candidates)
        return LocationSearchResult(search_radius=self.radius_km, count=len(results), results=results)
