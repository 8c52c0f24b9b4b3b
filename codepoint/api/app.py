"""HTTP lookup API over the postcode store."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from codepoint.common.config_loader import Settings
from codepoint.search.coordinates import CoordinateConverter
from codepoint.search.service import DEFAULT_PAGE_SIZE, DEFAULT_RADIUS_KM, SearchService
from codepoint.store.db import build_engine, build_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/postcodes", tags=["postcodes"])


class PostcodeItem(BaseModel):
    postcode: str
    eastings: int
    northings: int


class PostcodePageResponse(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int
    data: list[PostcodeItem]


class TextSearchResponse(BaseModel):
    searchTerm: str
    postcodes: PostcodePageResponse


class NearbyPostcodeItem(BaseModel):
    postcode: str
    distance_km: float = Field(description="Distance from the search point in kilometres")
    latitude: float
    longitude: float


class LocationSearchResponse(BaseModel):
    searchRadius: float
    count: int
    results: list[NearbyPostcodeItem]


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


@router.get("/search/text", response_model=TextSearchResponse, summary="Search postcodes by partial text")
def search_by_text(
    text: str = Query(..., min_length=2, description="Postcode fragment, spaces are ignored"),
    page: int = Query(default=1, ge=1),
    service: SearchService = Depends(get_search_service),
) -> TextSearchResponse:
    result = service.search_text(text, page=page)
    return TextSearchResponse(
        searchTerm=result.search_term,
        postcodes=PostcodePageResponse(
            current_page=result.page,
            per_page=result.per_page,
            total=result.total,
            last_page=result.last_page,
            data=[
                PostcodeItem(postcode=item.postcode, eastings=item.eastings, northings=item.northings)
                for item in result.postcodes
            ],
        ),
    )


@router.get(
    "/search/location",
    response_model=LocationSearchResponse,
    summary="Find postcodes near a latitude/longitude",
)
def search_by_location(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    service: SearchService = Depends(get_search_service),
) -> LocationSearchResponse:
    result = service.search_location(latitude, longitude)
    logger.info("location search lat=%s lon=%s matches=%s", latitude, longitude, result.count)
    return LocationSearchResponse(
        searchRadius=result.search_radius,
        count=result.count,
        results=[
            NearbyPostcodeItem(
                postcode=item.postcode,
                distance_km=item.distance_km,
                latitude=item.latitude,
                longitude=item.longitude,
            )
            for item in result.results
        ],
    )


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    radius_km: float | None = None,
    page_size: int | None = None,
) -> FastAPI:
    if session_factory is None:
        if settings is None:
            raise ValueError("create_app needs settings or a session factory")
        session_factory = build_session_factory(build_engine(settings.database_url))

    if settings is not None:
        radius_km = radius_km if radius_km is not None else settings.radius_km
        page_size = page_size if page_size is not None else settings.page_size

    app = FastAPI(title="Code-Point Open postcode lookup")
    app.state.search_service = SearchService(
        session_factory,
        CoordinateConverter(),
        radius_km=radius_km if radius_km is not None else DEFAULT_RADIUS_KM,
        page_size=page_size if page_size is not None else DEFAULT_PAGE_SIZE,
    )
    app.include_router(router)
    return app
