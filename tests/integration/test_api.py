from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from codepoint.api.app import create_app
from codepoint.search.coordinates import CoordinateConverter
from codepoint.store.postcodes import StagedPostcode, insert_postcodes

LATITUDE = 52.0406
LONGITUDE = -0.7594


@pytest.fixture
def client(session_factory) -> TestClient:
    origin = CoordinateConverter().to_grid(LATITUDE, LONGITUDE)
    with session_factory() as session:
        insert_postcodes(
            session,
            [
                StagedPostcode("mk179db", origin.eastings + 120, origin.northings + 50),
                StagedPostcode("mk179dd", origin.eastings + 2000, origin.northings),
                StagedPostcode("ab101aa", 394251, 806376),
            ],
        )
        session.commit()
    return TestClient(create_app(session_factory=session_factory))


@pytest.mark.integration
def test_text_search_endpoint(client: TestClient):
    response = client.get("/postcodes/search/text", params={"text": "mk17"})

    assert response.status_code == 200
    body = response.json()
    assert body["searchTerm"] == "mk17"
    assert body["postcodes"]["total"] == 2
    assert body["postcodes"]["per_page"] == 20
    assert [row["postcode"] for row in body["postcodes"]["data"]] == ["mk179db", "mk179dd"]


@pytest.mark.integration
def test_text_search_without_matches(client: TestClient):
    response = client.get("/postcodes/search/text", params={"text": "zzz"})

    assert response.status_code == 200
    assert response.json()["postcodes"]["data"] == []


@pytest.mark.integration
def test_text_search_requires_two_characters(client: TestClient):
    response = client.get("/postcodes/search/text", params={"text": "m"})

    assert response.status_code == 422


@pytest.mark.integration
def test_location_search_endpoint(client: TestClient):
    response = client.get("/postcodes/search/location", params={"latitude": LATITUDE, "longitude": LONGITUDE})

    assert response.status_code == 200
    body = response.json()
    assert body["searchRadius"] == 0.5
    assert body["count"] == 1
    result = body["results"][0]
    assert result["postcode"] == "mk179db"
    assert 0.1 < result["distance_km"] < 0.2
    assert set(result) == {"postcode", "distance_km", "latitude", "longitude"}


@pytest.mark.integration
def test_location_search_validates_coordinates(client: TestClient):
    response = client.get("/postcodes/search/location", params={"latitude": 123, "longitude": 0})

    assert response.status_code == 422
