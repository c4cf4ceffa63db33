"""HTTP tests for / and /physicians."""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from api.database import get_session
from api.main import app
from api.routes.physicians import filters_from_location


def test_root_reports_service_info(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "Physician Finder API"
    assert "/physicians/{npi}" in body["endpoints"].values()


def test_search_returns_paginated_results(client, physicians):
    response = client.get("/physicians/search", params={"limit": 10, "page": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 25
    assert body["total_pages"] == 3
    assert body["current_page"] == 2
    assert len(body["physicians"]) == 10


def test_search_by_state_and_zip(client, physicians):
    response = client.get("/physicians/search", params={"state": "ny", "zip": "1000"})

    body = response.json()
    assert body["total_count"] == 5
    assert {p["address_state"] for p in body["physicians"]} == {"NY"}


def test_location_zip_shortcut(client, physicians):
    response = client.get("/physicians/search", params={"location": "60611"})

    npis = sorted(p["npi"] for p in response.json()["physicians"])
    assert npis == ["1000000001", "1000000014"]


def test_location_state_shortcut(client, physicians):
    response = client.get("/physicians/search", params={"location": "ca"})

    assert response.json()["total_count"] == 6


def test_explicit_state_wins_over_location(client, physicians):
    response = client.get("/physicians/search", params={"location": "IL", "state": "TX"})

    assert {p["address_state"] for p in response.json()["physicians"]} == {"TX"}


def test_search_validates_paging_and_sorting(client):
    assert client.get("/physicians/search", params={"page": 0}).status_code == 422
    assert client.get("/physicians/search", params={"limit": 0}).status_code == 422
    assert client.get("/physicians/search", params={"limit": 101}).status_code == 422
    assert client.get("/physicians/search", params={"sort_by": "distance"}).status_code == 422
    assert client.get("/physicians/search", params={"sort_order": "up"}).status_code == 422


def test_search_store_failure_maps_to_503():
    session = MagicMock(spec=Session)
    session.exec.side_effect = OperationalError("SELECT", {}, Exception("down"))

    app.dependency_overrides[get_session] = lambda: session
    try:
        response = TestClient(app).get("/physicians/search", params={"query": "smith"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["detail"] == "Failed to search physicians. Please try again later."


def test_get_physician(client, physicians):
    response = client.get("/physicians/1000000012")

    assert response.status_code == 200
    body = response.json()
    assert body["npi"] == "1000000012"
    assert body["last_name"] == "Lopez"
    assert body["primary_specialty"]["taxonomy_description"] == "Dermatology"
    assert body["addresses"][0]["zip_code"] == "73301"
    assert body["languages"] == []


def test_get_unknown_physician_is_404(client, physicians):
    response = client.get("/physicians/0000000000")

    assert response.status_code == 404
    assert response.json()["detail"] == "Physician not found"


def test_get_blank_npi_is_400(client):
    response = client.get("/physicians/%20")

    assert response.status_code == 400
    assert response.json()["detail"] == "NPI is required"


# ========================
# filters_from_location
# ========================
def test_filters_from_location_zip():
    filters = filters_from_location(None, None, " 10001 ")
    assert (filters.state, filters.zip) == (None, "10001")


def test_filters_from_location_state():
    filters = filters_from_location(None, None, "NY")
    assert (filters.state, filters.zip) == ("NY", None)


def test_filters_from_location_explicit_values_win():
    filters = filters_from_location("CA", "941", "10001")
    assert (filters.state, filters.zip) == ("CA", "941")


def test_filters_from_location_empty():
    filters = filters_from_location("", "", "  ")
    assert (filters.state, filters.zip) == (None, None)
