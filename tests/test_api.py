"""
API tests for the country endpoints, with the database and the external
sources overridden.
"""
import pytest
from fastapi.testclient import TestClient

from config import settings
from database import get_db
from main import app, get_fetcher
from tests.conftest import FakeFetcher, make_country


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def client(test_db, fetcher, tmp_path, monkeypatch):
    """Create test client with overridden database and sources."""
    monkeypatch.setattr(settings, "IMAGE_CACHE_DIR", str(tmp_path / "cache"))

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_fetcher] = lambda: fetcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestRefreshEndpoint:

    def test_refresh_success(self, client):
        response = client.post("/countries/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Countries refreshed successfully"
        assert data["total_countries"] == 5
        assert data["last_refreshed_at"]
        assert data["image_generated"] is True

    def test_timestamps_carry_utc_offset(self, client):
        refreshed = client.post("/countries/refresh").json()["last_refreshed_at"]

        assert refreshed.endswith("+00:00")
        assert client.get("/status").json()["last_refreshed_at"] == refreshed
        assert client.get("/countries/Wakanda").json()["last_refreshed_at"] == refreshed

    def test_refresh_twice_keeps_one_record_per_name(self, client):
        client.post("/countries/refresh")
        client.post("/countries/refresh")

        assert client.get("/status").json()["total_countries"] == 5

    def test_countries_source_down(self, client, fetcher, store):
        fetcher.countries_error = True

        response = client.post("/countries/refresh")

        assert response.status_code == 503
        assert response.json() == {
            "error": "External data source unavailable",
            "details": "Could not fetch data from restcountries.com",
        }
        assert store.count() == 0

    def test_rates_source_down(self, client, fetcher, store):
        fetcher.rates_error = True

        response = client.post("/countries/refresh")

        assert response.status_code == 503
        assert response.json()["details"] == "Could not fetch data from open.er-api.com"
        assert store.count() == 0


class TestReadEndpoints:

    @pytest.fixture(autouse=True)
    def refreshed(self, client):
        assert client.post("/countries/refresh").status_code == 200

    def test_list_all(self, client):
        response = client.get("/countries")

        assert response.status_code == 200
        assert len(response.json()) == 5

    def test_list_filtered_and_sorted(self, client):
        response = client.get("/countries", params={"region": "africa", "sort": "gdp_desc"})

        # Ghana ~3.04B, Wakanda 0.75B, Nigeria ~0.19B
        assert [c["name"] for c in response.json()] == ["Ghana", "Wakanda", "Nigeria"]

    def test_list_by_currency(self, client):
        response = client.get("/countries", params={"currency": "EUR"})

        assert [c["name"] for c in response.json()] == ["Germany"]

    def test_invalid_sort(self, client):
        response = client.get("/countries", params={"sort": "sideways"})

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"
        assert "sort" in response.json()["details"]

    def test_show(self, client):
        response = client.get("/countries/wakanda")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Wakanda"
        assert data["estimated_gdp"] == pytest.approx(750_000_000)
        assert data["currency_code"] == "WKD"

    def test_show_not_found(self, client):
        response = client.get("/countries/Atlantis")

        assert response.status_code == 404
        assert response.json() == {"error": "Country not found"}

    def test_delete_then_show(self, client):
        response = client.delete("/countries/Ghana")

        assert response.status_code == 200
        assert response.json() == {"message": "Country deleted successfully"}
        assert client.get("/countries/Ghana").status_code == 404
        assert "Ghana" not in [c["name"] for c in client.get("/countries").json()]

    def test_delete_not_found(self, client):
        assert client.delete("/countries/Atlantis").status_code == 404

    def test_status(self, client):
        data = client.get("/status").json()

        assert data["total_countries"] == 5
        assert data["last_refreshed_at"] is not None

    def test_image(self, client):
        response = client.get("/countries/image")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content[:8] == b"\x89PNG\r\n\x1a\n"


class TestEmptyCatalog:

    def test_status_before_refresh(self, client):
        assert client.get("/status").json() == {"total_countries": 0, "last_refreshed_at": None}

    def test_image_before_refresh(self, client):
        response = client.get("/countries/image")

        assert response.status_code == 404
        assert response.json() == {"error": "Summary image not found"}

    def test_guinea_does_not_match_guinea_bissau(self, client, store):
        store.upsert(make_country("Guinea-Bissau"))
        store.upsert(make_country("Guinea"))

        assert client.get("/countries/guinea").json()["name"] == "Guinea"
        assert client.get("/countries/bissau").json()["name"] == "Guinea-Bissau"

    def test_root(self, client):
        data = client.get("/").json()
        assert data["message"] == f"Welcome to {settings.APP_NAME}"
