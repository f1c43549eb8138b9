"""
API tests through FastAPI's TestClient.

The app runs in storage mock mode, so uploads land in an in-memory
bucket and the catalog lives in memory. Using the client as a context
manager runs the lifespan, which initializes storage.
"""

import io
import re
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from src.api.routes import drinks as drink_routes
from src.api.routes import foods as food_routes
from src.config.settings import get_settings
from src.core.storage.keys import key_from_reference
from src.main import create_app


def png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (10, 120, 60)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("STORAGE_MOCK_MODE", "true")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://api.example.com/")
    monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "1")
    get_settings.cache_clear()
    yield create_app()
    get_settings.cache_clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def upload(client, name, data, content_type, prefix=None):
    params = {"prefix": prefix} if prefix else None
    response = client.post(
        "/api/upload",
        params=params,
        files={"file": (name, data, content_type)},
    )
    assert response.status_code == 200, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:
    """Tests for health endpoints."""

    def test_liveness(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["details"]["bucket"] == "mock-bucket"
        assert body["details"]["mock_mode"] is True

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_without_startup(self, app):
        """Without the lifespan, storage is never initialized."""
        client = TestClient(app)

        assert client.get("/health/ready").status_code == 503
        response = client.get("/uploads/a.jpg")
        assert response.status_code == 503
        assert response.json() == {"detail": "storage not ready"}

    def test_head_requires_key(self, client):
        assert client.get("/health/storage/head").status_code == 400

    def test_head_absent(self, client):
        response = client.get("/health/storage/head", params={"key": "foods/none.jpg"})

        assert response.status_code == 404
        assert response.json()["exists"] is False

    def test_head_existing(self, client):
        saved = upload(client, "menu.pdf", b"%PDF-1.4", "application/pdf")

        response = client.get("/health/storage/head", params={"key": saved["filename"]})

        assert response.status_code == 200
        body = response.json()
        assert body["exists"] is True
        assert body["meta"]["content_type"] == "application/pdf"
        assert body["meta"]["size"] == 8


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

class TestUploads:
    """Tests for POST /api/upload and GET /uploads/{key}."""

    def test_upload_and_download(self, client):
        saved = upload(client, "My Photo.JPG", b"\xff\xd8fake-jpeg", "image/jpeg", prefix="foods/")

        assert saved["ok"] is True
        assert re.fullmatch(r"foods/\d+-my-photo\.jpg", saved["filename"])
        assert saved["path"] == f"/uploads/{saved['filename']}"
        assert saved["url"] == f"https://api.example.com{saved['path']}"
        assert saved["size"] == 11

        response = client.get(saved["path"])

        assert response.status_code == 200
        assert response.content == b"\xff\xd8fake-jpeg"
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["cache-control"] == "public, max-age=31536000, immutable"

    def test_prefix_from_form(self, client):
        response = client.post(
            "/api/upload",
            data={"prefix": "banners"},
            files={"file": ("hero.webp", b"RIFF....WEBP", "image/webp")},
        )

        assert response.status_code == 200
        assert response.json()["filename"].startswith("banners/")

    def test_traversal_prefix_is_cleaned(self, client):
        saved = upload(client, "x.txt", b"x", "text/plain", prefix="../../etc")

        assert saved["filename"].startswith("etc/")

    def test_empty_file_rejected(self, client):
        response = client.post("/api/upload", files={"file": ("empty.jpg", b"", "image/jpeg")})

        assert response.status_code == 400

    def test_too_large(self, client):
        data = b"0" * (1024 * 1024 + 1)

        response = client.post("/api/upload", files={"file": ("big.bin", data, "application/octet-stream")})

        assert response.status_code == 413

    def test_download_missing(self, client):
        response = client.get("/uploads/foods/missing.jpg")

        assert response.status_code == 404
        assert response.json() == {"detail": "Not found"}

    def test_download_normalizes_path(self, client):
        saved = upload(client, "a.txt", b"abc", "text/plain", prefix="docs")

        response = client.get(f"/uploads/docs//./{saved['filename'].split('/', 1)[1]}")

        assert response.status_code == 200
        assert response.content == b"abc"


# ---------------------------------------------------------------------------
# Image proxy
# ---------------------------------------------------------------------------

class TestImageProxy:
    """Tests for GET /img/{key}."""

    def test_resize_and_transcode(self, client):
        saved = upload(client, "jollof.png", png_bytes(1000, 500), "image/png", prefix="foods")

        response = client.get(f"/img/{saved['filename']}", params={"w": "100", "fmt": "png"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert "Accept" in [v.strip() for v in response.headers["vary"].split(",")]
        assert "immutable" in response.headers["cache-control"]
        image = Image.open(io.BytesIO(response.content))
        assert image.width <= 100

    def test_auto_format_from_accept(self, client):
        saved = upload(client, "rice.png", png_bytes(50, 50), "image/png")

        response = client.get(
            f"/img/{saved['filename']}",
            params={"fmt": "auto"},
            headers={"Accept": "image/webp,*/*"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/webp"

    def test_width_beyond_source_keeps_size(self, client):
        saved = upload(client, "small.png", png_bytes(80, 40), "image/png")

        response = client.get(f"/img/{saved['filename']}", params={"w": "5000", "fmt": "png"})

        assert Image.open(io.BytesIO(response.content)).size == (80, 40)

    def test_non_image_passes_through(self, client):
        saved = upload(client, "menu.txt", b"rice and beans", "text/plain")

        response = client.get(f"/img/{saved['filename']}", params={"w": "100"})

        assert response.status_code == 200
        assert response.content == b"rice and beans"
        assert response.headers["content-type"].startswith("text/plain")

    def test_unknown_format_served_as_webp(self, client):
        saved = upload(client, "a.png", png_bytes(10, 10), "image/png")

        response = client.get(f"/img/{saved['filename']}", params={"fmt": "bmp"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/webp"
        assert Image.open(io.BytesIO(response.content)).format == "WEBP"

    def test_missing_object(self, client):
        assert client.get("/img/foods/none.png").status_code == 404

    def test_corrupt_image(self, client):
        saved = upload(client, "broken.png", b"not really a png", "image/png")

        response = client.get(f"/img/{saved['filename']}", params={"w": "100"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Image transform failed"}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class TestFoods:
    """Tests for the food catalog endpoints."""

    def create_food(self, client, **fields):
        data = {"name": "Jollof Rice", "price": "2500"}
        data.update(fields)
        files = {"image_file": ("jollof.png", png_bytes(20, 20), "image/png")}
        response = client.post("/api/foods", data=data, files=files)
        assert response.status_code == 201, response.text
        return response.json()

    def test_create_stores_image(self, client):
        food = self.create_food(client, lgas='["Ikeja","Surulere"]', state="Lagos")

        assert food["image"].startswith("/uploads/foods/")
        assert food["lgas"] == ["Ikeja", "Surulere"]
        assert client.get(food["image"]).status_code == 200

    def test_create_without_image(self, client):
        response = client.post("/api/foods", data={"name": "Moi Moi", "price": "800"})

        assert response.status_code == 201
        assert response.json()["image"] is None

    def test_create_rejects_negative_price(self, client):
        response = client.post("/api/foods", data={"name": "Suya", "price": "-1"})

        assert response.status_code == 400

    def test_get_and_missing(self, client):
        food = self.create_food(client)

        assert client.get(f"/api/foods/{food['id']}").json()["name"] == "Jollof Rice"
        missing = client.get("/api/foods/00000000-0000-0000-0000-000000000000")
        assert missing.status_code == 404
        assert missing.json() == {"detail": "Food not found"}

    def test_location_filters(self, client):
        self.create_food(client, name="Lagos Rice", state="Lagos", lgas="Ikeja,Surulere")
        self.create_food(client, name="Abuja Rice", state="FCT", lgas="Garki")

        in_lagos = client.get("/api/foods", params={"state": "Lagos"}).json()
        in_ikeja = client.get("/api/foods", params={"state": "Lagos", "lga": "Ikeja"}).json()
        in_yaba = client.get("/api/foods", params={"state": "Lagos", "lga": "Yaba"}).json()

        assert [f["name"] for f in in_lagos] == ["Lagos Rice"]
        assert [f["name"] for f in in_ikeja] == ["Lagos Rice"]
        assert in_yaba == []

    def test_popular(self, client):
        self.create_food(client, name="Plain", is_popular="false")
        self.create_food(client, name="Star", is_popular="true")

        popular = client.get("/api/foods/popular").json()

        assert [f["name"] for f in popular] == ["Star"]

    def test_update_replaces_image(self, client):
        food = self.create_food(client)
        old_image = food["image"]

        response = client.put(
            f"/api/foods/{food['id']}",
            data={"price": "3000"},
            files={"image_file": ("new.png", png_bytes(30, 30), "image/png")},
        )

        assert response.status_code == 200
        updated = response.json()
        assert updated["price"] == 3000
        assert updated["name"] == "Jollof Rice"
        assert updated["image"] != old_image
        assert client.get(old_image).status_code == 404
        assert client.get(updated["image"]).status_code == 200

    def test_delete_removes_image(self, client):
        food = self.create_food(client)

        response = client.delete(f"/api/foods/{food['id']}")

        assert response.status_code == 200
        assert response.json() == {"message": "Food deleted successfully"}
        assert client.get(food["image"]).status_code == 404
        assert client.get(f"/api/foods/{food['id']}").status_code == 404

    def test_delete_missing(self, client):
        response = client.delete("/api/foods/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404

    def test_update_of_food_deleted_during_upload(self, client, app, monkeypatch):
        """The new image is cleaned up and the client gets 404, not 500."""
        food = self.create_food(client)
        upload_image = food_routes.store_image

        async def upload_then_delete(*args, **kwargs):
            path = await upload_image(*args, **kwargs)
            app.state.foods.remove(UUID(food["id"]))
            return path

        monkeypatch.setattr(food_routes, "store_image", upload_then_delete)

        response = client.put(
            f"/api/foods/{food['id']}",
            data={"price": "3000"},
            files={"image_file": ("new.png", png_bytes(30, 30), "image/png")},
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "Food not found"}
        assert app.state.storage.get_bucket().keys() == [key_from_reference(food["image"])]


class TestDrinks:
    """Tests for the drink catalog endpoints."""

    def test_crud(self, client):
        created = client.post(
            "/api/drinks",
            data={"name": "Zobo", "price": "500"},
            files={"image_file": ("zobo.png", png_bytes(10, 10), "image/png")},
        )
        assert created.status_code == 201
        drink = created.json()
        assert drink["image"].startswith("/uploads/drinks/")

        listed = client.get("/api/drinks").json()
        assert [d["name"] for d in listed] == ["Zobo"]

        renamed = client.put(f"/api/drinks/{drink['id']}", data={"name": "Chapman"})
        assert renamed.json()["name"] == "Chapman"
        assert renamed.json()["image"] == drink["image"]

        deleted = client.delete(f"/api/drinks/{drink['id']}")
        assert deleted.json() == {"message": "Drink deleted"}
        assert client.get(drink["image"]).status_code == 404

    def test_update_of_drink_deleted_during_upload(self, client, app, monkeypatch):
        upload_image = drink_routes.store_image
        drink = client.post("/api/drinks", data={"name": "Zobo", "price": "500"}).json()

        async def upload_then_delete(*args, **kwargs):
            path = await upload_image(*args, **kwargs)
            app.state.drinks.remove(UUID(drink["id"]))
            return path

        monkeypatch.setattr(drink_routes, "store_image", upload_then_delete)

        response = client.put(
            f"/api/drinks/{drink['id']}",
            files={"image_file": ("new.png", png_bytes(10, 10), "image/png")},
        )

        assert response.status_code == 404
        assert app.state.storage.get_bucket().keys() == []
