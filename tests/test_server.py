"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from ardisplay.core.config import ArDisplayConfig, ServerConfig
from ardisplay.core.errors import ModelIOError
from ardisplay.server import create_app

from conftest import write_box_model


@pytest.fixture
def config(service_config):
    return ArDisplayConfig(service=service_config)


@pytest.fixture
def client(config):
    with TestClient(create_app(config)) as client:
        yield client


class TestResizeEndpoint:
    """Test POST /resize."""

    def test_explicit_size(self, client, models_dir):
        write_box_model(models_dir, "cube.glb")

        response = client.post("/resize", json={
            "modelId": "cube",
            "sizeSpec": {"width": 2, "height": 2, "depth": 2},
        })

        assert response.status_code == 200
        body = response.json()
        assert body["locationPath"].startswith("/models/resized/cube_")
        assert body["locationPath"].endswith(".glb")
        assert body["cacheHit"] is False
        assert body["scale"] == [2.0, 2.0, 2.0]

    def test_legacy_field_names(self, client, models_dir):
        write_box_model(models_dir, "cube.glb")
        response = client.post("/resize", json={
            "modelName": "cube.glb",
            "desiredSize": {"value": 3},
        })
        assert response.status_code == 200
        assert response.json()["scale"] == [3.0, 3.0, 3.0]

    def test_repeat_is_cache_hit(self, client, models_dir):
        write_box_model(models_dir, "cube.glb")
        payload = {"modelId": "cube", "sizeSpec": {"value": 2}}

        first = client.post("/resize", json=payload).json()
        second = client.post("/resize", json=payload).json()

        assert second["cacheHit"] is True
        assert second["locationPath"] == first["locationPath"]

    def test_variant_is_served(self, client, models_dir):
        write_box_model(models_dir, "cube.glb")
        location = client.post(
            "/resize", json={"modelId": "cube", "sizeSpec": {"value": 2}}
        ).json()["locationPath"]

        response = client.get(location)
        assert response.status_code == 200
        assert response.content[:4] == b"glTF"

    @pytest.mark.parametrize("payload", [
        {"sizeSpec": {"value": 2}},
        {"modelId": "cube"},
        {"modelId": "../cube", "sizeSpec": {"value": 2}},
        {"modelId": "cube", "sizeSpec": {"width": 1, "height": 1}},
        {"modelId": "cube", "sizeSpec": {"value": -2}},
        {"modelId": "cube", "sizeSpec": {"value": 2, "width": 1}},
    ])
    def test_validation_errors(self, client, models_dir, payload):
        write_box_model(models_dir, "cube.glb")
        response = client.post("/resize", json=payload)
        assert response.status_code == 400
        assert response.json()["errorKind"] == "ValidationError"

    def test_malformed_json(self, client):
        response = client.post(
            "/resize",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["errorKind"] == "ValidationError"

    def test_not_found(self, client):
        response = client.post("/resize", json={"modelId": "ghost", "sizeSpec": {"value": 2}})
        assert response.status_code == 404
        assert response.json()["errorKind"] == "NotFoundError"

    def test_zero_extent(self, client, models_dir):
        write_box_model(models_dir, "poster.glb", (1.0, 0.0, 1.0))
        response = client.post("/resize", json={
            "modelId": "poster",
            "sizeSpec": {"width": 1, "height": 1, "depth": 1},
        })
        assert response.status_code == 500
        assert response.json()["errorKind"] == "DivisionByZeroError"

    def test_corrupt_model(self, client, models_dir):
        (models_dir / "broken.glb").write_bytes(b"garbage")
        response = client.post("/resize", json={"modelId": "broken", "sizeSpec": {"value": 2}})
        assert response.status_code == 500
        assert response.json()["errorKind"] == "InternalError"


class TestIORetry:
    """Test the single retry on storage errors."""

    def test_retried_once(self, client, monkeypatch, models_dir):
        write_box_model(models_dir, "cube.glb")
        service = client.app.state.service
        real_resize = service.resize
        calls = []

        def flaky(model_id, size):
            calls.append(model_id)
            if len(calls) == 1:
                raise ModelIOError("disk hiccup", state="persisting")
            return real_resize(model_id, size)

        monkeypatch.setattr(service, "resize", flaky)
        response = client.post("/resize", json={"modelId": "cube", "sizeSpec": {"value": 2}})

        assert response.status_code == 200
        assert len(calls) == 2

    def test_second_failure_reported(self, client, monkeypatch):
        service = client.app.state.service
        calls = []

        def broken(model_id, size):
            calls.append(model_id)
            raise ModelIOError("disk gone", state="persisting")

        monkeypatch.setattr(service, "resize", broken)
        response = client.post("/resize", json={"modelId": "cube", "sizeSpec": {"value": 2}})

        assert response.status_code == 500
        assert response.json() == {"errorKind": "IOError", "message": "disk gone"}
        assert len(calls) == 2

    def test_read_failure_not_retried(self, client, monkeypatch):
        """Test I/O errors outside persisting are reported without a retry."""
        service = client.app.state.service
        calls = []

        def unreadable(model_id, size):
            calls.append(model_id)
            raise ModelIOError("cannot read source", state="loading")

        monkeypatch.setattr(service, "resize", unreadable)
        response = client.post("/resize", json={"modelId": "cube", "sizeSpec": {"value": 2}})

        assert response.status_code == 500
        assert response.json()["errorKind"] == "IOError"
        assert len(calls) == 1


class TestCheckModel:
    """Test GET /check-model/{filename}."""

    def test_exists(self, client, models_dir):
        write_box_model(models_dir, "cube.glb")
        response = client.get("/check-model/cube")
        assert response.status_code == 200
        assert response.json() == {"exists": True, "url": "/models/cube.glb"}

    def test_missing(self, client):
        response = client.get("/check-model/ghost.glb")
        assert response.status_code == 200
        assert response.json()["exists"] is False

    def test_unsafe_name(self, client):
        response = client.get("/check-model/.hidden")
        assert response.status_code == 400


class TestAppSetup:
    """Test application wiring."""

    def test_creates_directories(self, tmp_path):
        config = ArDisplayConfig()
        config.service.models_dir = tmp_path / "store"
        with TestClient(create_app(config)):
            pass
        assert (tmp_path / "store" / "resized").is_dir()

    def test_static_disabled(self, service_config, models_dir):
        write_box_model(models_dir, "cube.glb")
        config = ArDisplayConfig(
            service=service_config,
            server=ServerConfig(serve_static=False),
        )
        with TestClient(create_app(config)) as client:
            assert client.get("/models/cube.glb").status_code == 404

    def test_cors_header(self, client):
        response = client.get("/check-model/ghost", headers={"Origin": "https://shop.example"})
        assert response.headers["access-control-allow-origin"] == "*"
