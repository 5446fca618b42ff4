"""HTTP boundary tests: envelope shape, status mapping and buffering."""

import os
import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from filevault.api.dependencies import get_file_service, get_object_store, get_upload_pipeline
from filevault.core.config import settings
from filevault.core.security import get_current_user
from filevault.services.file_service import FileService
from main import app

OWNER = "user-1"


@pytest.fixture
def buffer_dir(tmp_path, monkeypatch):
    path = tmp_path / "buffers"
    monkeypatch.setattr(settings, "TEMP_DIR", str(path))
    return path


@pytest.fixture
def client(repository, pipeline, store, buffer_dir):
    service = FileService(repository, pipeline, store)
    app.dependency_overrides[get_current_user] = lambda: {"_id": OWNER}
    app.dependency_overrides[get_file_service] = lambda: service
    app.dependency_overrides[get_upload_pipeline] = lambda: pipeline
    app.dependency_overrides[get_object_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, name="notes.txt", content=b"hello", mime="text/plain", url="/api/files/upload"):
    return client.post(url, files={"file": (name, content, mime)})


class TestFileRoutes:
    def test_upload(self, client, repository, buffer_dir):
        response = upload(client)
        body = response.json()

        assert response.status_code == 201
        assert body["success"] is True
        assert body["statusCode"] == 201
        assert body["message"] == "File uploaded and saved successfully"
        assert body["data"]["sharableLink"] == body["data"]["fileData"]["url"]
        assert body["data"]["fileData"]["fileType"] == "document"
        assert body["data"]["fileData"]["mime_type"] == "text/plain"
        assert len(repository.records) == 1
        assert os.listdir(buffer_dir) == []

    def test_upload_video(self, client):
        response = upload(client, "clip.mp4", b"\x00" * 64, "video/mp4")
        file_data = response.json()["data"]["fileData"]
        assert response.status_code == 201
        assert file_data["is_hls"] is True
        assert file_data["url"].endswith("master.m3u8")

    def test_missing_file(self, client):
        response = client.post("/api/files/upload")
        assert response.status_code == 400
        assert response.json() == {
            "statusCode": 400,
            "success": False,
            "data": None,
            "message": "File is required",
        }

    def test_unsupported_type(self, client, buffer_dir):
        response = upload(client, "archive.zip", b"PK", "application/zip")
        assert response.status_code == 415
        assert response.json()["message"] == "Unsupported file type"
        assert not buffer_dir.exists() or os.listdir(buffer_dir) == []

    def test_too_large_while_buffering(self, client, buffer_dir, monkeypatch):
        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 4)
        response = upload(client, content=b"123456")
        assert response.status_code == 400
        assert response.json()["message"].startswith("File size too large")
        assert response.json()["data"] is None
        assert os.listdir(buffer_dir) == []

    def test_store_failure_is_500_without_data(self, client, s3_client, repository):
        s3_client.fail_uploads_matching = "files/"
        response = upload(client)
        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["data"] is None
        assert repository.records == {}

    def test_unavailable_service_buffers_nothing(self, client, buffer_dir):
        def unavailable():
            raise RuntimeError("MongoDB is not initialized")

        app.dependency_overrides[get_file_service] = unavailable
        response = TestClient(app, raise_server_exceptions=False).post(
            "/api/files/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 500
        assert not buffer_dir.exists() or os.listdir(buffer_dir) == []

    def test_list(self, client):
        upload(client, "a.txt")
        upload(client, "b.png", b"png", "image/png")
        response = client.get("/api/files/all")
        assert response.status_code == 200
        assert len(response.json()["data"]) == 2

    def test_update(self, client, s3_client):
        created = upload(client, "a.txt").json()["data"]["fileData"]
        response = client.put(
            f"/api/files/update/{created['_id']}",
            files={"file": ("b.png", b"png", "image/png")},
        )
        updated = response.json()["data"]["file"]
        assert response.status_code == 200
        assert updated["_id"] == created["_id"]
        assert updated["resource_type"] == "image"
        assert list(s3_client.objects) == [f"image/{updated['remote_id']}"]

    def test_update_unknown_file(self, client, buffer_dir):
        response = client.put(
            "/api/files/update/64b7f0c2a1b2c3d4e5f60718",
            files={"file": ("b.png", b"png", "image/png")},
        )
        assert response.status_code == 404
        assert os.listdir(buffer_dir) == []

    def test_delete(self, client, repository, s3_client):
        created = upload(client).json()["data"]["fileData"]
        response = client.delete(f"/api/files/delete/{created['_id']}")
        assert response.status_code == 200
        assert response.json()["message"] == "File deleted successfully"
        assert repository.records == {}
        assert s3_client.objects == {}


class TestUploadRoutes:
    def test_pipeline_only_upload(self, client, repository):
        response = upload(client, url="/api/upload/upload")
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["is_adaptive_stream"] is False
        assert data["remote_id"].startswith("files/")
        assert repository.records == {}

    def test_delete_remote(self, client, s3_client):
        data = upload(client, url="/api/upload/upload").json()["data"]
        response = client.request(
            "DELETE", "/api/upload/delete", json={"publicId": data["remote_id"], "resourceType": "raw"}
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"publicId": data["remote_id"]}
        assert s3_client.objects == {}

    def test_delete_remote_requires_id(self, client):
        response = client.request("DELETE", "/api/upload/delete", json={})
        assert response.status_code == 400
        assert response.json()["message"] == "Public ID is required"


class TestAuthentication:
    @pytest.fixture
    def anonymous_client(self, repository, pipeline, store, buffer_dir, monkeypatch):
        monkeypatch.setattr(settings, "ACCESS_TOKEN_SECRET", "test-secret")
        service = FileService(repository, pipeline, store)
        app.dependency_overrides[get_file_service] = lambda: service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_missing_token(self, anonymous_client):
        response = anonymous_client.get("/api/files/all")
        assert response.status_code == 401
        assert response.json()["message"] == "Please login to access this resource"

    def test_invalid_token(self, anonymous_client):
        response = anonymous_client.get("/api/files/all", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    def test_expired_token(self, anonymous_client):
        token = jwt.encode({"_id": OWNER, "exp": int(time.time()) - 60}, "test-secret", algorithm="HS256")
        response = anonymous_client.get("/api/files/all", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert "expired" in response.json()["message"]

    def test_valid_token_from_cookie(self, anonymous_client):
        token = jwt.encode({"_id": OWNER, "exp": int(time.time()) + 600}, "test-secret", algorithm="HS256")
        anonymous_client.cookies.set("accessToken", token)
        response = anonymous_client.get("/api/files/all")
        assert response.status_code == 200
        assert response.json()["data"] == []


class TestMisc:
    def test_health(self):
        response = TestClient(app).get("/api/health")
        assert response.status_code == 200
        assert response.json()["message"] == "Server is healthy"

    def test_unknown_route(self):
        response = TestClient(app).get("/api/nope")
        assert response.status_code == 404
        assert response.json()["message"] == "Route /api/nope not found"
        assert response.json()["success"] is False
