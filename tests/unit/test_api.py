"""
Tests for the sync HTTP API.
"""

import json
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from seneschal_sync.api import routes
from seneschal_sync.app import DomainSync
from seneschal_sync.config import GoogleConfig, SyncSettings
from seneschal_sync.local import JsonFileDataSource
from seneschal_sync.main import create_app
from seneschal_sync.sync import TokenRecord, TokenStore


@pytest.fixture
def settings(tmp_path):
    return SyncSettings(
        domain="gardener",
        google=GoogleConfig(client_id="client-123"),
        data_path=tmp_path / "gardener-data.json",
    )


@pytest.fixture
def domain_sync(settings, store, http_client):
    return DomainSync(
        settings=settings,
        data_source=JsonFileDataSource(settings.data_path),
        store=store,
        http_client=http_client,
    )


@pytest.fixture
def client(settings, domain_sync):
    with TestClient(create_app(settings, domain_sync)) as test_client:
        yield test_client


@pytest.fixture
def signed_in(store, drive):
    """Store a token valid against the wall clock used by the app."""
    TokenStore(store).save_token(
        "google",
        TokenRecord(access_token=drive.access_token, expiry=int(time.time() * 1000) + 3600 * 1000),
    )


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "domain": "gardener"}

    def test_routes_unavailable_without_app(self):
        routes.set_domain_sync(None)

        with pytest.raises(HTTPException) as exc_info:
            routes.get_domain_sync()

        assert exc_info.value.status_code == 503


class TestOAuthRoutes:
    """Tests for the OAuth redirect target."""

    def test_start_redirects_to_google(self, client, store):
        response = client.get("/sync/oauth/google", follow_redirects=False)

        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        params = parse_qs(urlsplit(location).query)
        assert params["state"][0] == store.get_json("oauth-google")["state"]

    def test_start_requires_client_id(self, tmp_path, store, http_client):
        settings = SyncSettings(domain="gardener", data_path=tmp_path / "d.json")
        domain_sync = DomainSync(
            settings, JsonFileDataSource(settings.data_path), store, http_client=http_client
        )

        with TestClient(create_app(settings, domain_sync)) as test_client:
            response = test_client.get("/sync/oauth/google", follow_redirects=False)

        assert response.status_code == 503

    def test_full_flow(self, client, store):
        location = client.get("/sync/oauth/google", follow_redirects=False).headers["location"]
        state = parse_qs(urlsplit(location).query)["state"][0]

        response = client.get("/sync/oauth/google/callback", params={"code": "c", "state": state})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert store.get_json("token-google")["accessToken"] == "issued-token"
        assert store.get("oauth-google") is None
        assert client.get("/sync/status").json()["connected"] is True

    def test_callback_with_malformed_token_response(self, client, store, drive):
        drive.token_responses.append(httpx.Response(200, json={"token_type": "Bearer"}))
        location = client.get("/sync/oauth/google", follow_redirects=False).headers["location"]
        state = parse_qs(urlsplit(location).query)["state"][0]

        response = client.get("/sync/oauth/google/callback", params={"code": "c", "state": state})

        assert response.status_code == 400
        assert response.json()["detail"] == "Token exchange failed: invalid token response"
        assert store.get("token-google") is None

    def test_callback_missing_parameters(self, client):
        response = client.get("/sync/oauth/google/callback")

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing code or state parameter"

    def test_callback_provider_error(self, client):
        response = client.get("/sync/oauth/google/callback", params={"error": "access_denied"})

        assert response.status_code == 400
        assert response.json()["detail"] == "OAuth error: access_denied"

    def test_callback_state_mismatch(self, client, store):
        client.get("/sync/oauth/google", follow_redirects=False)

        response = client.get(
            "/sync/oauth/google/callback", params={"code": "c", "state": "forged"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid state parameter"
        assert store.get("token-google") is None

    def test_disconnect(self, client, signed_in, store):
        response = client.post("/sync/disconnect")

        assert response.status_code == 200
        assert store.get("token-google") is None
        assert client.get("/sync/status").json()["connected"] is False


class TestStatusRoutes:
    """Tests for status and sync runs."""

    def test_initial_status(self, client):
        body = client.get("/sync/status").json()

        assert body == {
            "domain": "gardener",
            "status": "idle",
            "error": None,
            "last_sync": None,
            "connected": False,
            "folder_configured": False,
            "can_sync": False,
            "folder": None,
        }

    def test_run_without_connection(self, client):
        response = client.post("/sync/run")

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "Not connected to sync provider"}

    def test_run_without_folder(self, client, signed_in):
        response = client.post("/sync/run")

        assert response.json() == {"success": False, "error": "No sync folder configured"}

    def test_select_folder_and_sync(self, client, signed_in, settings, drive):
        records = [{"id": "1", "updatedAt": "2025-01-01T00:00:00Z", "name": "Tomato"}]
        settings.data_path.write_text(json.dumps(records))

        folder = client.post("/sync/folder", json={"name": "Seneschal"})
        assert folder.status_code == 200
        assert folder.json()["name"] == "Seneschal"

        run = client.post("/sync/run")
        assert run.json() == {"success": True, "error": None}

        assert drive.document("gardener-data.json")["data"] == records

        status = client.get("/sync/status").json()
        assert status["status"] == "idle"
        assert status["can_sync"] is True
        assert status["last_sync"].endswith("Z")
        assert status["folder"]["id"] == folder.json()["id"]

    def test_sync_pulls_remote_into_local_file(self, client, signed_in, settings, drive):
        folder_id = client.post("/sync/folder", json={"name": "Seneschal"}).json()["id"]
        remote = [{"id": "9", "updatedAt": "2025-01-01T00:00:00Z"}]
        drive.add_file(
            "gardener-data.json",
            folder_id,
            content=json.dumps({"domain": "gardener", "version": 1, "data": remote}).encode(),
        )

        assert client.post("/sync/run").json()["success"] is True

        assert json.loads(settings.data_path.read_text()) == remote

    def test_sync_failure_reported(self, client, signed_in, drive):
        client.post("/sync/folder", json={"name": "Seneschal"})
        drive.access_token = "rotated"

        body = client.post("/sync/run").json()

        assert body["success"] is False
        assert body["error"] == "Invalid Credentials"
        assert client.get("/sync/status").json()["status"] == "error"


class TestFolderRoutes:
    """Tests for folder selection."""

    def test_select_requires_connection(self, client):
        response = client.post("/sync/folder", json={"name": "Seneschal"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Not authenticated with Google"

    def test_select_rejects_empty_name(self, client):
        assert client.post("/sync/folder", json={"name": ""}).status_code == 422

    def test_remove_folder(self, client, signed_in):
        client.post("/sync/folder", json={"name": "Seneschal"})

        assert client.delete("/sync/folder").json() == {"success": True}
        assert client.get("/sync/status").json()["folder_configured"] is False


class TestProjectRoutes:
    """Tests for cross-domain aggregation."""

    def test_unavailable_when_not_connected(self, client):
        assert client.get("/sync/projects").json() == {"available": False, "projects": {}}

    def test_reads_other_domains(self, client, signed_in, drive):
        folder_id = client.post("/sync/folder", json={"name": "Seneschal"}).json()["id"]
        drive.add_file(
            "trainer-data.json",
            folder_id,
            content=b'{"domain": "trainer", "version": 1, "data": [], "lastModified": "t"}',
        )

        body = client.get("/sync/projects").json()

        assert body["available"] is True
        assert body["projects"]["trainer"]["domain"] == "trainer"
        assert body["projects"]["soapmaker"] is None
        assert body["projects"]["gardener"] is None
