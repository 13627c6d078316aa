"""
Shared fixtures: an in-memory Google Drive served through httpx.MockTransport.
"""

import itertools
import json
import re
from typing import Any, Dict, List, Optional

import httpx
import pytest

from seneschal_sync.storage import MemoryStore
from seneschal_sync.sync import (
    Folder,
    FolderStore,
    GoogleDriveConfig,
    GoogleDriveProvider,
    OAuthAuthenticator,
    RequestUserAgent,
    TokenRecord,
    TokenStore,
)

ACCESS_TOKEN = "test-access-token"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class FakeClock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _parse_multipart(request: httpx.Request) -> Dict[str, bytes]:
    content_type = request.headers["content-type"]
    boundary = content_type.split("boundary=")[1].strip('"').encode()
    parts: Dict[str, bytes] = {}
    for chunk in request.content.split(b"--" + boundary):
        if b"\r\n\r\n" not in chunk:
            continue
        headers, body = chunk.split(b"\r\n\r\n", 1)
        match = re.search(rb'name="([^"]+)"', headers)
        if match:
            parts[match.group(1).decode()] = body[:-2] if body.endswith(b"\r\n") else body
    return parts


class FakeDrive:
    """Minimal Drive v3 backend keeping files in memory."""

    def __init__(self, access_token: str = ACCESS_TOKEN):
        self.access_token = access_token
        self.files: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.token_responses: List[httpx.Response] = []
        self.download_status: Optional[int] = None
        self._ids = itertools.count(1)

    # ----- helpers for tests -----

    def add_file(
        self,
        name: str,
        parent: Optional[str] = None,
        mime_type: str = "application/json",
        content: bytes = b"",
    ) -> str:
        file_id = f"file{next(self._ids)}"
        self.files[file_id] = {
            "id": file_id,
            "name": name,
            "parents": [parent] if parent else [],
            "mimeType": mime_type,
            "content": content,
            "trashed": False,
        }
        return file_id

    def add_folder(self, name: str, parent: Optional[str] = None) -> str:
        return self.add_file(name, parent, FOLDER_MIME_TYPE)

    def find(self, name: str) -> List[Dict[str, Any]]:
        return [f for f in self.files.values() if f["name"] == name]

    def document(self, name: str) -> Any:
        return json.loads(self.find(name)[0]["content"])

    def count(self, method: str, path_prefix: str) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path.startswith(path_prefix)
        )

    # ----- transport -----

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "oauth2.googleapis.com":
            if self.token_responses:
                return self.token_responses.pop(0)
            return httpx.Response(200, json={"access_token": "issued-token", "expires_in": 3600})

        if request.headers.get("authorization") != f"Bearer {self.access_token}":
            return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

        path = request.url.path
        if path == "/drive/v3/files":
            if request.method == "GET":
                return self._list(request)
            return self._create(json.loads(request.content), b"")
        if path == "/upload/drive/v3/files" and request.method == "POST":
            parts = _parse_multipart(request)
            return self._create(json.loads(parts["metadata"]), parts["file"])

        match = re.match(r"^/(upload/)?drive/v3/files/([^/]+)$", path)
        if not match:
            return httpx.Response(404, json={"error": {"message": "Not found"}})

        file = self.files.get(match.group(2))
        if file is None or file["trashed"]:
            return httpx.Response(404, json={"error": {"message": "File not found"}})

        if request.method == "GET":
            if self.download_status:
                return httpx.Response(self.download_status, json={"error": {"message": "Backend Error"}})
            return httpx.Response(200, content=file["content"])
        if request.method == "DELETE":
            del self.files[file["id"]]
            return httpx.Response(204)
        if request.method == "PATCH":
            file["content"] = _parse_multipart(request)["file"]
            return httpx.Response(200, json={"id": file["id"], "name": file["name"]})

        return httpx.Response(405)

    def _create(self, metadata: Dict[str, Any], content: bytes) -> httpx.Response:
        file_id = self.add_file(
            metadata["name"],
            (metadata.get("parents") or [None])[0],
            metadata.get("mimeType", "application/octet-stream"),
            content,
        )
        return httpx.Response(200, json={"id": file_id, "name": metadata["name"]})

    def _list(self, request: httpx.Request) -> httpx.Response:
        query = request.url.params.get("q", "")
        name = re.search(r"name='([^']*)'", query)
        contains = re.search(r"name contains '([^']*)'", query)
        parent = re.search(r"'([^']*)' in parents", query)
        mime = re.search(r"mimeType='([^']*)'", query)

        results = []
        for file in self.files.values():
            if file["trashed"]:
                continue
            if name and file["name"] != name.group(1):
                continue
            if contains and contains.group(1) not in file["name"]:
                continue
            if parent:
                wanted = parent.group(1)
                parents = file["parents"] or ["root"]
                if wanted not in parents:
                    continue
            if mime and file["mimeType"] != mime.group(1):
                continue
            results.append({
                "id": file["id"],
                "name": file["name"],
                "mimeType": file["mimeType"],
                "size": str(len(file["content"])),
            })
        return httpx.Response(200, json={"files": results})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def http_client(drive):
    return httpx.AsyncClient(transport=httpx.MockTransport(drive.handler))


@pytest.fixture
def user_agent():
    return RequestUserAgent("http://localhost:8080/")


@pytest.fixture
def token_store(store):
    return TokenStore(store)


@pytest.fixture
def authenticator(token_store, user_agent, http_client, clock):
    return OAuthAuthenticator(token_store, user_agent, http_client=http_client, clock=clock)


def authenticate(token_store: TokenStore, clock: FakeClock, token: str = ACCESS_TOKEN) -> None:
    """Store a token valid for one hour."""
    token_store.save_token(
        "google",
        TokenRecord(access_token=token, expiry=int(clock() * 1000) + 3600 * 1000),
    )


def make_provider(
    domain: str,
    authenticator: OAuthAuthenticator,
    store: MemoryStore,
    http_client: httpx.AsyncClient,
) -> GoogleDriveProvider:
    return GoogleDriveProvider(
        GoogleDriveConfig(
            domain=domain,
            client_id="client-123",
            redirect_uri="http://localhost:8080/",
        ),
        authenticator,
        FolderStore(store, domain),
        http_client=http_client,
    )


@pytest.fixture
def provider(authenticator, store, http_client):
    return make_provider("gardener", authenticator, store, http_client)


@pytest.fixture
def connected_provider(provider, token_store, clock, drive, store):
    """Provider with a valid token and a configured sync folder."""
    authenticate(token_store, clock)
    folder_id = drive.add_folder("sync")
    FolderStore(store, provider.domain).save_folder(Folder(id=folder_id, name="sync"))
    return provider


@pytest.fixture
def login(token_store, clock):
    """Returns a function storing a valid Google token."""
    return lambda token=ACCESS_TOKEN: authenticate(token_store, clock, token)


@pytest.fixture
def provider_factory(authenticator, http_client):
    """Builds providers for other domains sharing the same identity."""
    return lambda domain, store: make_provider(domain, authenticator, store, http_client)
