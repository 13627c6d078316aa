"""
Tests for the per-domain sync facade, the JSON data source and app wiring.
"""

import logging

import pytest

from seneschal_sync.app import DomainSync
from seneschal_sync.config import GoogleConfig, LogLevel, SyncSettings, ValidationError
from seneschal_sync.local import JsonFileDataSource
from seneschal_sync.main import configure_logging, create_app, create_domain_sync
from seneschal_sync.storage import EncryptedFileStore
from seneschal_sync.sync import Folder, SyncStatus


class RecordingSource:
    """In-memory data source recording merges."""

    def __init__(self, data=None):
        self.data = data
        self.merged = []

    async def export_all_data(self):
        return self.data

    async def merge_data(self, data):
        self.merged.append(data)
        self.data = data


@pytest.fixture
def settings(tmp_path):
    return SyncSettings(
        domain="gardener",
        google=GoogleConfig(client_id="client-123"),
        data_path=tmp_path / "gardener-data.json",
        project_domains=["trainer", "soapmaker"],
    )


class TestJsonFileDataSource:
    """Tests for JsonFileDataSource."""

    @pytest.mark.asyncio
    async def test_missing_file_exports_none(self, tmp_path):
        assert await JsonFileDataSource(tmp_path / "none.json").export_all_data() is None

    @pytest.mark.asyncio
    async def test_merge_replaces_content(self, tmp_path):
        source = JsonFileDataSource(tmp_path / "sub" / "data.json")

        await source.merge_data({"items": [1]})
        await source.merge_data({"items": [2]})

        assert await source.export_all_data() == {"items": [2]}
        assert [p.name for p in (tmp_path / "sub").iterdir()] == ["data.json"]


class TestDomainSync:
    """Tests for DomainSync."""

    @pytest.mark.asyncio
    async def test_sync_without_remote_changes_keeps_local(self, settings, store, http_client, drive):
        source = RecordingSource([{"id": "1", "updatedAt": "2025-01-01T00:00:00Z"}])
        domain_sync = DomainSync(settings, source, store, http_client=http_client)
        store.set_json("token-google", {"accessToken": drive.access_token, "expiry": 10 ** 14})
        domain_sync.provider.folder_store.save_folder(Folder(id=drive.add_folder("sync"), name="sync"))

        outcome = await domain_sync.sync()

        assert outcome.success is True
        assert source.merged == [source.data]
        assert domain_sync.get_status() == SyncStatus.IDLE
        assert domain_sync.get_last_sync() is not None

    @pytest.mark.asyncio
    async def test_empty_result_not_written(self, settings, store, http_client, drive):
        source = RecordingSource(None)
        domain_sync = DomainSync(settings, source, store, http_client=http_client)
        store.set_json("token-google", {"accessToken": drive.access_token, "expiry": 10 ** 14})
        domain_sync.provider.folder_store.save_folder(Folder(id=drive.add_folder("sync"), name="sync"))

        # Nothing local and nothing remote: merged snapshot is None
        assert (await domain_sync.sync()).success is True
        assert source.merged == []

    @pytest.mark.asyncio
    async def test_status_listener(self, settings, store):
        domain_sync = DomainSync(settings, RecordingSource([]), store)
        events = []
        domain_sync.on_status_change(lambda status, error: events.append(status))

        outcome = await domain_sync.sync()

        assert outcome.error == "Not connected to sync provider"
        assert events == []
        assert domain_sync.can_sync() is False
        await domain_sync.close()

    @pytest.mark.asyncio
    async def test_project_data_none_when_not_connected(self, settings, store):
        domain_sync = DomainSync(settings, RecordingSource(), store)

        assert await domain_sync.fetch_all_project_data() is None

    @pytest.mark.asyncio
    async def test_project_data_for_configured_domains(self, settings, store, http_client, drive):
        domain_sync = DomainSync(settings, RecordingSource(), store, http_client=http_client)
        store.set_json("token-google", {"accessToken": drive.access_token, "expiry": 10 ** 14})
        folder_id = drive.add_folder("sync")
        domain_sync.provider.folder_store.save_folder(Folder(id=folder_id, name="sync"))
        drive.add_file("trainer-data.json", folder_id, content=b'{"domain": "trainer", "data": []}')

        projects = await domain_sync.fetch_all_project_data()

        assert projects == {"trainer": {"domain": "trainer", "data": []}, "soapmaker": None}

        only = await domain_sync.fetch_all_project_data(["soapmaker"])
        assert only == {"soapmaker": None}


class TestAppWiring:
    """Tests for create_app and helpers."""

    def test_invalid_config_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            create_app(SyncSettings(domain="Bad Domain"))

        assert len(exc_info.value.errors) == 1

    def test_default_domain_sync_uses_encrypted_store(self, settings):
        domain_sync = create_domain_sync(settings)

        assert isinstance(domain_sync.data_source, JsonFileDataSource)
        assert domain_sync.data_source.path == settings.data_path
        assert isinstance(domain_sync.authenticator.token_store.store, EncryptedFileStore)

    def test_configure_logging(self):
        configure_logging(LogLevel.DEBUG)

        assert logging.getLogger().level == logging.DEBUG

        configure_logging(LogLevel.INFO)
