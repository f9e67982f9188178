"""Tests for the HTTP query API."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from isslive.api import create_app
from isslive.context import build_context
from isslive.store import StorageUnavailable

DESCRIPTOR_FIELDS = ["description", "ops_nom", "eng_nom", "units", "min_value", "max_value", "enum_values", "format_spec"]


@pytest.fixture
def context(settings):
    ctx = build_context(settings)
    ctx.store.create_schema()
    yield ctx
    ctx.close()


@pytest.fixture
def client(context):
    return TestClient(create_app(context))


@pytest.fixture
def populated(context, descriptor):
    context.store.insert("TEMP_1", "20.5", 1000, descriptor)
    context.store.insert("TEMP_1", "21.0", 2000, descriptor)
    context.store.insert("AIRLOCK000001", "760", 1500)
    return context


class TestEmptyStore:
    def test_list_endpoints_return_empty(self, client):
        assert client.get("/api/data").json() == []
        assert client.get("/api/latest").json() == {}
        assert client.get("/api/keys").json() == []

    def test_unknown_key_is_404(self, client):
        response = client.get("/api/data/NOPE")

        assert response.status_code == 404
        assert response.json() == {"error": "No data found for key: NOPE"}


class TestData:
    def test_all_data_grouped_and_sorted(self, client, populated):
        response = client.get("/api/data")

        assert response.status_code == 200
        body = response.json()
        assert [entry["key"] for entry in body] == ["AIRLOCK000001", "TEMP_1"]
        temp = body[1]
        assert temp["units"] == "degC"
        assert temp["ops_nom"] == "TEMP"
        assert [v["timestamp"] for v in temp["values"]] == [2000, 1000]
        assert set(temp["values"][0]) == {"value", "timestamp", "id"}
        assert set(temp) == {"key", "values", *DESCRIPTOR_FIELDS}

    def test_single_key(self, client, populated):
        response = client.get("/api/data/TEMP_1")

        assert response.status_code == 200
        body = response.json()
        assert body["key"] == "TEMP_1"
        assert body["description"] == "Cabin temperature"
        assert [v["value"] for v in body["values"]] == ["21.0", "20.5"]

    def test_key_without_metadata_has_empty_strings(self, client, populated):
        body = client.get("/api/data/AIRLOCK000001").json()

        assert all(body[name] == "" for name in DESCRIPTOR_FIELDS)


class TestLatestAndKeys:
    def test_latest(self, client, populated):
        body = client.get("/api/latest").json()

        assert list(body) == ["AIRLOCK000001", "TEMP_1"]
        assert body["TEMP_1"]["value"] == "21.0"
        assert body["TEMP_1"]["timestamp"] == 2000
        assert body["TEMP_1"]["units"] == "degC"
        assert set(body["TEMP_1"]) == {"value", "timestamp", *DESCRIPTOR_FIELDS}

    def test_keys(self, client, populated):
        body = client.get("/api/keys").json()

        assert [entry["key"] for entry in body] == ["AIRLOCK000001", "TEMP_1"]
        assert set(body[0]) == {"key", *DESCRIPTOR_FIELDS}
        assert body[1]["eng_nom"] == "Cabin Temp 1"


class TestStorageErrors:
    @pytest.mark.parametrize(
        ("path", "method"),
        [
            ("/api/data", "get_all"),
            ("/api/data/TEMP_1", "get_by_key"),
            ("/api/latest", "get_latest"),
            ("/api/keys", "list_keys"),
        ],
    )
    def test_storage_failure_is_500(self, client, context, path, method):
        with patch.object(context.store, method, side_effect=StorageUnavailable("disk I/O error")):
            response = client.get(path)

        assert response.status_code == 500
        assert response.json() == {"error": "disk I/O error"}

    def test_missing_table_recovers(self, client, populated):
        from sqlalchemy import text

        with populated.database.session_scope() as session:
            session.execute(text("DROP TABLE stream_data"))

        assert client.get("/api/data").json() == []


class TestLifespan:
    def test_feed_subscribed_while_app_runs(self, settings, fake_feed):
        context = build_context(settings, feed=fake_feed)
        context.store.create_schema()
        try:
            with TestClient(create_app(context)) as client:
                assert fake_feed.items == list(context.catalog.items)
                fake_feed.deliver("NODE_2_POWER", Value="1.5")
                assert client.get("/api/latest").json()["NODE_2_POWER"]["value"] == "1.5"
            assert fake_feed.unsubscribed == 1
        finally:
            context.close()

        assert fake_feed.disconnected is True

    def test_api_serves_when_feed_subscription_fails(self, settings, fake_feed):
        context = build_context(settings, feed=fake_feed)
        context.store.create_schema()
        context.store.insert("TEMP_1", "20.5", 1000)
        try:
            with patch.object(fake_feed, "subscribe", side_effect=ConnectionError("push server unreachable")):
                with TestClient(create_app(context)) as client:
                    response = client.get("/api/data")

            assert response.status_code == 200
            assert response.json()[0]["key"] == "TEMP_1"
            assert context.ingest.subscription is None
        finally:
            context.close()
