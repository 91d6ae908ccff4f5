"""Tests for collection and environment storage under ~/.tapi."""

import pytest
import yaml

from tapi import storage
from tapi.errors import StorageError
from tapi.models import BasicAuth, Collection, Environment, Request


def _collection(name="My API"):
    return Collection(
        name=name,
        base_url="https://api.example.com/v1",
        requests=[
            Request(name="List", url="/users"),
            Request(name="Login", method="POST", url="login", auth=BasicAuth("u", "{{pw}}")),
        ],
    )


# ── Names ────────────────────────────────────────────────────────────────


class TestNames:
    @pytest.mark.parametrize(
        "name,slug",
        [
            ("My API v2", "my-api-v2"),
            ("  Café / Orders!  ", "cafe-orders"),
            ("***", "untitled"),
        ],
    )
    def test_slugify(self, name, slug):
        assert storage.slugify(name) == slug

    def test_format_name(self):
        assert storage.format_name("my-api_v2") == "My Api V2"


# ── Collections ──────────────────────────────────────────────────────────


class TestCollections:
    def test_save_and_load(self, global_tapi_dir):
        path = storage.save_collection(_collection())
        assert path == global_tapi_dir / "collections" / "my-api.yaml"
        loaded = storage.load_collections()
        assert loaded == [_collection()]

    def test_saved_yaml_shape(self, global_tapi_dir):
        path = storage.save_collection(_collection())
        data = yaml.safe_load(path.read_text())
        assert data["name"] == "My API"
        assert data["requests"][0] == {"name": "List", "method": "GET", "url": "/users"}
        assert not path.with_name(path.name + ".tmp").exists()

    def test_overwrite(self, global_tapi_dir):
        storage.save_collection(_collection())
        updated = _collection()
        updated.requests = updated.requests[:1]
        storage.save_collection(updated)
        assert len(storage.load_collections()[0].requests) == 1

    def test_empty_store(self, global_tapi_dir):
        assert storage.load_collections() == []

    def test_corrupt_file_skipped(self, global_tapi_dir):
        storage.save_collection(_collection())
        (global_tapi_dir / "collections" / "broken.yaml").write_text("name: [unclosed")
        (global_tapi_dir / "collections" / "list.yaml").write_text("- a\n- b\n")
        assert [c.name for c in storage.load_collections()] == ["My API"]

    def test_unnamed_record_named_after_file(self, global_tapi_dir):
        d = global_tapi_dir / "collections"
        d.mkdir()
        (d / "side_project.yaml").write_text("requests: []\n")
        assert storage.load_collections()[0].name == "Side Project"

    def test_get_by_name_or_slug(self, global_tapi_dir):
        storage.save_collection(_collection())
        assert storage.get_collection("my api").name == "My API"
        assert storage.get_collection("my-api").name == "My API"

    def test_get_missing(self, global_tapi_dir):
        with pytest.raises(StorageError, match="not found"):
            storage.get_collection("nope")

    def test_get_request(self, global_tapi_dir):
        col = _collection()
        assert storage.get_request(col, "login").method == "POST"
        with pytest.raises(StorageError):
            storage.get_request(col, "nope")

    def test_delete(self, global_tapi_dir):
        storage.save_collection(_collection())
        storage.delete_collection("My API")
        assert storage.load_collections() == []
        with pytest.raises(StorageError):
            storage.delete_collection("My API")

    def test_export(self, global_tapi_dir, tmp_path):
        src = storage.save_collection(_collection())
        dest = storage.export_collection("My API", tmp_path / "out.yaml")
        assert dest.read_bytes() == src.read_bytes()

    def test_file_name_differs_from_stored_name(self, global_tapi_dir, tmp_path):
        d = global_tapi_dir / "collections"
        d.mkdir()
        src = d / "work.yaml"
        src.write_text("name: Team API\nrequests: []\n")

        assert storage.get_collection("Team API").name == "Team API"
        dest = storage.export_collection("Team API", tmp_path / "out.yaml")
        assert dest.read_bytes() == src.read_bytes()

        assert storage.delete_collection("team api") == src
        assert not src.exists()

    def test_export_missing(self, global_tapi_dir, tmp_path):
        with pytest.raises(StorageError):
            storage.export_collection("nope", tmp_path / "out.yaml")

    def test_demo_collection(self, global_tapi_dir):
        storage.create_demo_collection()
        demo = storage.get_collection("Demo Collection")
        assert demo.base_url == "https://httpbin.org"
        assert [r.name for r in demo.requests] == ["Get IP", "Post JSON", "Get Status"]


# ── Environments ─────────────────────────────────────────────────────────


class TestEnvironments:
    def test_save_load_get(self, global_tapi_dir):
        storage.save_environment(Environment("Staging", {"host": "stg.example.com"}))
        assert storage.load_environments() == [Environment("Staging", {"host": "stg.example.com"})]
        assert storage.get_environment("staging").variables["host"] == "stg.example.com"

    def test_missing(self, global_tapi_dir):
        with pytest.raises(StorageError, match="environment 'prod' not found"):
            storage.get_environment("prod")

    def test_delete(self, global_tapi_dir):
        storage.save_environment(Environment("dev", {}))
        storage.delete_environment("dev")
        assert storage.load_environments() == []
