"""Tests for persisted site snapshots."""

import json

import pytest

from owlanter.errors import SnapshotError
from owlanter.scripts.models import ScriptVariant
from owlanter.scripts.snapshot import (
    SiteSnapshot,
    load_known_scripts,
    read_snapshot,
    write_snapshot,
)

PAYLOAD = {
    "SiteId": 12,
    "Title": "Orders",
    "ReferenceType": "Issues",
    "SiteSettings": {
        "ServerScripts": [{"Id": 1, "Title": "Check", "Body": "x();", "BeforeCreate": True}],
        "Scripts": [{"Id": 2, "Title": "Banner", "Body": "b();"}, {"Title": "No id"}],
    },
}


class TestFromPayload:
    def test_envelope_is_unwrapped(self):
        snapshot = SiteSnapshot.from_payload({"Response": {"Data": PAYLOAD}})

        assert snapshot.title == "Orders"
        assert snapshot.reference_type == "Issues"
        assert snapshot.server_scripts[0].flags["before-create"] is True

    def test_by_id_skips_idless_scripts(self):
        snapshot = SiteSnapshot.from_payload(PAYLOAD)
        assert list(snapshot.by_id(ScriptVariant.client)) == [2]

    def test_missing_settings_is_empty(self):
        snapshot = SiteSnapshot.from_payload({"Title": "Bare"})
        assert snapshot.server_scripts == []
        assert snapshot.client_scripts == []

    def test_script_list_must_be_a_list(self):
        with pytest.raises(SnapshotError, match="ServerScripts"):
            SiteSnapshot.from_payload({"SiteSettings": {"ServerScripts": {"Id": 1}}})

    def test_settings_must_be_an_object(self):
        with pytest.raises(SnapshotError):
            SiteSnapshot.from_payload({"SiteSettings": ["nope"]})


class TestReadSnapshot:
    def test_written_snapshot_reads_back(self, tmp_path):
        path = tmp_path / "site-setting.json"
        write_snapshot(path, SiteSnapshot.from_payload(PAYLOAD))

        snapshot = read_snapshot(path)

        assert snapshot.raw["SiteId"] == 12
        assert [s.id for s in snapshot.client_scripts] == [2, None]

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "site-setting.json"
        path.write_text("{broken")

        with pytest.raises(SnapshotError, match="Malformed"):
            read_snapshot(path)

    def test_non_object_payload(self, tmp_path):
        path = tmp_path / "site-setting.json"
        path.write_text(json.dumps([1, 2, 3]))

        with pytest.raises(SnapshotError, match="not an object"):
            read_snapshot(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SnapshotError):
            read_snapshot(tmp_path / "missing.json")


class TestLoadKnownScripts:
    def test_indexes_by_variant(self, tmp_path):
        path = tmp_path / "site-setting.json"
        path.write_text(json.dumps(PAYLOAD))

        known = load_known_scripts(path)

        assert list(known[ScriptVariant.server]) == [1]
        assert known[ScriptVariant.client][2].title == "Banner"

    @pytest.mark.parametrize("content", [None, "{broken", '{"SiteSettings": {"Scripts": 5}}'])
    def test_unreadable_snapshot_gives_empty_maps(self, tmp_path, content):
        path = tmp_path / "site-setting.json"
        if content is not None:
            path.write_text(content)

        assert load_known_scripts(path) == {
            ScriptVariant.server: {},
            ScriptVariant.client: {},
        }
