"""Tests for remote/local reconciliation."""

from pathlib import Path

from owlanter.scripts.diff import DiffReconciler
from owlanter.scripts.models import ClientScript, ServerScript
from owlanter.scripts.repository import LocalScriptFile


def local(record, name):
    return LocalScriptFile(path=Path("/work") / name, record=record)


class TestReconcile:
    def test_every_input_appears(self):
        remote_server = [ServerScript(id=2, title="B"), ServerScript(id=1, title="A")]
        remote_client = [ClientScript(id=5, title="C")]
        local_server = [local(ServerScript(id=1, title="A"), "1_A.js")]
        local_client = [
            local(ClientScript(title="Draft"), "new_Draft.js"),
            local(ClientScript(id=9, title="Only here"), "9_Only_here.js"),
        ]

        entries = DiffReconciler().reconcile(
            remote_server, remote_client, local_server, local_client
        )
        keys = [entry.key for entry in entries]

        assert len(entries) >= max(
            len(remote_server) + len(remote_client), len(local_server) + len(local_client)
        )
        for key in ("server:1", "server:2", "client:5", "client:9", "client:Draft"):
            assert key in keys

    def test_order(self):
        entries = DiffReconciler().reconcile(
            [ServerScript(id=3, title="S3")],
            [ClientScript(id=2, title="C2"), ClientScript(id=1, title="C1")],
            [local(ServerScript(title="New server"), "new_New_server.js")],
            [local(ClientScript(title="Zed"), "new_Zed.js"), local(ClientScript(title="Alpha"), "new_Alpha.js")],
        )

        assert [entry.key for entry in entries] == [
            "server:3",
            "server:New server",
            "client:1",
            "client:2",
            "client:Alpha",
            "client:Zed",
        ]

    def test_status_and_modified(self):
        remote = [ClientScript(id=1, title="Same", body="x();"), ClientScript(id=2, title="Changed", body="old();")]
        locals_ = [
            local(ClientScript(id=1, title="Same", body="x();"), "1_Same.js"),
            local(ClientScript(id=2, title="Changed", body="new();"), "2_Changed.js"),
            local(ClientScript(id=3, title="Local"), "3_Local.js"),
        ]

        entries = {e.key: e for e in DiffReconciler().reconcile([], remote, [], locals_)}

        assert entries["client:1"].status == "both"
        assert entries["client:1"].modified is False
        assert entries["client:2"].modified is True
        assert entries["client:3"].status == "local-only"
        assert entries["client:3"].remote_content is None

    def test_remote_only_entry_carries_encoded_content(self):
        (entry,) = DiffReconciler().reconcile(
            [ServerScript(id=7, title="Remote", body="r();")], [], [], []
        )

        assert entry.status == "remote-only"
        assert entry.local_path is None
        assert entry.remote_content.startswith("// @pleasanter-id: 7\n")
        assert entry.remote_content.endswith("\n\nr();")

    def test_local_title_overrides_on_match(self):
        (entry,) = DiffReconciler().reconcile(
            [], [ClientScript(id=1, title="Remote title")],
            [], [local(ClientScript(id=1, title="Local title"), "1_Local_title.js")],
        )

        assert entry.title == "Local title"
        assert entry.remote.title == "Remote title"
        assert entry.local_path == Path("/work/1_Local_title.js")
