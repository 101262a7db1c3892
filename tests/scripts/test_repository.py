"""Tests for local script files and identity resolution."""

import pytest

from owlanter.scripts.models import ClientScript, ScriptVariant, ServerScript
from owlanter.scripts.repository import (
    IdentitySource,
    LocalScriptRepository,
    infer_identity,
    list_script_files,
    match_unique_title,
    resolve_identity,
    sanitize_title,
    script_filename,
    shadow_duplicates,
)


@pytest.fixture
def repository():
    return LocalScriptRepository()


def write(directory, name, content):
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return path


class TestFileNaming:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Validate order", "Validate_order"),
            ('a/b\\c:d*e?f"g<h>i|j', "a_b_c_d_e_f_g_h_i_j"),
            ("  spaced   out  ", "spaced_out"),
            ("__edge__", "edge"),
            ("///", "script"),
            ("x" * 80, "x" * 60),
        ],
    )
    def test_sanitize_title(self, title, expected):
        assert sanitize_title(title) == expected

    def test_script_filename(self):
        assert script_filename(ServerScript(id=4, title="Check it")) == "4_Check_it.js"
        assert script_filename(ClientScript(title="Draft")) == "new_Draft.js"
        assert script_filename(ClientScript(id=0)) == "0_client-script.js"


class TestInferIdentity:
    def test_numeric_prefix(self):
        identity = infer_identity("42_MyScript.js")
        assert (identity.id, identity.title) == (42, "MyScript")

    def test_new_prefix(self):
        identity = infer_identity("new_Draft.js")
        assert (identity.id, identity.title, identity.explicit_new) == (None, "Draft", True)

    def test_no_match(self):
        identity = infer_identity("helpers.js")
        assert (identity.id, identity.title) == (None, "helpers")


class TestResolveIdentity:
    def test_first_present_wins(self):
        result = resolve_identity(
            [
                (IdentitySource.metadata, None),
                (IdentitySource.filename, 7),
                (IdentitySource.snapshot, 9),
            ]
        )
        assert result == (7, IdentitySource.filename)

    def test_zero_is_present(self):
        result = resolve_identity([(IdentitySource.metadata, 0), (IdentitySource.filename, 3)])
        assert result == (0, IdentitySource.metadata)

    def test_nothing_present(self):
        assert resolve_identity([(IdentitySource.metadata, None)]) == (None, None)

    def test_unique_title_match(self):
        known = {1: ClientScript(id=1, title="A"), 2: ClientScript(id=2, title="B")}
        assert match_unique_title(known, "B") == 2
        assert match_unique_title(known, "C") is None

    def test_ambiguous_title_does_not_match(self):
        known = {1: ClientScript(id=1, title="A"), 2: ClientScript(id=2, title="A")}
        assert match_unique_title(known, "A") is None


class TestListScriptFiles:
    def test_missing_directory(self, tmp_path):
        assert list_script_files(tmp_path / "missing") == []

    def test_filters_and_sorts(self, tmp_path):
        for name in ("b.js", "a.JS", ".hidden.js", "notes.txt"):
            write(tmp_path, name, "")
        (tmp_path / "sub.js").mkdir()

        assert [p.name for p in list_script_files(tmp_path)] == ["a.JS", "b.js"]


class TestRead:
    def test_file_without_header(self, tmp_path, repository):
        path = write(tmp_path, "42_MyScript.js", "run();\n")
        local = repository.read(path, ScriptVariant.client)

        assert local.id == 42
        assert local.title == "MyScript"
        assert local.id_source is IdentitySource.filename
        assert local.record.body == "run();"

    def test_new_file_has_no_id(self, tmp_path, repository):
        local = repository.read(write(tmp_path, "new_Draft.js", "x();"), ScriptVariant.client)

        assert local.id is None
        assert local.title == "Draft"

    def test_header_id_beats_filename(self, tmp_path, repository):
        path = write(tmp_path, "3_Old.js", "// @pleasanter-id: 8\n\nx();")
        local = repository.read(path, ScriptVariant.server)

        assert local.id == 8
        assert local.id_source is IdentitySource.metadata

    def test_layers_over_snapshot(self, tmp_path, repository):
        known = {
            4: ServerScript(id=4, title="Check", body="old();", flags={"before-update": True})
        }
        path = write(tmp_path, "4_Check.js", "// @pleasanter-title: Check\n\nnew();")
        local = repository.read(path, ScriptVariant.server, known)

        assert local.record.flags["before-update"] is True
        assert local.record.body == "new();"
        assert known[4].body == "old();"

    def test_snapshot_title_match(self, tmp_path, repository):
        known = {6: ClientScript(id=6, title="Banner", flags={"all": True})}
        path = write(tmp_path, "Banner.js", "b();")
        local = repository.read(path, ScriptVariant.client, known)

        assert local.id == 6
        assert local.id_source is IdentitySource.snapshot
        assert local.record.flags["all"] is True

    def test_explicit_new_skips_snapshot_match(self, tmp_path, repository):
        known = {6: ClientScript(id=6, title="Banner")}
        local = repository.read(write(tmp_path, "new_Banner.js", "b();"), ScriptVariant.client, known)

        assert local.id is None

    def test_server_name_falls_back_to_title(self, tmp_path, repository):
        local = repository.read(write(tmp_path, "1_Named.js", "x();"), ScriptVariant.server)
        assert local.record.name == "Named"


class TestScan:
    def test_missing_directory_is_empty(self, tmp_path, repository):
        assert repository.scan(tmp_path / "nope", ScriptVariant.server) == []

    def test_duplicates_pass_through(self, tmp_path, repository):
        write(tmp_path, "1_A.js", "a();")
        write(tmp_path, "1_B.js", "b();")

        files = repository.scan(tmp_path, ScriptVariant.client)

        assert [f.path.name for f in files] == ["1_A.js", "1_B.js"]
        assert {f.id for f in files} == {1}

    def test_shadow_duplicates_keeps_later_file(self, tmp_path, repository, caplog):
        write(tmp_path, "1_A.js", "a();")
        write(tmp_path, "1_B.js", "b();")
        write(tmp_path, "new_C.js", "c();")
        write(tmp_path, "new_D.js", "d();")

        kept = shadow_duplicates(repository.scan(tmp_path, ScriptVariant.client))

        assert [f.path.name for f in kept] == ["1_B.js", "new_C.js", "new_D.js"]
        assert "shadows" in caplog.text
