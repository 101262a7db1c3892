"""Tests for script record models and API conversion."""

import pytest

from owlanter.scripts.models import (
    ClientScript,
    ScriptVariant,
    ServerScript,
    delete_request,
    record_type,
    to_int_or_none,
)


class TestToIntOrNone:
    @pytest.mark.parametrize(
        "value,expected",
        [(5, 5), ("7", 7), (0, 0), ("0", 0), (3.0, 3), (None, None), ("", None),
         ("abc", None), (True, None), (2.5, None)],
    )
    def test_values(self, value, expected):
        assert to_int_or_none(value) == expected


class TestScriptRecord:
    def test_flags_are_complete_and_ordered(self):
        record = ClientScript(flags={"disabled": True, "all": True})

        assert list(record.flags) == ["all", "new", "edit", "index", "disabled"]
        assert record.flags["all"] is True
        assert record.flags["new"] is False

    def test_unknown_flags_are_kept_after_known(self):
        record = ClientScript(flags={"custom": True})
        assert list(record.flags)[-1] == "custom"

    def test_server_name_defaults_to_title(self):
        assert ServerScript(title="Check").name == "Check"

    def test_label_falls_back_to_default(self):
        assert ServerScript().label == "server-script"
        assert ClientScript().label == "client-script"

    def test_copy_is_independent(self):
        record = ClientScript(id=1, flags={"all": True})
        clone = record.copy()
        clone.flags["all"] = False

        assert record.flags["all"] is True

    def test_record_type(self):
        assert record_type("server") is ServerScript
        assert record_type(ScriptVariant.client) is ClientScript

    def test_same_content_ignores_surrounding_whitespace(self):
        remote = ServerScript(id=1, title="A", body="x();\n")
        local = ServerScript(id=1, title="A", body="x();")

        assert local.same_content(remote)
        assert not local.same_content(ServerScript(id=1, title="A", body="y();"))


class TestFromApi:
    def test_server_script_with_prefixed_fields(self):
        record = ServerScript.from_api(
            {
                "Id": 3,
                "Title": "Check",
                "Name": "check",
                "Body": "x();",
                "ServerScriptBeforeCreate": True,
                "ServerScriptWhenloadingSiteSettings": "true",
            }
        )

        assert record.id == 3
        assert record.name == "check"
        assert record.flags["before-create"] is True
        assert record.flags["when-loading-site-settings"] is True
        assert record.flags["after-create"] is False

    def test_server_script_with_short_aliases(self):
        record = ServerScript.from_api(
            {"ID": "8", "Name": "Short", "Shared": True, "Trycatch": "true"}
        )

        assert record.id == 8
        assert record.title == "Short"
        assert record.flags["shared"] is True
        assert record.flags["try-catch"] is True

    def test_non_numeric_id_is_absent(self):
        assert ClientScript.from_api({"Id": "abc", "Title": "x"}).id is None

    def test_client_script(self):
        record = ClientScript.from_api(
            {"Id": 5, "Title": "Banner", "Body": "b();", "ScriptAll": True, "Disabled": "false"}
        )

        assert record.flags == {
            "all": True,
            "new": False,
            "edit": False,
            "index": False,
            "disabled": False,
        }


class TestToApi:
    def test_server_payload(self):
        payload = ServerScript(
            id=3, title="Check", body="x();", flags={"try-catch": True}
        ).to_api()

        assert payload["Id"] == 3
        assert payload["Name"] == "Check"
        assert payload["TryCatch"] is True
        assert payload["ServerScriptBeforeCreate"] is False

    def test_new_record_has_no_id(self):
        assert "Id" not in ClientScript(title="New").to_api()

    def test_api_round_trip(self):
        record = ClientScript(id=4, title="T", body="b();", flags={"edit": True})
        assert ClientScript.from_api(record.to_api()) == record

    def test_delete_request(self):
        assert delete_request(7) == {"Id": 7, "Delete": 1}
