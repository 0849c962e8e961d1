import csv

import pytest

from tests.conftest import child, parent
from vault.core.options import ConfigurationError, DataToolOptions
from vault.etl.cleanup_vault import DeleteVaultData, console_confirm
from vault.etl.count_vault import CountVaultData


def _read(path):
    with path.open(newline="") as f:
        return list(csv.reader(f))


def _manifest(tmp_path, text):
    path = tmp_path / "input.csv"
    path.write_text(text)
    return str(path)


@pytest.fixture
def scenario(fake_client):
    fake_client.add_object(
        "type_a__c",
        [child("type_b__c", "parent_id")],
        records=[{"id": "1"}, {"id": "2"}, {"id": "3"}],
    )
    fake_client.add_object(
        "type_b__c",
        [parent("type_a__c", "parent_id")],
        records=[
            {"id": "b1", "parent_id": "1"},
            {"id": "b2", "parent_id": "2"},
            {"id": "b3", "parent_id": "2"},
            {"id": "b4", "parent_id": "3"},
        ],
    )
    return fake_client


@pytest.mark.parametrize(
    "rows",
    ["type_a__c,id,1\ntype_a__c,id,2\n", "type_a__c,id,\"1\",\"2\"\n"],
    ids=["row-per-value", "values-on-one-row"],
)
def test_manifest_scoped_delete_end_to_end(scenario, tmp_path, rows):
    options = DataToolOptions.from_values(
        "DELETE", "ALL", input_path=_manifest(tmp_path, "name,id_param,id_param_value\n" + rows)
    )

    output = DeleteVaultData(scenario, options, confirm=lambda prompt: True, output_dir=str(tmp_path)).run()

    assert scenario.queries == [
        "SELECT id FROM type_a__c WHERE id CONTAINS ('1','2')",
        "SELECT id FROM type_b__c WHERE parent_id CONTAINS ('1','2')",
    ]
    assert scenario.deleted_targets == ["type_b__c", "type_a__c"]
    assert scenario.delete_calls[1]["ids"] == ["1", "2"]

    rows = _read(output)
    assert rows[0] == ["action", "data_type", "name", "id", "status", "error_message"]
    assert rows[1:] == [
        ["DELETE", "OBJECTS", "type_b__c", "b1", "SUCCESS", ""],
        ["DELETE", "OBJECTS", "type_b__c", "b2", "SUCCESS", ""],
        ["DELETE", "OBJECTS", "type_b__c", "b3", "SUCCESS", ""],
        ["DELETE", "OBJECTS", "type_a__c", "1", "SUCCESS", ""],
        ["DELETE", "OBJECTS", "type_a__c", "2", "SUCCESS", ""],
    ]
    assert output.name.endswith("-delete-data-output.csv")
    assert [r["id"] for r in scenario.records["type_a__c"]] == ["3"]


def test_declined_confirmation_deletes_nothing(scenario, tmp_path, capsys):
    options = DataToolOptions.from_values("DELETE", "OBJECTS", excludes=["SYSTEM"])
    prompts = []

    def decline(prompt):
        prompts.append(prompt)
        return False

    assert DeleteVaultData(scenario, options, confirm=decline, output_dir=str(tmp_path)).run() is None

    assert prompts == ["Do you wish to proceed? (Y/N) "]
    assert scenario.delete_calls == []
    assert scenario.queries == []
    assert list(tmp_path.iterdir()) == []
    out = capsys.readouterr().out
    assert "Selected data to delete: ALL OBJECTS" in out
    assert "Excluded Object sources: ['SYSTEM']" in out
    assert "THIS CANNOT BE UNDONE." in out


def test_missing_manifest_aborts_before_prompt(scenario, tmp_path):
    options = DataToolOptions.from_values("DELETE", "ALL", input_path=str(tmp_path / "missing.csv"))
    confirm_calls = []

    with pytest.raises(ConfigurationError):
        DeleteVaultData(scenario, options, confirm=confirm_calls.append, output_dir=str(tmp_path)).run()

    assert confirm_calls == []
    assert scenario.delete_calls == []


def test_unrestricted_object_delete_removes_everything(scenario, tmp_path):
    options = DataToolOptions.from_values("DELETE", "OBJECTS")

    output = DeleteVaultData(scenario, options, confirm=lambda prompt: True, output_dir=str(tmp_path)).run()

    assert scenario.deleted_targets == ["type_b__c", "type_a__c"]
    assert scenario.records == {"type_a__c": [], "type_b__c": []}
    assert len(_read(output)) == 1 + 7


def test_per_record_failure_lands_in_audit_trail(scenario, tmp_path):
    from vault.client.api import ApiError

    scenario.record_failures["3"] = [ApiError("INVALID_DATA", "referenced by b4")]
    options = DataToolOptions.from_values("DELETE", "OBJECTS")

    output = DeleteVaultData(scenario, options, confirm=lambda prompt: True, output_dir=str(tmp_path)).run()

    failed = [row for row in _read(output)[1:] if row[4] != "SUCCESS"]
    assert failed == [["DELETE", "OBJECTS", "type_a__c", "3", "FAILURE", "INVALID_DATA : referenced by b4"]]


def test_documents_deleted_page_by_page(fake_client, tmp_path):
    fake_client.page_size = 2
    fake_client.add_document_type("base_document__v", "Base Document", [{"id": i} for i in range(5)])
    fake_client.add_document_type("promo__c", "Promotional Piece", [{"id": 100}])
    options = DataToolOptions.from_values(
        "DELETE", "DOCUMENTS", input_path=_manifest(tmp_path, "name\nbase_document__v\n")
    )

    output = DeleteVaultData(fake_client, options, confirm=lambda prompt: True, output_dir=str(tmp_path)).run()

    assert [c["ids"] for c in fake_client.delete_calls] == [[0, 1], [2, 3], [4]]
    assert {c["target"] for c in fake_client.delete_calls} == {"documents"}
    rows = _read(output)[1:]
    assert [row[3] for row in rows] == ["0", "1", "2", "3", "4"]
    assert {row[1] for row in rows} == {"DOCUMENTS"}
    assert fake_client.documents["Promotional Piece"] == [{"id": 100}]


def test_count_and_delete_agree(scenario, tmp_path):
    count_options = DataToolOptions.from_values("COUNT", "OBJECTS")
    [count_file] = CountVaultData(scenario, count_options, output_dir=str(tmp_path / "count")).run()
    counted = {row[0]: int(row[2]) for row in _read(count_file)[1:]}

    delete_options = DataToolOptions.from_values("DELETE", "OBJECTS")
    output = DeleteVaultData(scenario, delete_options, confirm=lambda prompt: True, output_dir=str(tmp_path)).run()
    deleted = {}
    for row in _read(output)[1:]:
        deleted[row[2]] = deleted.get(row[2], 0) + 1

    for name, total in deleted.items():
        assert counted[name] >= total
    assert counted == deleted


@pytest.mark.parametrize("answer,expected", [("y", True), (" YES ", True), ("Yes", True), ("n", False), ("", False), ("yep", False)])
def test_console_confirm(monkeypatch, answer, expected):
    monkeypatch.setattr("builtins.input", lambda prompt: answer)

    assert console_confirm("Proceed? ") is expected


def test_closed_stdin_aborts_delete(scenario, tmp_path, monkeypatch, capsys):
    def no_input(prompt):
        raise EOFError

    monkeypatch.setattr("builtins.input", no_input)
    options = DataToolOptions.from_values("DELETE", "OBJECTS")

    assert DeleteVaultData(scenario, options, output_dir=str(tmp_path)).run() is None

    assert "Aborted." in capsys.readouterr().out
    assert scenario.delete_calls == []
    assert list(tmp_path.iterdir()) == []
