import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dbport import cli

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_inspect(capsys):
    code = cli.main(["inspect", "--input", str(FIXTURES_DIR / "v2_export.json")])

    out = capsys.readouterr().out
    assert code == 0
    assert "Version: 2.31.1 (current 5.0)" in out
    assert "2.0->3.0, 3.0->4.0, 4.0->5.0" in out
    assert "posts: 7" in out


def test_migrate_writes_current_shape(tmp_path):
    output = tmp_path / "migrated.json"

    code = cli.main(["migrate", "--input", str(FIXTURES_DIR / "v3_export.json"), "--output", str(output)])

    assert code == 0
    with open(output) as f:
        migrated = json.load(f)
    assert migrated["db"][0]["meta"]["version"] == "5.0"
    assert migrated["db"][0]["meta"]["source_version"] == "3.0.2"
    assert "posts_meta" in migrated["db"][0]["data"]


def test_inspect_unsupported_file(tmp_path):
    path = tmp_path / "future.json"
    path.write_text(json.dumps({"db": [{"meta": {"version": "9.0"}, "data": {}}]}))

    assert cli.main(["inspect", "--input", str(path)]) == 1


@pytest.fixture
def fake_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(cli, "AdminAPIClient", MagicMock(return_value=client))
    return client


def test_import_reports_problems(fake_client, capsys):
    fake_client.import_file.return_value = {
        "db": [{"imported": 34}],
        "problems": [{"message": "Entry not imported because it already exists", "help": "users"}],
    }

    code = cli.main(["import", "--url", "https://example.com/admin/api", "--file", "export.json"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Imported: 34" in out
    assert "Problems: 1" in out
    assert "[users]" in out
    fake_client.import_file.assert_called_once_with("export.json")


def test_export_to_file(fake_client, tmp_path):
    fake_client.export.return_value = {"db": [{"meta": {"version": "5.0"}, "data": {}}]}
    output = tmp_path / "export.json"

    cli.main(["export", "--url", "https://example.com", "--include", "mobiledoc_revisions",
              "--output", str(output)])

    fake_client.export.assert_called_once_with(include=["mobiledoc_revisions"], filename=None)
    assert json.loads(output.read_text())["db"][0]["meta"]["version"] == "5.0"


def test_backup_and_wipe(fake_client, capsys):
    fake_client.backup.return_value = {"db": [{"filename": "nightly.json"}]}

    assert cli.main(["backup", "--url", "https://example.com", "--filename", "nightly"]) == 0
    assert cli.main(["wipe", "--url", "https://example.com"]) == 0

    out = capsys.readouterr().out
    assert "Backup written: nightly.json" in out
    fake_client.delete_all.assert_called_once_with()
