import json

import pytest

from dbport.exceptions import (
    ForbiddenError,
    NotFoundError,
    UnknownTableError,
    UnprocessableEntityError,
    UnsupportedFormatError,
    UnsupportedMediaTypeError,
)
from dbport.models.migration import ImportMode
from dbport.orchestrator import DatabaseService, UploadedFile
from dbport.services.backup import Caller


def upload_of(doc, filename="export.json", content_type="application/json"):
    return UploadedFile(filename=filename, content=json.dumps(doc).encode("utf-8"),
                        content_type=content_type)


def test_import_upload_response_shape(service, fixture_doc):
    response = service.import_upload(upload_of(fixture_doc("v2_export.json")))

    [summary] = response["db"]
    assert summary["source_version"] == "2.31.1"
    assert summary["version"] == "5.0"
    assert summary["tables"]["posts"] == 7
    assert len(response["problems"]) == 2
    for problem in response["problems"]:
        assert problem["message"]
        assert problem["help"] in ("users", "posts_tags")


def test_import_without_file(service):
    with pytest.raises(UnprocessableEntityError) as exc:
        service.import_upload(None)
    assert exc.value.status_code == 422


@pytest.mark.parametrize("upload", [
    UploadedFile("single-column-with-header.csv", b"email\njoe@example.com\n", "text/csv"),
    UploadedFile("export.json", b"{}", "text/csv"),
    UploadedFile("export.json", b"{not json", "application/json"),
    UploadedFile("export.json", b"\xff\xfe\x00", None),
])
def test_non_json_uploads(service, upload):
    with pytest.raises(UnsupportedMediaTypeError) as exc:
        service.import_upload(upload)
    assert exc.value.status_code == 415
    assert service.dataset.count("posts") == 0


def test_json_that_is_not_an_export(service):
    with pytest.raises(UnsupportedFormatError) as exc:
        service.import_upload(upload_of({"hello": "world"}))
    assert exc.value.status_code == 400


def test_out_of_range_export_timestamp(service, fixture_doc):
    doc = fixture_doc("v2_export.json")
    doc["db"][0]["meta"]["exported_on"] = 10 ** 20

    with pytest.raises(UnsupportedFormatError) as exc:
        service.import_upload(upload_of(doc))
    assert exc.value.status_code == 400
    assert service.dataset.count("posts") == 0


def test_integer_version_marker_imports(service, fixture_doc):
    service.import_upload(upload_of(fixture_doc("v4_export.json")))
    exported = service.export_db()
    service.delete_all()
    exported["db"][0]["meta"]["version"] = 5

    response = service.import_upload(upload_of(exported))

    assert response["problems"] == []
    assert response["db"][0]["source_version"] == "5"
    assert service.dataset.count("posts") == 7


def test_content_type_parameters_are_ignored(service, fixture_doc):
    upload = upload_of(fixture_doc("v4_export.json"), content_type="application/json; charset=utf-8")
    assert service.import_upload(upload)["db"][0]["imported"] > 0


def test_export_round_trip_through_upload(service, fixture_doc, config):
    service.import_upload(upload_of(fixture_doc("v3_export.json")))
    exported = service.export_db(include=["mobiledoc_revisions"])

    fresh = DatabaseService(config)
    response = fresh.import_upload(upload_of(exported))

    assert response["problems"] == []
    assert fresh.dataset.count("mobiledoc_revisions") == 1
    assert fresh.export_db(include=["mobiledoc_revisions"])["db"][0]["data"] == exported["db"][0]["data"]


def test_export_unknown_include(service):
    with pytest.raises(UnknownTableError):
        service.export_db(include=["nope"])


def test_backup_and_fetch_by_filename(service, fixture_doc):
    service.import_upload(upload_of(fixture_doc("v4_export.json")))

    response = service.backup_db(Caller.integration("db-backup"), filename="nightly")
    [entry] = response["db"]

    assert entry["filename"] == "nightly.json"
    assert entry["tables"]["users"] == 3
    assert service.export_db(filename="nightly.json")["db"][0]["data"]["users"] == \
        service.export_db()["db"][0]["data"]["users"]


def test_backup_forbidden(service):
    with pytest.raises(ForbiddenError):
        service.backup_db(Caller.integration("db-scheduler"))
    assert service.backups.list_backups() == []


def test_export_missing_backup(service):
    with pytest.raises(NotFoundError) as exc:
        service.export_db(filename="this_file_is_not_here.json")
    assert exc.value.to_dict() == {
        "errors": [{
            "message": "Backup file not found",
            "context": "No backup named this_file_is_not_here.json",
            "type": "NotFoundError",
        }]
    }


def test_delete_all(service, fixture_doc):
    service.import_upload(upload_of(fixture_doc("v4_export.json")))

    deleted = service.delete_all()

    assert deleted["posts"] == 7
    assert all(service.dataset.count(t) == 0 for t in service.registry.tables_for_version())


def test_reimport_after_delete_has_no_duplicates(service, fixture_doc):
    service.import_upload(upload_of(fixture_doc("v4_export.json")))
    exported = service.export_db()
    service.delete_all()

    response = service.import_upload(upload_of(exported), mode=ImportMode.MERGE)

    assert response["problems"] == []


def test_inspect_document(service, fixture_doc):
    info = service.inspect_document(fixture_doc("v2_export.json"))

    assert info["version"] == "2.31.1"
    assert info["chain"] == ["2.0->3.0", "3.0->4.0", "4.0->5.0"]
    assert info["tables"]["posts"] == 7
    assert info["exported_at"].startswith("2020-01-01")


def test_migrate_document(service, fixture_doc):
    document = service.migrate_document(fixture_doc("v2_export.json"))

    assert document.meta.version == "5.0"
    assert "subscribers" not in document.data
    assert len(document.data["posts_authors"]) == 7
