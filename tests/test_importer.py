import pytest

from dbport.exceptions import (
    OperationCancelledError,
    UnsupportedFormatError,
    UnsupportedVersionError,
)
from dbport.models.migration import ImportMode
from dbport.models.record import ProblemReason
from dbport.services.cancellation import CancellationToken
from dbport.services.exporter import Exporter
from dbport.services.importer import Importer
from dbport.storage.memory import MemoryDataset


def current_doc(data):
    return {"db": [{"meta": {"version": "5.0"}, "data": data}]}


ROLE = {"id": "r1", "name": "Administrator"}
USER = {"id": "u1", "name": "Joe", "slug": "joe", "email": "joe@example.com",
        "created_at": "2020-01-01T00:00:00.000Z"}


def test_round_trip_into_empty_dataset(seeded, registry):
    exported = Exporter(registry, seeded).export(include=registry.auxiliary_tables())

    target = MemoryDataset.from_registry(registry)
    result = Importer(registry, target).import_document(exported.to_wire())

    assert result.problems == []
    assert result.imported == exported.total_records
    for table, count in exported.table_counts().items():
        assert target.count(table) == count
    assert Exporter(registry, target).export(include=registry.auxiliary_tables()).data == exported.data


def test_reimport_reports_every_record_as_duplicate(seeded, importer, registry):
    exported = Exporter(registry, seeded).export()
    before = seeded.snapshot()

    result = importer.import_document(exported)

    assert result.imported == 0
    assert len(result.problems) == exported.total_records
    assert {p.reason for p in result.problems} == {ProblemReason.DUPLICATE}
    assert seeded.snapshot() == before


def test_missing_reference_is_a_problem(importer, dataset):
    result = importer.import_document(current_doc({
        "roles": [ROLE],
        "users": [USER],
        "roles_users": [
            {"role_id": "r1", "user_id": "u1"},
            {"role_id": "r9", "user_id": "u1"},
        ],
    }))

    assert result.imported == 3
    [problem] = result.problems
    assert problem.reason == ProblemReason.MISSING_REFERENCE
    assert problem.table == "roles_users"
    assert problem.identity == {"role_id": "r9", "user_id": "u1"}
    assert dataset.count("roles_users") == 1


def test_validation_problem_does_not_block_other_records(importer, dataset):
    bad = dict(USER, id="u2", slug="bad", email="not-an-email")

    result = importer.import_document(current_doc({"users": [bad, USER]}))

    assert result.tables == {"users": 1}
    [problem] = result.problems
    assert problem.reason == ProblemReason.VALIDATION
    assert "email" in problem.message
    assert problem.to_dict()["help"] == "users"
    assert dataset.count("users") == 1


def test_merge_keeps_existing_rows(importer, dataset):
    importer.import_document(current_doc({"users": [USER]}))

    changed = dict(USER, name="Someone Else")
    result = importer.import_document(current_doc({"users": [changed]}))

    assert result.problems[0].reason == ProblemReason.DUPLICATE
    assert dataset.get("users", ("u1",))["name"] == "Joe"


def test_replace_mode_clears_first(seeded, importer, registry):
    exported = Exporter(registry, seeded).export()

    result = importer.import_document(exported, mode=ImportMode.REPLACE)

    assert result.problems == []
    assert result.imported == exported.total_records
    assert seeded.count("posts") == 7


def test_tables_are_inserted_in_dependency_order(importer):
    # posts_authors listed before the rows they point at
    result = importer.import_document(current_doc({
        "posts_authors": [{"id": "pa1", "post_id": "p1", "author_id": "u1"}],
        "posts": [{"id": "p1", "uuid": "6f0a3c4e-1b2d-4c3e-8f40-000000000001", "title": "Hi",
                   "slug": "hi", "created_at": "2020-01-01T00:00:00.000Z"}],
        "users": [USER],
    }))

    assert result.problems == []
    assert result.tables == {"users": 1, "posts": 1, "posts_authors": 1}


def test_bare_document_is_accepted(importer):
    result = importer.import_document({"meta": {"version": "5.0"}, "data": {"roles": [ROLE]}})
    assert result.imported == 1


@pytest.mark.parametrize("raw", [
    [],
    {"db": []},
    {"db": [{"data": {"posts": []}}]},
    {"db": [{"meta": {"version": "latest"}, "data": {}}]},
    {"db": [{"meta": {"version": "5.0"}, "data": {"posts": "not records"}}]},
    {"db": [{"meta": {"version": "5.0"}, "data": {"widgets": []}}]},
])
def test_malformed_documents(importer, dataset, raw):
    with pytest.raises(UnsupportedFormatError):
        importer.import_document(raw)
    assert dataset.snapshot() == {name: [] for name in dataset.tables}


def test_future_version(importer):
    with pytest.raises(UnsupportedVersionError):
        importer.import_document({"db": [{"meta": {"version": "6.0.0"}, "data": {}}]})


def test_cancelled_import_keeps_committed_batches(registry):
    dataset = MemoryDataset.from_registry(registry)
    importer = Importer(registry, dataset, batch_size=1)

    class CancelAfter(CancellationToken):
        def __init__(self, checks):
            super().__init__()
            self.remaining = checks

        def check(self, where=""):
            if self.remaining == 0:
                self.cancel()
            self.remaining -= 1
            super().check(where)

    roles = [{"id": f"r{i}", "name": f"Role {i}"} for i in range(5)]

    with pytest.raises(OperationCancelledError):
        importer.import_document(current_doc({"roles": roles}), token=CancelAfter(2))

    assert dataset.count("roles") == 2


def test_batch_size_must_be_positive(registry, dataset):
    with pytest.raises(ValueError):
        Importer(registry, dataset, batch_size=0)
