import pytest

from dbport.exceptions import IntegrityError, UnknownTableError


def tag(id, slug, **extra):
    record = {"id": id, "name": slug.title(), "slug": slug, "visibility": "public",
              "created_at": "2020-01-01T00:00:00.000Z"}
    record.update(extra)
    return record


def test_transaction_commits_on_exit(dataset):
    with dataset.transaction("tags") as tx:
        tx.insert(tag("t1", "news"))
        tx.insert(tag("t2", "sport"))
        assert tx.staged() == 2
        assert dataset.count("tags") == 0

    assert dataset.count("tags") == 2
    assert dataset.get("tags", ("t1",))["slug"] == "news"


def test_transaction_discards_on_error(dataset):
    with pytest.raises(RuntimeError):
        with dataset.transaction("tags") as tx:
            tx.insert(tag("t1", "news"))
            raise RuntimeError("boom")

    assert dataset.count("tags") == 0


def test_identity_collision(dataset):
    with dataset.transaction("tags") as tx:
        tx.insert(tag("t1", "news"))

    with dataset.transaction("tags") as tx:
        with pytest.raises(IntegrityError) as exc:
            tx.insert(tag("t1", "other"))
    assert exc.value.column == "id"


def test_unique_collision_within_transaction(dataset):
    with dataset.transaction("tags") as tx:
        tx.insert(tag("t1", "news"))
        with pytest.raises(IntegrityError) as exc:
            tx.insert(tag("t2", "news"))
        tx.insert(tag("t3", "sport"))

    assert exc.value.column == "slug"
    assert dataset.count("tags") == 2


def test_composite_identity(dataset):
    with dataset.transaction("posts_tags") as tx:
        tx.insert({"post_id": "p1", "tag_id": "t1", "sort_order": 0})
        tx.insert({"post_id": "p1", "tag_id": "t2", "sort_order": 1})
        with pytest.raises(IntegrityError):
            tx.insert({"post_id": "p1", "tag_id": "t1", "sort_order": 3})

    assert dataset.exists("posts_tags", {"post_id": "p1", "tag_id": "t2"})
    assert dataset.exists("posts_tags", {"tag_id": "t1"})
    assert not dataset.exists("posts_tags", {"post_id": "p2"})


def test_snapshot_is_isolated_from_later_writes(dataset):
    with dataset.transaction("tags") as tx:
        tx.insert(tag("t1", "news"))

    snapshot = dataset.snapshot()
    snapshot["tags"][0]["name"] = "changed"

    with dataset.transaction("tags") as tx:
        tx.insert(tag("t2", "sport"))

    assert [t["id"] for t in snapshot["tags"]] == ["t1"]
    assert dataset.rows("tags")[0]["name"] == "News"
    assert dataset.count("tags") == 2


def test_clear(dataset):
    with dataset.transaction("tags") as tx:
        tx.insert(tag("t1", "news"))

    assert dataset.clear("tags") == 1
    assert dataset.count("tags") == 0
    assert dataset.clear_all(["tags", "posts"]) == {"tags": 0, "posts": 0}


def test_unknown_table(dataset):
    with pytest.raises(UnknownTableError):
        dataset.count("subscribers")
    with pytest.raises(UnknownTableError):
        with dataset.transaction("subscribers"):
            pass
