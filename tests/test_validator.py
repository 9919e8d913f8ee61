import pytest

from dbport.services.validator import RecordValidator, ValidationRules


@pytest.fixture
def validator():
    return RecordValidator()


@pytest.fixture
def users(registry):
    return registry.table_schema("users")


def valid_user(**overrides):
    user = {
        "id": "5e0c1b000000000000000001",
        "name": "Joe Bloggs",
        "slug": "joe-bloggs",
        "email": "jbloggs@example.com",
        "password": None,
        "bio": None,
        "location": None,
        "status": "active",
        "created_at": "2019-06-01T09:00:00.000Z",
    }
    user.update(overrides)
    return user


def error_types(errors):
    return {(e.column, e.error_type) for e in errors}


def test_valid_record(validator, users):
    assert validator.validate_record(valid_user(), users) == []
    assert validator.is_valid(valid_user(), users)


def test_required_columns(validator, users):
    errors = validator.validate_record(valid_user(name=None, created_at=None), users)
    assert error_types(errors) == {("name", "required"), ("created_at", "required")}


def test_type_errors(validator, users):
    errors = validator.validate_record(valid_user(name=42, created_at="yesterday-ish"), users)
    assert error_types(errors) == {("name", "type"), ("created_at", "type")}


def test_boolean_is_not_an_integer(validator, registry):
    posts_tags = registry.table_schema("posts_tags")
    errors = validator.validate_record({"post_id": "p", "tag_id": "t", "sort_order": True}, posts_tags)
    assert error_types(errors) == {("sort_order", "type")}


def test_max_length_and_enum(validator, users):
    errors = validator.validate_record(valid_user(location="x" * 151, status="banned"), users)
    assert error_types(errors) == {("location", "max_length"), ("status", "enum")}


def test_format_rules(validator, users):
    errors = validator.validate_record(valid_user(email="not-an-email", slug="Not A Slug"), users)
    assert error_types(errors) == {("email", "format"), ("slug", "format")}
    assert "email: Invalid email format" in [str(e) for e in errors]


def test_custom_format_rule(validator, users):
    validator.register_rule("slug", lambda value: "reserved" if value == "admin" else None)
    errors = validator.validate_record(valid_user(slug="admin"), users)
    assert [e.message for e in errors] == ["reserved"]


def test_validation_rules():
    assert ValidationRules.email("a@b.co") is None
    assert ValidationRules.email("a@b") is not None
    assert ValidationRules.slug("getting-started-2") is None
    assert ValidationRules.slug("-leading") is not None
    assert ValidationRules.slug(None) is None
