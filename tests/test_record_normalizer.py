import base64

from recipient_importer.domain.imports.models import ImportJob, SourceLocator
from recipient_importer.domain.imports.normalizer import normalize_record, recipient_id


def _job(mapping=None):
    return ImportJob(
        user_id="user-1",
        list_id="list-1",
        source_locator=SourceLocator(bucket="imports", key="user-1.list-1.csv"),
        file_format="csv",
        column_mapping=mapping or {},
    )


def test_same_row_yields_same_identity():
    raw = {"email": "jane@example.com", "First Name": "Jane"}
    job = _job({"First Name": "name"})

    first = normalize_record(raw, job, created_at=1)
    second = normalize_record(raw, job, created_at=2)

    assert first.id == second.id
    assert normalize_record(raw, job, created_at=1) == first


def test_identity_is_unpadded_urlsafe_base64_of_email():
    assert recipient_id("a@b.co") == "YUBiLmNv"
    assert "=" not in recipient_id("ab@c.de")
    decoded = base64.urlsafe_b64decode(recipient_id("x+tag@y.io") + "==")
    assert decoded == b"x+tag@y.io"


def test_mapped_columns_land_in_metadata_under_destination_names():
    raw = {"email": "jane@example.com", "First Name": "Jane", "Town": "Oslo", "ignored": "x"}
    job = _job({"First Name": "name", "Town": "city", "Missing": "age", "email": "address"})

    entity = normalize_record(raw, job, created_at=1700000000000)

    assert entity.metadata == {"name": "Jane", "city": "Oslo", "age": None}
    assert entity.email == "jane@example.com"
    assert entity.user_id == "user-1"
    assert entity.list_id == "list-1"


def test_defaults_are_fixed_at_normalization_time():
    entity = normalize_record({"email": "jane@example.com"}, _job(), created_at=42)

    assert entity.status == "subscribed"
    assert entity.is_confirmed is True
    assert entity.created_at == 42


def test_missing_email_becomes_empty_string():
    entity = normalize_record({"name": "nobody"}, _job(), created_at=1)

    assert entity.email == ""


def test_custom_email_column():
    entity = normalize_record({"E-Mail": "jane@example.com"}, _job(), created_at=1, email_column="E-Mail")

    assert entity.email == "jane@example.com"
