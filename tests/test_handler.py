from types import SimpleNamespace

import pytest

from recipient_importer import handler
from recipient_importer.db.import_status import ImportStatusStore
from recipient_importer.db.recipients import RecipientStore
from recipient_importer.domain.imports import service
from recipient_importer.domain.imports.exceptions import UnsupportedFormatError
from recipient_importer.domain.imports.models import ImportCheckpoint, SourceLocator
from recipient_importer.domain.imports.source import SourcePayload
from tests.utils.fakes import EXHAUSTED_MS, GENEROUS_MS, csv_bytes, numbered_emails


def _notification(key, offset=None):
    event = {"Records": [{"s3": {"bucket": {"name": "imports"}, "object": {"key": key}}}]}
    if offset is not None:
        event["importOffset"] = offset
    return event


def _context(remaining_ms):
    return SimpleNamespace(function_name="recipient-importer", get_remaining_time_in_millis=lambda: remaining_ms)


class RecordingDispatcher:
    instances = []

    def __init__(self, function_name):
        self.function_name = function_name
        self.checkpoints = []
        RecordingDispatcher.instances.append(self)

    def __call__(self, checkpoint):
        self.checkpoints.append(checkpoint)


@pytest.fixture
def wired(monkeypatch, sqlite_engine):
    """Point the service at SQLite stores and an in-memory source."""
    sources = {}
    monkeypatch.setattr(service, "recipient_store", RecipientStore(sqlite_engine))
    monkeypatch.setattr(service, "status_store", ImportStatusStore(sqlite_engine))
    monkeypatch.setattr(service, "fetch_source", lambda locator: sources[locator.key])
    RecordingDispatcher.instances = []
    monkeypatch.setattr(handler, "LambdaDispatcher", RecordingDispatcher)
    return sources


def test_notification_starts_at_zero():
    checkpoint = handler.parse_event(_notification("user-1.list-1.csv"))

    assert checkpoint == ImportCheckpoint(
        source_locator=SourceLocator(bucket="imports", key="user-1.list-1.csv"), offset=0
    )


def test_legacy_continuation_carries_import_offset():
    assert handler.parse_event(_notification("user-1.list-1.csv", offset=50)).offset == 50


def test_checkpoint_event_round_trips():
    checkpoint = ImportCheckpoint(source_locator=SourceLocator(bucket="imports", key="u.l.csv"), offset=75)

    assert handler.parse_event(checkpoint.to_payload()) == checkpoint


def test_event_without_records_is_rejected():
    with pytest.raises(ValueError):
        handler.parse_event({"Records": []})


def test_small_file_finishes_in_one_invocation(wired):
    wired["user-1.list-1.csv"] = SourcePayload(content=csv_bytes(numbered_emails(3) + ["nope"]), column_mapping={})

    payload = handler.handle(_notification("user-1.list-1.csv"), _context(GENEROUS_MS))

    assert payload["importStatus"] == "SUCCESS"
    assert payload["importedCount"] == 3
    assert payload["corruptedEmails"] == ["nope"]
    assert service.status_store.get_report("user-1", "list-1").imported_count == 3
    assert service.recipient_store.count_recipients("list-1") == 3
    assert RecordingDispatcher.instances[0].checkpoints == []


def test_low_remaining_time_hands_off_a_checkpoint(wired):
    wired["user-1.list-1.csv"] = SourcePayload(content=csv_bytes(numbered_emails(30)), column_mapping={})

    payload = handler.handle(_notification("user-1.list-1.csv"), _context(EXHAUSTED_MS))

    assert payload == {"checkpoint": {"sourceLocator": {"bucket": "imports", "key": "user-1.list-1.csv"}, "offset": 25}}
    (dispatcher,) = RecordingDispatcher.instances
    assert dispatcher.function_name == "recipient-importer"
    assert [c.offset for c in dispatcher.checkpoints] == [25]
    assert service.status_store.get_report("user-1", "list-1") is None

    resumed = handler.handle(payload["checkpoint"], _context(EXHAUSTED_MS))
    assert resumed["importedCount"] == 30


def test_unsupported_file_is_rejected_before_fetch(wired):
    with pytest.raises(UnsupportedFormatError):
        handler.handle(_notification("user-1.list-1.xlsx"), _context(GENEROUS_MS))
