import pytest

from recipient_importer.domain.imports.exceptions import PersistenceError
from recipient_importer.domain.imports.models import ImportJob, SourceLocator
from recipient_importer.domain.imports.normalizer import normalize_record
from recipient_importer.domain.imports.persister import MAX_CHUNK_SIZE, BatchPersister, next_chunk

from tests.utils.fakes import FakeBatchWriter, numbered_emails

JOB = ImportJob(
    user_id="u",
    list_id="l",
    source_locator=SourceLocator(bucket="b", key="u.l.csv"),
    file_format="csv",
)


def _entities(count):
    return [normalize_record({"email": email}, JOB, created_at=1) for email in numbered_emails(count)]


def test_full_write_reports_every_entity_written():
    writer = FakeBatchWriter()
    persister = BatchPersister(writer)

    outcome = persister.persist(_entities(10))

    assert (outcome.written, outcome.unwritten) == (10, 0)
    assert len(writer.calls) == 1


def test_partial_write_counts_only_confirmed_items():
    writer = FakeBatchWriter(unprocessed={1: 4})
    persister = BatchPersister(writer)

    outcome = persister.persist(_entities(25))

    assert (outcome.written, outcome.unwritten) == (21, 4)


def test_partial_write_on_short_chunk_is_relative_to_chunk_length():
    writer = FakeBatchWriter(unprocessed={1: 2})
    persister = BatchPersister(writer)

    outcome = persister.persist(_entities(5))

    assert (outcome.written, outcome.unwritten) == (3, 2)


def test_empty_unprocessed_list_means_fully_written():
    persister = BatchPersister(lambda chunk: [])

    assert persister.persist(_entities(3)).written == 3


def test_oversized_chunk_is_refused_before_calling_capability():
    writer = FakeBatchWriter()
    persister = BatchPersister(writer)

    with pytest.raises(ValueError):
        persister.persist(_entities(MAX_CHUNK_SIZE + 1))
    assert writer.calls == []


@pytest.mark.parametrize("chunk_size", [0, MAX_CHUNK_SIZE + 1])
def test_chunk_size_is_capped(chunk_size):
    with pytest.raises(ValueError):
        BatchPersister(FakeBatchWriter(), chunk_size=chunk_size)


def test_capability_error_is_wrapped_and_not_retried():
    writer = FakeBatchWriter(fail_on=1)
    persister = BatchPersister(writer)

    with pytest.raises(PersistenceError) as exc_info:
        persister.persist(_entities(5))

    assert "provisioned throughput exceeded" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert len(writer.calls) == 1


def test_next_chunk_slices_from_offset():
    entities = _entities(30)

    assert next_chunk(entities, 0, 25) == entities[:25]
    assert next_chunk(entities, 25, 25) == entities[25:]
    assert next_chunk(entities, 30, 25) == []


def test_next_chunk_after_partial_write_starts_at_first_unprocessed_item():
    entities = _entities(30)
    writer = FakeBatchWriter(unprocessed={1: 3})
    persister = BatchPersister(writer)

    outcome = persister.persist(next_chunk(entities, 0, MAX_CHUNK_SIZE))
    retried = next_chunk(entities, outcome.written, MAX_CHUNK_SIZE)

    assert writer.calls[0][outcome.written:] == retried[:3]
    assert retried[0] == entities[22]
