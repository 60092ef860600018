"""
Chunked persistence through the batch-write capability.

The capability accepts at most ``MAX_CHUNK_SIZE`` entities per call and
returns the items it could not write (or nothing when everything landed).
"""
import logging
from typing import Any, Callable, List, Optional, Sequence

from recipient_importer.domain.imports.exceptions import PersistenceError
from recipient_importer.domain.imports.models import ChunkOutcome, RecipientEntity

logger = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 25

PersistBatch = Callable[[List[RecipientEntity]], Optional[Sequence[Any]]]


def next_chunk(entities: Sequence[RecipientEntity], offset: int, chunk_size: int) -> List[RecipientEntity]:
    return list(entities[offset:offset + chunk_size])


class BatchPersister:
    """Write one chunk per call; never retries."""

    def __init__(self, persist_batch: PersistBatch, chunk_size: int = MAX_CHUNK_SIZE):
        if chunk_size < 1 or chunk_size > MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}, got {chunk_size}")
        self.persist_batch = persist_batch
        self.chunk_size = chunk_size

    def persist(self, chunk: Sequence[RecipientEntity]) -> ChunkOutcome:
        """
        Persist one chunk and report how much of it was confirmed written.

        Unprocessed items are assumed to be the tail of the chunk: the caller
        advances its offset by ``written``, so the next chunk starts at the
        first unprocessed item. A capability that drops an item from the
        middle of the chunk would have that item skipped and counted.

        Raises:
            ValueError: If the chunk is larger than the configured chunk size
            PersistenceError: If the capability call itself fails
        """
        if len(chunk) > self.chunk_size:
            raise ValueError(f"Chunk of {len(chunk)} exceeds the limit of {self.chunk_size}")
        if not chunk:
            return ChunkOutcome(written=0, unwritten=0)

        try:
            unprocessed = self.persist_batch(list(chunk))
        except Exception as e:
            logger.error(f"Batch write of {len(chunk)} recipients failed: {e}")
            raise PersistenceError(str(e) or type(e).__name__) from e

        unwritten = min(len(unprocessed), len(chunk)) if unprocessed else 0
        if unwritten:
            logger.warning(f"{unwritten} of {len(chunk)} recipients were left unprocessed")
        return ChunkOutcome(written=len(chunk) - unwritten, unwritten=unwritten)
