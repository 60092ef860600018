"""
Re-dispatch of an import lineage to a fresh execution window.

A dispatcher takes an ImportCheckpoint and starts a new execution of the same
job from that offset. It must not run the work inline: the caller is about to
return because its own execution budget is nearly spent.
"""
import json
import logging
from concurrent.futures import Executor
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from recipient_importer.core.config import settings
from recipient_importer.domain.imports.exceptions import DispatchError
from recipient_importer.domain.imports.models import ImportCheckpoint

logger = logging.getLogger(__name__)


class LambdaDispatcher:
    """Invoke a function asynchronously with the checkpoint as its event."""

    def __init__(self, function_name: str, client: Optional[Any] = None):
        if not function_name:
            raise ValueError("A function name is required for Lambda re-dispatch")
        self.function_name = function_name
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("lambda", region_name=settings.dispatch_region)
        return self._client

    def __call__(self, checkpoint: ImportCheckpoint) -> Any:
        payload = checkpoint.to_payload()
        logger.info(f"Invoking {self.function_name} again from offset {checkpoint.offset}")
        try:
            response = self.client.invoke(
                FunctionName=self.function_name,
                InvocationType="Event",
                Payload=json.dumps(payload).encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error invoking {self.function_name}: {e}")
            raise DispatchError(f"Re-dispatch failed: {str(e)}") from e

        status_code = response.get("StatusCode") if isinstance(response, dict) else None
        if status_code is not None and status_code >= 300:
            raise DispatchError(f"Re-dispatch rejected with status {status_code}")
        return response


class ExecutorDispatcher:
    """Submit the next execution to an executor owned by the caller."""

    def __init__(self, executor: Executor, run_execution: Callable[[ImportCheckpoint], Any]):
        self.executor = executor
        self.run_execution = run_execution

    def __call__(self, checkpoint: ImportCheckpoint) -> Any:
        logger.info(
            "Queueing next execution for %s from offset %s",
            checkpoint.source_locator.key,
            checkpoint.offset,
        )
        try:
            return self.executor.submit(self.run_execution, checkpoint)
        except RuntimeError as e:
            # Raised by executors that have been shut down
            raise DispatchError(f"Re-dispatch failed: {str(e)}") from e
