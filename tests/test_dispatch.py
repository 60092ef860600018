import json
from concurrent.futures import ThreadPoolExecutor

import pytest
from botocore.exceptions import ClientError

from recipient_importer.domain.imports.exceptions import DispatchError
from recipient_importer.domain.imports.models import ImportCheckpoint, SourceLocator
from recipient_importer.integrations.dispatch import ExecutorDispatcher, LambdaDispatcher

CHECKPOINT = ImportCheckpoint(source_locator=SourceLocator(bucket="imports", key="u.l.csv"), offset=25)


class StubLambdaClient:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else {"StatusCode": 202}
        self.error = error
        self.invocations = []

    def invoke(self, **kwargs):
        self.invocations.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def test_lambda_dispatch_sends_checkpoint_as_async_event():
    client = StubLambdaClient()

    LambdaDispatcher("recipient-importer", client=client)(CHECKPOINT)

    (call,) = client.invocations
    assert call["FunctionName"] == "recipient-importer"
    assert call["InvocationType"] == "Event"
    assert json.loads(call["Payload"]) == {
        "sourceLocator": {"bucket": "imports", "key": "u.l.csv"},
        "offset": 25,
    }


def test_lambda_dispatch_wraps_client_errors():
    error = ClientError({"Error": {"Code": "TooManyRequestsException", "Message": "slow down"}}, "Invoke")
    dispatcher = LambdaDispatcher("recipient-importer", client=StubLambdaClient(error=error))

    with pytest.raises(DispatchError):
        dispatcher(CHECKPOINT)


def test_lambda_dispatch_rejects_error_status():
    dispatcher = LambdaDispatcher("recipient-importer", client=StubLambdaClient(response={"StatusCode": 500}))

    with pytest.raises(DispatchError):
        dispatcher(CHECKPOINT)


def test_lambda_dispatch_needs_a_function_name():
    with pytest.raises(ValueError):
        LambdaDispatcher("")


def test_executor_dispatch_runs_next_execution_with_checkpoint():
    seen = []
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = ExecutorDispatcher(executor, seen.append)(CHECKPOINT)
        future.result(timeout=5)

    assert seen == [CHECKPOINT]


def test_executor_dispatch_after_shutdown_is_a_dispatch_error():
    executor = ThreadPoolExecutor(max_workers=1)
    executor.shutdown()

    with pytest.raises(DispatchError):
        ExecutorDispatcher(executor, lambda checkpoint: None)(CHECKPOINT)
