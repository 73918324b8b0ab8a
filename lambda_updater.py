"""
Runtime update driver.

Submits an UpdateFunctionConfiguration request and polls the function's
LastUpdateStatus until it is Successful or Failed, the wait times out, a
request errors, or the caller cancels the wait.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import error_message
from runtime_config import WaitPolicy

logger = logging.getLogger(__name__)

STATUS_SUCCESSFUL = 'Successful'
STATUS_FAILED = 'Failed'


class UpdateStatus(Enum):
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    TIMED_OUT = 'timed_out'
    REQUEST_ERROR = 'request_error'
    CANCELLED = 'cancelled'
    DRY_RUN = 'dry_run'


@dataclass(frozen=True)
class UpdateOutcome:
    """Terminal result of one update attempt."""

    function_name: str
    region: str
    status: UpdateStatus
    reason: str = ''
    polls: int = 0
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in (UpdateStatus.SUCCEEDED, UpdateStatus.DRY_RUN)


def update_and_wait(
    client,
    function_name: str,
    target_runtime: str,
    wait: WaitPolicy,
    region: str = '',
    cancel=None,
    clock=time.monotonic,
) -> UpdateOutcome:
    """
    Change a function's runtime and block until the change settles.

    Prints one start line and exactly one terminal line.

    Args:
        client: Lambda client for the function's region
        function_name: Function to update
        target_runtime: Runtime identifier to switch to
        wait: Timeout and poll interval
        region: Region label carried into the outcome
        cancel: threading.Event-like token; setting it ends the wait
        clock: Monotonic clock, seconds

    Returns:
        UpdateOutcome describing the terminal state
    """
    cancel = cancel if cancel is not None else threading.Event()

    print(f"Updating {function_name} to {target_runtime}...")
    try:
        client.update_function_configuration(FunctionName=function_name, Runtime=target_runtime)
    except (ClientError, BotoCoreError) as e:
        reason = error_message(e)
        print(f"  update error: {reason}")
        return UpdateOutcome(function_name, region, UpdateStatus.REQUEST_ERROR, reason)

    start = clock()
    deadline = start + wait.timeout
    polls = 0
    while True:
        polls += 1
        try:
            config = client.get_function_configuration(FunctionName=function_name)
        except (ClientError, BotoCoreError) as e:
            reason = error_message(e)
            print(f"  wait error: {reason}")
            return UpdateOutcome(function_name, region, UpdateStatus.REQUEST_ERROR, reason,
                                 polls, clock() - start)

        status = config.get('LastUpdateStatus')
        logger.debug(f"{function_name}: poll {polls} LastUpdateStatus={status}")

        if status == STATUS_SUCCESSFUL:
            print(f"{function_name} updated successfully")
            return UpdateOutcome(function_name, region, UpdateStatus.SUCCEEDED, '',
                                 polls, clock() - start)
        if status == STATUS_FAILED:
            reason = config.get('LastUpdateStatusReason', '')
            print(f"{function_name} update failed: {reason}")
            return UpdateOutcome(function_name, region, UpdateStatus.FAILED, reason,
                                 polls, clock() - start)

        # Checked after each response only; a slow poll may overrun the deadline.
        if clock() > deadline:
            print(f"Timed out waiting for {function_name}")
            return UpdateOutcome(function_name, region, UpdateStatus.TIMED_OUT,
                                 f"still {status or 'pending'} after {wait.timeout:g}s",
                                 polls, clock() - start)

        if cancel.wait(wait.interval):
            print(f"Cancelled waiting for {function_name}")
            return UpdateOutcome(function_name, region, UpdateStatus.CANCELLED, '',
                                 polls, clock() - start)


def report_dry_run(function_name: str, source_runtime: str, target_runtime: str,
                   region: str = '') -> UpdateOutcome:
    print(f"Would update {function_name} from {source_runtime} to {target_runtime}")
    return UpdateOutcome(function_name, region, UpdateStatus.DRY_RUN)
