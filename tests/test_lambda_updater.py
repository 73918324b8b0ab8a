"""Test suite for lambda_updater.py"""

import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

sys.path.insert(0, str(Path(__file__).parent.parent))
from lambda_updater import UpdateStatus, report_dry_run, update_and_wait
from runtime_config import WaitPolicy


def status_client(*statuses, reason=''):
    """Lambda client double whose status polls return the given LastUpdateStatus values"""
    client = MagicMock()
    client.get_function_configuration.side_effect = [
        {'FunctionName': 'fn', 'LastUpdateStatus': s, 'LastUpdateStatusReason': reason} for s in statuses
    ]
    return client


def never_cancelled():
    cancel = MagicMock()
    cancel.wait.return_value = False
    return cancel


def client_error(code, operation):
    return ClientError({'Error': {'Code': code, 'Message': f'{code} happened'}}, operation)


class TestUpdateAndWait:
    """Test the update state machine"""

    def test_success_after_three_polls(self, capsys):
        client = status_client('InProgress', 'InProgress', 'Successful')
        cancel = never_cancelled()

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(timeout=300, interval=1),
                                  region='us-east-1', cancel=cancel)

        assert outcome.status == UpdateStatus.SUCCEEDED
        assert outcome.polls == 3
        assert outcome.region == 'us-east-1'
        assert client.get_function_configuration.call_count == 3
        client.update_function_configuration.assert_called_once_with(FunctionName='fn', Runtime='python3.12')
        assert [c.args for c in cancel.wait.call_args_list] == [(1,), (1,)]
        out = capsys.readouterr().out
        assert out.splitlines() == ['Updating fn to python3.12...', 'fn updated successfully']

    def test_failed_carries_reason(self, capsys):
        client = status_client('InProgress', 'Failed', reason='Runtime not supported')

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(300, 1), cancel=never_cancelled())

        assert outcome.status == UpdateStatus.FAILED
        assert outcome.reason == 'Runtime not supported'
        assert not outcome.ok
        assert 'fn update failed: Runtime not supported' in capsys.readouterr().out

    def test_times_out_and_stops_polling(self, capsys):
        client = MagicMock()
        client.get_function_configuration.return_value = {'LastUpdateStatus': 'InProgress'}

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(timeout=0.2, interval=0.1))

        assert outcome.status == UpdateStatus.TIMED_OUT
        polls = client.get_function_configuration.call_count
        assert polls == outcome.polls
        assert polls >= 2
        out = capsys.readouterr().out
        assert out.count('Timed out waiting for fn') == 1
        assert client.get_function_configuration.call_count == polls

    def test_timeout_checked_after_poll_response(self):
        # Clock jumps past the deadline during the first poll; the response is still honoured.
        clock = MagicMock(side_effect=[0.0, 10.0, 10.0])
        client = status_client('Successful')

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(timeout=1, interval=1),
                                  cancel=never_cancelled(), clock=clock)

        assert outcome.status == UpdateStatus.SUCCEEDED

    def test_pending_past_deadline_times_out_without_sleeping(self):
        clock = MagicMock(side_effect=[0.0, 5.0, 5.0, 5.0])
        client = status_client('InProgress')
        cancel = never_cancelled()

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(timeout=1, interval=1),
                                  cancel=cancel, clock=clock)

        assert outcome.status == UpdateStatus.TIMED_OUT
        assert outcome.polls == 1
        cancel.wait.assert_not_called()

    def test_submission_error_skips_polling(self, capsys):
        client = MagicMock()
        client.update_function_configuration.side_effect = client_error('ResourceConflictException', 'UpdateFunctionConfiguration')

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(300, 1), cancel=never_cancelled())

        assert outcome.status == UpdateStatus.REQUEST_ERROR
        assert 'ResourceConflictException' in outcome.reason
        client.get_function_configuration.assert_not_called()
        assert '  update error: ResourceConflictException' in capsys.readouterr().out

    def test_poll_error_ends_wait(self, capsys):
        client = MagicMock()
        client.get_function_configuration.side_effect = [
            {'LastUpdateStatus': 'InProgress'},
            EndpointConnectionError(endpoint_url='https://lambda.us-east-1.amazonaws.com'),
            {'LastUpdateStatus': 'Successful'},
        ]

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(300, 1), cancel=never_cancelled())

        assert outcome.status == UpdateStatus.REQUEST_ERROR
        assert outcome.polls == 2
        assert client.get_function_configuration.call_count == 2
        out = capsys.readouterr().out
        assert '  wait error:' in out
        assert 'updated successfully' not in out

    def test_poll_error_is_distinct_from_failure(self):
        client = MagicMock()
        client.get_function_configuration.side_effect = client_error('ThrottlingException', 'GetFunctionConfiguration')

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(300, 1), cancel=never_cancelled())

        assert outcome.status == UpdateStatus.REQUEST_ERROR
        assert outcome.status != UpdateStatus.FAILED

    def test_cancel_token_ends_wait(self, capsys):
        client = MagicMock()
        client.get_function_configuration.return_value = {'LastUpdateStatus': 'InProgress'}
        cancel = threading.Event()
        cancel.set()

        outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(300, 60), cancel=cancel)

        assert outcome.status == UpdateStatus.CANCELLED
        assert client.get_function_configuration.call_count == 1
        assert 'Cancelled waiting for fn' in capsys.readouterr().out

    def test_cancel_from_another_thread(self):
        client = MagicMock()
        client.get_function_configuration.return_value = {'LastUpdateStatus': 'InProgress'}
        cancel = threading.Event()
        timer = threading.Timer(0.05, cancel.set)
        timer.start()
        try:
            outcome = update_and_wait(client, 'fn', 'python3.12', WaitPolicy(300, 30), cancel=cancel)
        finally:
            timer.cancel()

        assert outcome.status == UpdateStatus.CANCELLED


class TestDryRun:
    """Test report_dry_run"""

    def test_dry_run_makes_no_calls(self, capsys):
        outcome = report_dry_run('fn', 'python3.9', 'python3.12', 'eu-west-1')
        assert outcome.status == UpdateStatus.DRY_RUN
        assert outcome.ok
        assert 'Would update fn from python3.9 to python3.12' in capsys.readouterr().out
