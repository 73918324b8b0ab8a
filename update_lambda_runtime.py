#!/usr/bin/env python3
"""
List and bump AWS Lambda function runtimes across regions for one AWS profile.

  update-lambda-runtime list --profile prod --regions us-east-1,eu-west-1 --all
  update-lambda-runtime bump --profile prod --regions us-east-1 --function my-fn \
      --source-runtime python3.9 --target-runtime python3.12
"""

import argparse
import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

import aws_clients
from lambda_inventory import FunctionDescriptor, get_runtime, iter_functions
from lambda_updater import UpdateOutcome, UpdateStatus, report_dry_run, update_and_wait
from runtime_config import DEFAULT_SOURCE_RUNTIME, DEFAULT_TARGET_RUNTIME, RuntimeOptions, describe
from runtime_report import RuntimeTable

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr so stdout carries only the report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


@dataclass
class RunSummary:
    """Everything one list/bump invocation produced."""

    account_id: str = ''
    rows: List[FunctionDescriptor] = field(default_factory=list)
    outcomes: List[UpdateOutcome] = field(default_factory=list)
    region_errors: Dict[str, str] = field(default_factory=dict)

    def count(self, status: UpdateStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def failed(self) -> List[UpdateOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def describe_outcomes(self) -> str:
        parts = [
            f"{self.count(UpdateStatus.SUCCEEDED)} succeeded",
            f"{self.count(UpdateStatus.FAILED)} failed",
            f"{self.count(UpdateStatus.TIMED_OUT)} timed out",
            f"{self.count(UpdateStatus.REQUEST_ERROR)} errors",
        ]
        for status, label in ((UpdateStatus.CANCELLED, 'cancelled'), (UpdateStatus.DRY_RUN, 'dry run')):
            if self.count(status):
                parts.append(f"{self.count(status)} {label}")
        return ', '.join(parts)


class RuntimeBumper:
    def __init__(
        self,
        options: RuntimeOptions,
        lambda_client_factory: Optional[Callable] = None,
        sts_client=None,
        table: Optional[RuntimeTable] = None,
        cancel: Optional[threading.Event] = None,
    ):
        """Initialize with validated-on-run options and optional client factories."""
        self.options = options
        self.lambda_client_factory = lambda_client_factory or aws_clients.lambda_client
        self.sts_client = sts_client
        self.table = table or RuntimeTable(show_profile=options.show_profile)
        self.cancel = cancel or threading.Event()

    def run_list(self) -> RunSummary:
        """Print current runtimes; never mutates anything."""
        return self._run(bump=False)

    def run_bump(self) -> RunSummary:
        """Print current runtimes and update every function on the source runtime."""
        return self._run(bump=True)

    def _run(self, bump: bool) -> RunSummary:
        opts = self.options
        opts.validate()
        logger.debug(f"Running {'bump' if bump else 'list'}: {describe(opts)}")

        self.table.write_header()
        summary = RunSummary(account_id=aws_clients.resolve_account_id(opts.profile, client=self.sts_client))

        for region in opts.regions:
            try:
                client = self.lambda_client_factory(opts.profile, region)
            except (BotoCoreError, ClientError) as e:
                self._region_failed(summary, region, f"create lambda client: {aws_clients.error_message(e)}")
                continue

            if opts.function_name:
                function = FunctionDescriptor(opts.function_name, get_runtime(client, opts.function_name), region)
                self._process(summary, client, function, bump)
                continue

            # A partial listing is discarded; nothing in the region is printed or updated.
            try:
                functions = list(iter_functions(client, region))
            except (BotoCoreError, ClientError) as e:
                self._region_failed(summary, region, f"list functions: {aws_clients.error_message(e)}")
                continue
            for function in functions:
                self._process(summary, client, function, bump)

        self.table.flush()
        return summary

    def _process(self, summary: RunSummary, client, function: FunctionDescriptor, bump: bool) -> None:
        opts = self.options
        self.table.add_row(summary.account_id, opts.profile, function.region, function.name, function.runtime)
        summary.rows.append(function)

        if not bump or function.runtime != opts.source_runtime:
            return
        if opts.dry_run:
            outcome = report_dry_run(function.name, opts.source_runtime, opts.target_runtime, function.region)
        else:
            outcome = update_and_wait(
                client,
                function.name,
                opts.target_runtime,
                opts.wait,
                region=function.region,
                cancel=self.cancel,
            )
        if not outcome.ok:
            logger.debug(f"{function.name} in {function.region}: {outcome.status.value} {outcome.reason}")
        summary.outcomes.append(outcome)

    def _region_failed(self, summary: RunSummary, region: str, message: str) -> None:
        summary.region_errors[region] = message
        print(f"Error: {region}: {message}")


class CliArgumentParser(argparse.ArgumentParser):
    """Usage errors are reported like every other error: on stdout, exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        print(f"Error: {message}")
        sys.exit(1)


def add_common_arguments(parser: argparse.ArgumentParser, default=None) -> None:
    """
    Add the flags shared by every subcommand.

    They are accepted before or after the subcommand name. Subparsers pass
    argparse.SUPPRESS as the default so a flag given before the subcommand is
    not reset by the subcommand's own defaults.
    """
    flag_default = False if default is None else default
    parser.add_argument('--profile', default=default, help='AWS CLI profile (required)')
    parser.add_argument(
        '--regions',
        action='extend',
        nargs='+',
        default=default,
        metavar='REGION',
        help='One or more regions, space or comma separated; may be repeated (required)',
    )
    parser.add_argument('--function', default=default, help='Lambda function name (if not using --all)')
    parser.add_argument('--all', action='store_true', default=flag_default,
                        help='Process all functions in the region(s)')
    parser.add_argument(
        '--source-runtime',
        default=default,
        help=f"Only update functions on this runtime (default: {DEFAULT_SOURCE_RUNTIME})",
    )
    parser.add_argument(
        '--target-runtime',
        default=default,
        help=f"Update to this runtime (default: {DEFAULT_TARGET_RUNTIME})",
    )
    parser.add_argument('--wait-timeout', default=default,
                        help='Max time to wait for each update, e.g. 5m, 90s (default: 5m)')
    parser.add_argument('--wait-interval', default=default,
                        help='Polling interval during an update, e.g. 5s (default: 5s)')
    parser.add_argument('--show-profile', action='store_true', default=flag_default,
                        help='Also print the profile column')
    parser.add_argument('--config', default=default, help='YAML file with default values for these options')
    parser.add_argument('--verbose', action='store_true', default=flag_default, help='Enable debug logging')


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with list and bump subcommands sharing one flag set."""
    parser = CliArgumentParser(
        prog='update-lambda-runtime',
        description='Manage AWS Lambda runtimes across accounts/regions',
    )
    add_common_arguments(parser)

    subparsers = parser.add_subparsers(dest='command', metavar='{list,bump}')
    subparsers.required = True
    list_parser = subparsers.add_parser('list', help='List Lambda functions and runtimes')
    add_common_arguments(list_parser, default=argparse.SUPPRESS)
    bump = subparsers.add_parser(
        'bump',
        help=f"Update Lambda runtime from {DEFAULT_SOURCE_RUNTIME} to {DEFAULT_TARGET_RUNTIME}",
    )
    add_common_arguments(bump, default=argparse.SUPPRESS)
    bump.add_argument('--dry-run', action='store_true', help='Show which functions would be updated')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        options = RuntimeOptions.from_args(args)
        bumper = RuntimeBumper(options)
        if args.command == 'bump':
            summary = bumper.run_bump()
            for outcome in summary.failed:
                logger.warning(f"{outcome.function_name} ({outcome.region}) not updated: "
                               f"{outcome.status.value} {outcome.reason}".rstrip())
            print(f"Summary: {summary.describe_outcomes()}")
        else:
            summary = bumper.run_list()
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("Error: interrupted")
        return 1

    return 1 if summary.region_errors else 0


if __name__ == "__main__":
    sys.exit(main())
