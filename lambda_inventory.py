"""
Lambda function inventory: list every function in a region, or look one up.
"""

import logging
from dataclasses import dataclass
from typing import Iterator

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import error_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionDescriptor:
    """Snapshot of one function's name and runtime in a region."""

    name: str
    runtime: str  # empty for container image functions or unreadable configs
    region: str = ''

    @classmethod
    def from_configuration(cls, config: dict, region: str = '') -> "FunctionDescriptor":
        return cls(
            name=config.get('FunctionName', ''),
            runtime=config.get('Runtime', '') or '',
            region=region,
        )


def iter_functions(client, region: str = '') -> Iterator[FunctionDescriptor]:
    """
    Yield every function in the client's region.

    Continuation markers are followed by the boto3 paginator, so callers see
    one flat sequence. A failing page raises out of the generator.
    """
    paginator = client.get_paginator('list_functions')
    count = 0
    for page in paginator.paginate():
        for config in page.get('Functions', []):
            count += 1
            yield FunctionDescriptor.from_configuration(config, region)
    logger.debug(f"Listed {count} functions in {region or 'default region'}")


def get_function(client, function_name: str, region: str = '') -> FunctionDescriptor:
    """Fetch one function's configuration. Raises ClientError if it is missing or unreadable."""
    config = client.get_function_configuration(FunctionName=function_name)
    return FunctionDescriptor.from_configuration(config, region)


def get_runtime(client, function_name: str) -> str:
    """Best-effort runtime lookup; returns '' when the function cannot be read."""
    try:
        return get_function(client, function_name).runtime
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"Could not read runtime of {function_name}: {error_message(e)}")
        return ''
