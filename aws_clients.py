"""
boto3 session and client construction, and account identity lookup.
Credentials come from the standard AWS credential chain for the given profile.
"""

import logging
import re

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# STS is global but the SDK still needs a region to sign against.
IDENTITY_REGION = 'us-east-1'


def sanitize_error(text) -> str:
    """Sanitize error messages to prevent credential leakage."""
    return re.sub(r'(AKIA|ASIA|aws_|secret)[^\s]+', '***REDACTED***', str(text), flags=re.IGNORECASE)


def error_message(exc: Exception) -> str:
    """Human readable, sanitized message for an SDK exception."""
    if isinstance(exc, ClientError):
        error = exc.response.get('Error', {})
        code = error.get('Code', 'Unknown')
        message = error.get('Message', str(exc))
        return sanitize_error(f"{code}: {message}")
    return sanitize_error(exc)


def create_session(profile: str, region: str) -> boto3.Session:
    """Create a session for a named profile pinned to one region."""
    logger.debug(f"Creating boto3 session for profile={profile} region={region}")
    return boto3.Session(profile_name=profile, region_name=region)


def lambda_client(profile: str, region: str):
    """Lambda client for one region. Raises BotoCoreError if the profile cannot be loaded."""
    return create_session(profile, region).client('lambda')


def sts_client(profile: str):
    return create_session(profile, IDENTITY_REGION).client('sts')


def resolve_account_id(profile: str, client=None) -> str:
    """
    Return the account id owning the credentials of a profile.

    Args:
        profile: AWS CLI profile name
        client: Optional STS client, built from the profile when omitted

    Returns:
        The 12 digit account id

    Raises:
        RuntimeError: If the credential chain or the identity service fails
    """
    try:
        sts = client or sts_client(profile)
        response = sts.get_caller_identity()
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"resolve account id: {error_message(e)}") from e

    account_id = response.get('Account', '')
    logger.info(f"Resolved profile {profile} to account {account_id}")
    return account_id
