"""
Identity Resolution
===================

Determines which AWS account a set of credentials belongs to.

The caller identity is resolved once per invocation against the base
session; inside a role iteration the account is read straight out of the
role ARN instead of making another network call.

Functions
---------
resolve_account_id
    Account ID of the caller, via STS GetCallerIdentity.
resolve_account_alias
    First IAM account alias, if any.
account_id_from_role_arn
    Account ID embedded in a role ARN.
"""

from __future__ import annotations

import logging
from typing import Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
)

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import AuthenticationError, ConfigError, CredentialsError

# Module logger
logger = logging.getLogger(__name__)

# arn:partition:service:region:account-id:resource
ACCOUNT_ID_FIELD = 4
MIN_ARN_FIELDS = 6

CREDENTIAL_ERROR_HINTS = {
    "ExpiredToken": "Your temporary credentials have expired",
    "InvalidClientTokenId": "The specified credentials have an invalid security token",
    "SignatureDoesNotMatch": "Check your access key and secret key",
}


def resolve_account_id(client: AWSClient) -> str:
    """
    Return the account ID associated with the client's credentials.

    Parameters
    ----------
    client : AWSClient
        The base (non-assumed) client.

    Returns
    -------
    str
        The 12-digit AWS account ID.

    Raises
    ------
    AuthenticationError
        If credentials are missing, expired or rejected, or STS cannot be
        reached.
    """
    try:
        identity = client.get_sts_client().get_caller_identity()
    except NoCredentialsError:
        raise AuthenticationError(
            "No AWS credentials were found",
            details={
                "hint": "See https://docs.aws.amazon.com/cli/latest/userguide/cli-chap-getting-started.html",
            },
        )
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        raise AuthenticationError(
            CREDENTIAL_ERROR_HINTS.get(error_code, f"Failed to get identity: {e}"),
            service="sts",
            details={"error_code": error_code},
        )
    except BotoCoreError as e:
        raise AuthenticationError(f"Failed to get identity: {e}", service="sts")
    except CredentialsError as e:
        raise AuthenticationError(e.message, details=e.details)

    logger.debug(f"Caller identity is {identity.get('Arn')}")
    return identity["Account"]


def resolve_account_alias(client: AWSClient) -> Optional[str]:
    """
    Return the first IAM account alias, or None.

    A missing ``iam:ListAccountAliases`` permission is not an error; the
    caller falls back to the account ID.
    """
    try:
        response = client.get_iam_client().list_account_aliases()
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"Unable to retrieve account alias: {e}")
        return None

    aliases = response.get("AccountAliases", [])
    return aliases[0] if aliases else None


def account_id_from_role_arn(role_arn: str) -> str:
    """
    Extract the account ID from a role ARN.

    Example
    -------
    >>> account_id_from_role_arn("arn:aws:iam::111122223333:role/alpha")
    '111122223333'
    """
    fields = role_arn.split(":")
    if len(fields) < MIN_ARN_FIELDS or fields[0] != "arn":
        raise ConfigError(f"Invalid role ARN {role_arn!r}", details={"role_arn": role_arn})
    return fields[ACCOUNT_ID_FIELD]
