"""
Access Key Rotation
===================

Replaces the caller's IAM access key and writes the new one into the
shared credentials file.

IAM allows at most two access keys per user. When two already exist the
oldest one is deleted first, which requires confirmation unless forced.

Only the first ``aws_access_key_id`` and the first
``aws_secret_access_key`` line are rewritten; every other line is copied
verbatim. For a credentials file with several profiles, that means the
first profile in the file is the one updated::

    [default]
    aws_access_key_id=AKIA...
    aws_secret_access_key=...

Functions
---------
default_credentials_path
    Locate the credentials file.
rewrite_credentials
    Replace the key lines in a list of file lines.
rotate_access_keys
    Perform the full rotation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ConfigError, CredentialsError

logger = logging.getLogger(__name__)

ACCESS_KEY_PREFIX = "aws_access_key_id"
SECRET_KEY_PREFIX = "aws_secret_access_key"

MAX_ACCESS_KEYS = 1


@dataclass
class RotationResult:
    """What ``rotate_access_keys`` did."""

    path: str
    new_key_id: str
    deleted_key_id: Optional[str] = None


def default_credentials_path(path: Optional[str] = None) -> str:
    """
    Return the credentials file to rewrite.

    ``path`` is the ``--path`` option or ``Settings.credentials_path``
    (``AWS_SHARED_CREDENTIALS_FILE``); without one, ``~/.aws/credentials``.
    """
    if path:
        return path
    return str(Path.home() / ".aws" / "credentials")


def rewrite_credentials(lines: List[str], key_id: str, secret: str) -> List[str]:
    """
    Return ``lines`` with the first access key and secret lines replaced.

    >>> rewrite_credentials(
    ...     ["[default]", "aws_access_key_id=OLD", "aws_secret_access_key=OLD"],
    ...     "NEW", "SECRET",
    ... )
    ['[default]', 'aws_access_key_id=NEW', 'aws_secret_access_key=SECRET']
    """
    replaced_key = False
    replaced_secret = False
    output = []

    for line in lines:
        if not replaced_key and line.startswith(ACCESS_KEY_PREFIX):
            output.append(f"{ACCESS_KEY_PREFIX}={key_id}")
            replaced_key = True
        elif not replaced_secret and line.startswith(SECRET_KEY_PREFIX):
            output.append(f"{SECRET_KEY_PREFIX}={secret}")
            replaced_secret = True
        else:
            output.append(line)

    return output


def rotate_access_keys(
    client: AWSClient,
    path: str,
    confirm: Optional[Callable[[str], bool]] = None,
) -> RotationResult:
    """
    Create a new access key and write it to ``path``.

    Parameters
    ----------
    client : AWSClient
        Client using the key that is being rotated.
    path : str
        Credentials file to rewrite.
    confirm : callable, optional
        Called with the ID of the key about to be deleted when two keys
        already exist. Returning False aborts before anything changes.
        When omitted the deletion goes ahead without asking.

    Returns
    -------
    RotationResult

    Raises
    ------
    CredentialsError
        An IAM call failed or the deletion was not confirmed.
    ConfigError
        The credentials file cannot be read or written.
    """
    iam = client.get_iam_client()

    try:
        keys = iam.list_access_keys().get("AccessKeyMetadata", [])
    except (ClientError, BotoCoreError) as e:
        raise CredentialsError(f"Error listing current keys: {e}", service="iam")

    deleted_key_id = None
    if len(keys) > MAX_ACCESS_KEYS:
        oldest = min(keys, key=lambda k: k["CreateDate"])
        deleted_key_id = oldest["AccessKeyId"]

        if confirm is not None and not confirm(deleted_key_id):
            raise CredentialsError(
                "Aborting: deletion of the oldest key was not confirmed",
                service="iam",
            )

        logger.info(f"Deleting oldest access key {deleted_key_id}")
        try:
            iam.delete_access_key(AccessKeyId=deleted_key_id)
        except (ClientError, BotoCoreError) as e:
            raise CredentialsError(f"Error deleting oldest key: {e}", service="iam")

    # Read before creating, so an unreadable file never orphans a new key.
    try:
        with open(path, encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except OSError as e:
        raise ConfigError(f"Couldn't open {path} for reading: {e}", path=path)

    try:
        created = iam.create_access_key()["AccessKey"]
    except (ClientError, BotoCoreError) as e:
        raise CredentialsError(f"Error creating new keys: {e}", service="iam")

    updated = rewrite_credentials(lines, created["AccessKeyId"], created["SecretAccessKey"])
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.writelines(f"{line}\n" for line in updated)
    except OSError as e:
        raise ConfigError(
            f"Created new key {created['AccessKeyId']}, but couldn't write {path}: {e}",
            path=path,
        )

    logger.info(f"Wrote new access key {created['AccessKeyId']} to {path}")
    return RotationResult(path=path, new_key_id=created["AccessKeyId"], deleted_key_id=deleted_key_id)
