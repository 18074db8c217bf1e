"""
Role Runner Module
==================

Runs one per-account operation either against the caller's own account
or, given a role-list file, once for every role listed in it.

This module handles:
- Resolving the caller identity once, before any account is processed
- Parsing the role-list file, skipping comments and malformed lines
- Assuming each role and building a fresh account-scoped client
- Accumulating per-account failures without stopping the batch

Classes
-------
RoleRunner
    Sequential multi-account executor.

Functions
---------
run_across_accounts
    Convenience wrapper around ``RoleRunner.run``.
parse_role_line
    Return the role ARN held by one line of a role file, or None.

Example
-------
>>> from aws_utils.core.role_runner import run_across_accounts
>>>
>>> def show_account(client, account_id, prefix):
...     print(f"{prefix}{account_id}")
>>>
>>> errors = run_across_accounts(AWSClient(), "roles.txt", show_account, "> ")
>>> for error in errors:
...     print(error)

Role File Format
----------------
One role ARN per line. Blank lines, lines starting with ``#`` and lines
that are not ARNs are ignored::

    # production
    arn:aws:iam::111122223333:role/alpha
    arn:aws:iam::444455556666:role/beta

Notes
-----
Accounts are processed one at a time in file order. The list of errors
returned is therefore deterministic, which matters for operations that
mutate shared security state.

See Also
--------
AWSClient : The account-scoped client handed to each operation.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, Optional, TypeVar

from aws_utils.core.aws_client import DEFAULT_SESSION_NAME, AWSClient
from aws_utils.core.exceptions import (
    AccountOperationError,
    AWSClientError,
    AWSUtilsError,
    RoleFileError,
)
from aws_utils.core.identity import MIN_ARN_FIELDS, account_id_from_role_arn, resolve_account_id

# Module logger
logger = logging.getLogger(__name__)

C = TypeVar("C")

#: ``operation(client, account_id, context)``; failure is signalled by raising.
AccountOperation = Callable[[AWSClient, str, C], None]

ROLE_ARN_PREFIX = "arn:"


def parse_role_line(line: str) -> Optional[str]:
    """
    Return the role ARN on a role-file line, or None if it should be skipped.

    Parameters
    ----------
    line : str
        A raw line from the role file.

    Returns
    -------
    str or None
        The stripped ARN, or None for blank, comment and malformed lines.

    Example
    -------
    >>> parse_role_line("  arn:aws:iam::111122223333:role/alpha\\n")
    'arn:aws:iam::111122223333:role/alpha'
    >>> parse_role_line("# arn:aws:iam::111122223333:role/alpha") is None
    True
    """
    role = line.strip()
    if not role or role.startswith("#"):
        return None
    if not role.startswith(ROLE_ARN_PREFIX):
        return None
    if len(role.split(":")) < MIN_ARN_FIELDS:
        return None
    return role


class RoleRunner(Generic[C]):
    """
    Sequential executor for per-account operations.

    Parameters
    ----------
    base_client : AWSClient
        Client bound to the caller's own credentials. Roles are assumed
        from it.
    session_name : str, default="aws-utils"
        Role session name used for every AssumeRole call.
    progress_callback : callable, optional
        Called as ``progress_callback(account_id, status)`` after each
        account, with status ``"complete"`` or ``"error"``.

    Examples
    --------
    >>> runner = RoleRunner(AWSClient(region="eu-central-1"))
    >>> errors = runner.run("roles.txt", list_subnets, SubnetOptions())
    >>> exit_code = 1 if errors else 0
    """

    def __init__(
        self,
        base_client: AWSClient,
        session_name: str = DEFAULT_SESSION_NAME,
        progress_callback: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.base_client = base_client
        self.session_name = session_name
        self.progress_callback = progress_callback

    def run(
        self,
        roles_path: Optional[str],
        operation: AccountOperation[C],
        context: C,
    ) -> List[AWSUtilsError]:
        """
        Run ``operation`` for the default account or every listed role.

        Parameters
        ----------
        roles_path : str, optional
            Path to a role-list file. Empty or None means "the caller's
            own account only".
        operation : callable
            ``operation(client, account_id, context)``.
        context : any
            Forwarded unchanged to every invocation.

        Returns
        -------
        list of AWSUtilsError
            Accumulated failures in processing order; empty on full success.

        Raises
        ------
        AuthenticationError
            If the caller identity cannot be resolved. Nothing is run.
        """
        account_id = resolve_account_id(self.base_client)
        logger.debug(f"Running as account {account_id}")

        if not roles_path:
            error = self._invoke(self.base_client, account_id, None, operation, context)
            return [error] if error else []

        try:
            handle = open(roles_path, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error opening role-file {roles_path}: {e}")
            return [RoleFileError(f"Error opening role-file: {e}", path=roles_path)]

        errors: List[AWSUtilsError] = []
        with handle:
            try:
                for line_number, line in enumerate(handle, 1):
                    role_arn = parse_role_line(line)
                    if role_arn is None:
                        logger.debug(f"Skipping line {line_number} of {roles_path}")
                        continue

                    error = self._run_role(role_arn, operation, context)
                    if error:
                        errors.append(error)
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Error processing role-file {roles_path}: {e}")
                errors.append(
                    RoleFileError(f"Error processing role-file: {e}", path=roles_path)
                )

        return errors

    def _run_role(
        self,
        role_arn: str,
        operation: AccountOperation[C],
        context: C,
    ) -> Optional[AccountOperationError]:
        """Assume one role and run the operation against it."""
        account_id = account_id_from_role_arn(role_arn)

        try:
            scoped_client = self.base_client.assume_role(role_arn, self.session_name)
        except AWSClientError as e:
            logger.error(f"Failed to assume {role_arn}: {e.message}")
            self._report(account_id, "error")
            return AccountOperationError(
                f"Error for role {role_arn}: {e.message}",
                account_id=account_id,
                role_arn=role_arn,
                cause=e,
            )

        with scoped_client:
            return self._invoke(scoped_client, account_id, role_arn, operation, context)

    def _invoke(
        self,
        client: AWSClient,
        account_id: str,
        role_arn: Optional[str],
        operation: AccountOperation[C],
        context: C,
    ) -> Optional[AccountOperationError]:
        """Run the operation once, converting any failure into an error value."""
        logger.info(f"Processing account {account_id}")
        try:
            operation(client, account_id, context)
        except Exception as e:
            logger.error(f"Operation failed for account {account_id}: {e}")
            self._report(account_id, "error")
            target = f"role {role_arn}" if role_arn else f"account {account_id}"
            return AccountOperationError(
                f"Error for {target}: {e}",
                account_id=account_id,
                role_arn=role_arn,
                cause=e,
            )

        self._report(account_id, "complete")
        return None

    def _report(self, account_id: str, status: str) -> None:
        if self.progress_callback:
            self.progress_callback(account_id, status)


def run_across_accounts(
    base_client: AWSClient,
    roles_path: Optional[str],
    operation: AccountOperation[C],
    context: C,
) -> List[AWSUtilsError]:
    """
    Run ``operation`` across the default account or a role list.

    See ``RoleRunner.run`` for the full contract.
    """
    return RoleRunner(base_client).run(roles_path, operation, context)
