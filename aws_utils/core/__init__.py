"""
Core Infrastructure Components
==============================

This module provides the foundational components for aws-utils:

- :class:`AWSClient` - Account-scoped session and service clients
- :class:`RoleRunner` - Runs one operation per account in a role list
- Identity helpers - Resolve the caller's account ID and alias
- Exception hierarchy for error handling

Classes
-------
AWSClient
    AWS client wrapper with retry configuration and role assumption.
RoleRunner
    Sequential multi-account executor.
Settings
    Defaults read from the environment.

Exceptions
----------
AWSUtilsError
    Base exception for all aws-utils errors.
AWSClientError
    Base exception for AWS client errors.
CredentialsError
    Raised when credentials are invalid or missing.
AuthenticationError
    Raised when the caller identity cannot be resolved.
ConfigError
    Raised for unreadable or invalid input files.
AccountOperationError
    One account's failure inside a multi-account run.

Example
-------
>>> from aws_utils.core import AWSClient, RoleRunner
>>>
>>> client = AWSClient(region="eu-central-1", profile="production")
>>> errors = RoleRunner(client).run("roles.txt", operation, context)

See Also
--------
aws_utils.scanners : Per-account read-only operations.
aws_utils.reconcilers : Allow-list reconciliation.
aws_utils.reporters : Output formatters.
"""

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.config import Settings
from aws_utils.core.exceptions import (
    AccountOperationError,
    AmbiguousRuleError,
    AuthenticationError,
    AWSClientError,
    AWSUtilsError,
    ConfigError,
    CredentialsError,
    PublicIPError,
    ReconcileError,
    RegionError,
    RoleFileError,
    ScannerError,
    ServiceError,
)
from aws_utils.core.identity import (
    account_id_from_role_arn,
    resolve_account_alias,
    resolve_account_id,
)
from aws_utils.core.role_runner import AccountOperation, RoleRunner, run_across_accounts

__all__ = [
    # Client
    "AWSClient",
    "Settings",
    # Identity
    "account_id_from_role_arn",
    "resolve_account_alias",
    "resolve_account_id",
    # Multi-account execution
    "AccountOperation",
    "RoleRunner",
    "run_across_accounts",
    # Exceptions - Base
    "AWSUtilsError",
    # Exceptions - AWS Client
    "AWSClientError",
    "AuthenticationError",
    "CredentialsError",
    "RegionError",
    "ServiceError",
    # Exceptions - Input
    "ConfigError",
    "RoleFileError",
    # Exceptions - Operations
    "AccountOperationError",
    "ScannerError",
    "ReconcileError",
    "AmbiguousRuleError",
    "PublicIPError",
]
