"""
Exceptions raised by aws-utils.

Every error carries a human-readable ``message`` and a ``details`` dict
with whatever identifiers are known (account, role, security group,
file path). Multi-account commands collect these instead of stopping,
then print the messages as a summary and exit non-zero.

::

    AWSUtilsError
    ├── AWSClientError
    │   ├── CredentialsError
    │   │   └── AuthenticationError   fatal: identity lookup failed
    │   ├── RegionError
    │   └── ServiceError
    ├── ConfigError
    │   └── RoleFileError
    ├── AccountOperationError         one account or role failed
    ├── ScannerError
    └── ReconcileError
        ├── AmbiguousRuleError
        └── PublicIPError
"""

from __future__ import annotations

from typing import Any, Dict, Optional


def _merge(details: Optional[Dict[str, Any]], **fields: Any) -> Dict[str, Any]:
    merged = dict(details or {})
    merged.update({key: value for key, value in fields.items() if value})
    return merged


class AWSUtilsError(Exception):
    """
    Base class for aws-utils errors.

    Parameters
    ----------
    message : str
        What went wrong, suitable for printing to the user as-is.
    details : dict, optional
        Identifiers of the resources involved.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class AWSClientError(AWSUtilsError):
    """A session, service client or STS call could not be set up."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        super().__init__(message, _merge(details, service=service, region=region))


class CredentialsError(AWSClientError):
    """Credentials are missing, refused, or a role could not be assumed."""


class AuthenticationError(CredentialsError):
    """
    The caller identity could not be resolved.

    Raised once, against the base session, before any account is
    processed, and ends the whole invocation.
    """


class RegionError(AWSClientError):
    pass


class ServiceError(AWSClientError):
    pass


class ConfigError(AWSUtilsError):
    """An input file (whitelist config, credentials file) is unusable."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.path = path
        super().__init__(message, _merge(details, path=path))


class RoleFileError(ConfigError):
    """The role-list file could not be opened, or reading it failed part way."""


class AccountOperationError(AWSUtilsError):
    """
    One account's share of a multi-account run failed.

    ``cause`` is the original exception: a failed role assumption or
    whatever the per-account operation raised.
    """

    def __init__(
        self,
        message: str,
        account_id: Optional[str] = None,
        role_arn: Optional[str] = None,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.account_id = account_id
        self.role_arn = role_arn
        self.cause = cause
        super().__init__(message, _merge(details, account_id=account_id, role_arn=role_arn))


class ScannerError(AWSUtilsError):
    """A read-only listing call failed, or its input (a regexp) was invalid."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.resource_type = resource_type
        super().__init__(message, _merge(details, resource_type=resource_type))


class ReconcileError(AWSUtilsError):
    """An allow-list rule could not be brought up to date."""

    def __init__(
        self,
        message: str,
        group_id: Optional[str] = None,
        label: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.group_id = group_id
        self.label = label
        super().__init__(message, _merge(details, group_id=group_id, label=label))


class AmbiguousRuleError(ReconcileError):
    """
    More than one ingress rule on the port carries the label.

    >>> AmbiguousRuleError(
    ...     "there are 2 rules which have the description 'home' - aborting",
    ...     group_id="sg-123",
    ...     label="home",
    ... ).details
    {'group_id': 'sg-123', 'label': 'home'}
    """


class PublicIPError(ReconcileError):
    """The public IP lookup service failed or answered with garbage."""
