"""
aws-utils: Multi-Account AWS Command-Line Utilities
===================================================

A collection of small AWS commands that each run against the caller's
own account or, given a file of role ARNs, once per assumed role.

Modules
-------
core
    Core infrastructure (AWS client, identity, role iteration harness)
scanners
    Read-only per-account listings (instances, stacks, subnets, ...)
reconcilers
    Idempotent maintenance of single-IP security group rules
reporters
    Output formatters (terminal, CSV)

Example
-------
>>> from aws_utils import AWSClient, RoleRunner
>>> from aws_utils.scanners import list_subnets
>>>
>>> def show(client, account_id, _):
...     for subnet in list_subnets(client, account_id):
...         print(subnet.subnet_id)
>>>
>>> errors = RoleRunner(AWSClient()).run("roles.txt", show, None)

Notes
-----
Requires AWS credentials configured via:
- Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
- AWS credentials file (~/.aws/credentials)
- IAM role (when running on AWS infrastructure)

See Also
--------
boto3 : AWS SDK for Python
"""

__version__ = "0.3.0"
__license__ = "MIT"

# Public API
from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import AWSClientError, AWSUtilsError
from aws_utils.core.role_runner import RoleRunner, run_across_accounts
from aws_utils.reconcilers.allow_list import AllowListReconciler, reconcile_entries

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Core classes
    "AWSClient",
    "AWSClientError",
    "AWSUtilsError",
    "RoleRunner",
    "run_across_accounts",
    # Reconciliation
    "AllowListReconciler",
    "reconcile_entries",
]
