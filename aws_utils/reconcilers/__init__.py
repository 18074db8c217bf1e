"""
Allow-List Reconcilers
======================

Keeps single-IP ingress rules in security groups current.

Available Components
--------------------
AllowListReconciler
    Reconciles one labelled rule on one security group.
reconcile_entries
    Batch driver over whitelist-self configuration records.
load_whitelist_config
    Loads a whitelist-self JSON configuration file.
get_public_ip
    Looks up the caller's public IP address.

Example
-------
>>> from aws_utils.core import AWSClient
>>> from aws_utils.reconcilers import AllowListReconciler
>>>
>>> reconciler = AllowListReconciler(AWSClient(region="us-east-1"))
>>> result = reconciler.reconcile("sg-1", "home-ssh", 22, "1.2.3.4/32")
>>> print(result.status)

Safety Features
---------------
1. **Idempotence**: a rule that already matches is never touched
2. **Ambiguity detection**: duplicate labels abort the change
3. **Delete before add**: a failed revoke never leaves two rules behind
4. **Ingress only**: egress rules are never inspected or modified
"""

from aws_utils.reconcilers.allow_list import (
    AllowListReconciler,
    AllowListRule,
    ReconcileResult,
    ReconcileStatus,
    ReconcileSummary,
    reconcile_entries,
)
from aws_utils.reconcilers.public_ip import get_public_ip
from aws_utils.reconcilers.whitelist_config import (
    WhitelistEntry,
    load_whitelist_config,
)

__all__ = [
    "AllowListReconciler",
    "AllowListRule",
    "ReconcileResult",
    "ReconcileStatus",
    "ReconcileSummary",
    "WhitelistEntry",
    "get_public_ip",
    "load_whitelist_config",
    "reconcile_entries",
]
