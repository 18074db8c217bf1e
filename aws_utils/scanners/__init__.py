"""
Per-Account Scanners
====================

Read-only operations that list resources in one account. The CLI runs
them through the role iteration harness, once per account.

Available Scanners
------------------
InstanceScanner
    Running EC2 instances, their volumes and AMI ages.
list_stacks
    CloudFormation stacks, grouped by name.
search_security_groups
    Security groups matching a regular expression.
list_subnets
    Subnets with their VPC and CIDR.
HostedZoneScanner
    Route53 zones whose NS delegation points outside AWS.

Example
-------
>>> from aws_utils.core import AWSClient
>>> from aws_utils.scanners import list_subnets
>>>
>>> for subnet in list_subnets(AWSClient(), "111122223333"):
...     print(subnet.subnet_id, subnet.cidr)
"""

from aws_utils.scanners.hosted_zones import HostedZoneScanner, ZoneStatus, find_orphaned_zones
from aws_utils.scanners.instances import AMIAgeCache, Instance, InstanceScanner, Volume
from aws_utils.scanners.security_groups import SecurityGroupMatch, search_security_groups
from aws_utils.scanners.stacks import StackListing, StackOptions, list_stacks
from aws_utils.scanners.subnets import Subnet, list_subnets

__all__ = [
    "AMIAgeCache",
    "HostedZoneScanner",
    "Instance",
    "InstanceScanner",
    "SecurityGroupMatch",
    "StackListing",
    "StackOptions",
    "Subnet",
    "Volume",
    "ZoneStatus",
    "find_orphaned_zones",
    "list_stacks",
    "list_subnets",
    "search_security_groups",
]
