"""
Subnet listing for the ``subnets`` command.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ScannerError
from aws_utils.scanners.instances import tag_name

logger = logging.getLogger(__name__)

UNNAMED = "unnamed"

CSV_HEADER = ["Account", "VPC", "Subnet Name", "Subnet ID", "Cidr"]


@dataclass
class Subnet:
    account_id: str
    vpc_id: str
    name: str
    subnet_id: str
    cidr: str

    def to_csv_row(self) -> List[str]:
        return [self.account_id, self.vpc_id, self.name, self.subnet_id, self.cidr]


def list_subnets(client: AWSClient, account_id: str) -> List[Subnet]:
    """
    Return every subnet in the account, ordered by VPC then subnet ID.

    Raises:
        ScannerError: DescribeSubnets failed
    """
    ec2 = client.get_ec2_client()

    subnets: List[Subnet] = []
    try:
        for page in ec2.get_paginator("describe_subnets").paginate():
            for raw in page.get("Subnets", []):
                subnets.append(
                    Subnet(
                        account_id=account_id,
                        vpc_id=raw.get("VpcId", ""),
                        name=tag_name(raw.get("Tags"), UNNAMED),
                        subnet_id=raw["SubnetId"],
                        cidr=raw.get("CidrBlock", ""),
                    )
                )
    except (ClientError, BotoCoreError) as e:
        raise ScannerError(f"Failed to describe subnets: {e}", resource_type="subnet")

    return sorted(subnets, key=lambda s: (s.vpc_id, s.subnet_id))
