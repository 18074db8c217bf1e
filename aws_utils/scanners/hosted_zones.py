"""
Orphaned Route53 Zone Detection
===============================

A hosted zone is *orphaned* when the public DNS delegation for its name
points somewhere other than Route53: at least one of the NS records
returned by a live lookup has a host name that does not contain "aws".

Classes
-------
ZoneStatus
    Result of checking one hosted zone.
HostedZoneScanner
    Lists hosted zones and checks their delegation.

Notes
-----
NS lookups go through dnspython. A lookup failure (NXDOMAIN, timeout,
no answer) is logged and the zone is treated as valid, since no
non-AWS nameserver was seen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import dns.exception
import dns.resolver
from botocore.exceptions import BotoCoreError, ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ScannerError

logger = logging.getLogger(__name__)

AWS_NAMESERVER_MARKER = "aws"

#: ``lookup(zone_name) -> [nameserver host, ...]``
NameserverLookup = Callable[[str], List[str]]


def lookup_nameservers(zone_name: str) -> List[str]:
    """
    Resolve the NS records of ``zone_name``.

    Raises
    ------
    dns.exception.DNSException
        If the lookup fails.
    """
    answer = dns.resolver.resolve(zone_name, "NS")
    return [rdata.target.to_text() for rdata in answer]


@dataclass
class ZoneStatus:
    """Delegation status of one hosted zone."""

    name: str
    nameservers: List[str] = field(default_factory=list)

    @property
    def orphaned(self) -> bool:
        return any(AWS_NAMESERVER_MARKER not in ns for ns in self.nameservers)


class HostedZoneScanner:
    """
    Finds hosted zones whose delegation no longer points at Route53.

    Parameters
    ----------
    aws_client : AWSClient
        Client for the account that owns the zones.
    lookup : callable, optional
        NS resolver, ``lookup(name) -> [host, ...]``. Defaults to a
        dnspython query.

    Examples
    --------
    >>> scanner = HostedZoneScanner(AWSClient())
    >>> for zone in scanner.check_zones():
    ...     print(zone.name, "ORPHAN" if zone.orphaned else "VALID")
    """

    def __init__(self, aws_client: AWSClient, lookup: Optional[NameserverLookup] = None) -> None:
        self.aws_client = aws_client
        self.lookup = lookup or lookup_nameservers

    def list_zone_names(self) -> List[str]:
        """Return the names of every hosted zone in the account."""
        route53 = self.aws_client.get_route53_client()

        names: List[str] = []
        try:
            for page in route53.get_paginator("list_hosted_zones").paginate():
                names.extend(zone["Name"] for zone in page.get("HostedZones", []))
        except (ClientError, BotoCoreError) as e:
            raise ScannerError(
                f"Failed to call ListHostedZones: {e}", resource_type="hosted_zone"
            )
        return names

    def check_zone(self, zone_name: str) -> ZoneStatus:
        try:
            nameservers = self.lookup(zone_name)
        except dns.exception.DNSException as e:
            logger.warning(f"Failed to lookup NS record for {zone_name}: {e}")
            nameservers = []
        return ZoneStatus(name=zone_name, nameservers=nameservers)

    def check_zones(self) -> List[ZoneStatus]:
        """
        Check every hosted zone, in the order Route53 lists them.

        Raises
        ------
        ScannerError
            If the hosted zones cannot be listed.
        """
        return [self.check_zone(name) for name in self.list_zone_names()]


def find_orphaned_zones(client: AWSClient, lookup: Optional[NameserverLookup] = None) -> List[ZoneStatus]:
    """Return every hosted zone with its delegation status."""
    return HostedZoneScanner(client, lookup).check_zones()
