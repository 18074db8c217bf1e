"""
Instance Scanner Module
=======================

Enumerates running EC2 instances in one account, together with their
attached EBS volumes and the age of the AMI they were launched from.

Classes
-------
Volume
    One EBS volume attached to an instance.
Instance
    Summary of a single running or pending instance.
AMIAgeCache
    Image ID to creation-time lookup, shared across accounts.
InstanceScanner
    Builds ``Instance`` records for one account.

Example
-------
>>> from aws_utils.core import AWSClient
>>> from aws_utils.scanners import AMIAgeCache, InstanceScanner
>>>
>>> cache = AMIAgeCache()
>>> scanner = InstanceScanner(AWSClient(region="eu-central-1"), cache)
>>> for instance in scanner.get_instances("111122223333"):
...     print(instance.instance_id, instance.name, instance.ami_age)

Notes
-----
Only instances in the ``running`` or ``pending`` state are returned.
The AMI cache is keyed by image ID only; it is safe to share between
accounts because image IDs are globally unique within a region.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ScannerError

# Module logger
logger = logging.getLogger(__name__)

ACTIVE_STATES = ["running", "pending"]

AMI_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ")

#: Returned as the AMI age when the image no longer exists.
UNKNOWN_AGE = -1

IMAGE_NOT_FOUND_CODES = {"InvalidAMIID.NotFound", "InvalidAMIID.Unavailable"}


def tag_name(tags: Optional[List[Dict[str, str]]], fallback: str) -> str:
    """
    Return the value of the ``Name`` tag, or ``fallback`` if it is unset.

    >>> tag_name([{"Key": "Name", "Value": "web-1"}], "i-0abc")
    'web-1'
    >>> tag_name([], "i-0abc")
    'i-0abc'
    """
    for tag in tags or []:
        if tag.get("Key") == "Name" and tag.get("Value"):
            return tag["Value"]
    return fallback


def parse_creation_date(value: str) -> datetime:
    """Parse an EC2 image ``CreationDate`` into an aware UTC datetime."""
    for date_format in AMI_DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, date_format)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Unrecognised AMI creation date: {value!r}")


@dataclass
class Volume:
    """An EBS volume attached to an instance."""

    volume_id: str
    device: str
    size: int
    volume_type: str
    encrypted: bool
    iops: Optional[int] = None


@dataclass
class Instance:
    """
    Summary of one EC2 instance.

    Attributes
    ----------
    account_id : str
        Account the instance lives in.
    instance_id : str
        EC2 instance ID.
    name : str
        Value of the ``Name`` tag, or the instance ID when unset.
    ami : str
        Image the instance was launched from.
    ami_age : int
        Age of that image in days, or -1 if it no longer exists.
    state : str
        Instance state name (``running`` or ``pending``).
    instance_type : str
        Instance type, e.g. ``t3.micro``.
    key_name : str
        SSH key pair name, empty when none was set.
    public_ipv4 : str
        Public IPv4 address, empty when none.
    private_ipv4 : str
        Private IPv4 address, empty when none.
    volumes : list of Volume
        Attached EBS volumes in device order.
    """

    account_id: str
    instance_id: str
    name: str
    ami: str
    ami_age: int
    state: str
    instance_type: str
    key_name: str = ""
    public_ipv4: str = ""
    private_ipv4: str = ""
    volumes: List[Volume] = field(default_factory=list)

    def to_csv_row(self) -> List[Any]:
        """Row used by ``csv-instances``: account, id, name, AMI, age."""
        return [self.account_id, self.instance_id, self.name, self.ami, self.ami_age]


class AMIAgeCache:
    """
    Bounded cache of image creation times.

    One ``DescribeImages`` call is made per image ID; the answer, including
    "not found", is remembered until the entry is evicted.

    Parameters
    ----------
    max_entries : int, default=1024
        Oldest entries are evicted once this many images are cached.
    now : callable, optional
        Returns the current time; used to compute ages. Defaults to
        ``datetime.now(timezone.utc)``.

    Examples
    --------
    >>> cache = AMIAgeCache()
    >>> cache.age_days(ec2_client, "ami-0abc")
    42
    """

    def __init__(self, max_entries: int = 1024, now=None) -> None:
        self.max_entries = max_entries
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._entries: "OrderedDict[str, Optional[datetime]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, image_id: str) -> bool:
        return image_id in self._entries

    def creation_date(self, ec2_client: Any, image_id: str) -> Optional[datetime]:
        """
        Return when ``image_id`` was created, or None if it does not exist.

        Raises
        ------
        ScannerError
            If the lookup fails for any reason other than a missing image.
        """
        if image_id in self._entries:
            self._entries.move_to_end(image_id)
            return self._entries[image_id]

        created = self._lookup(ec2_client, image_id)
        self._entries[image_id] = created
        if len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return created

    def age_days(self, ec2_client: Any, image_id: str) -> int:
        """Return the age of ``image_id`` in whole days, or -1 if unknown."""
        created = self.creation_date(ec2_client, image_id)
        if created is None:
            return UNKNOWN_AGE
        return (self._now() - created).days

    def _lookup(self, ec2_client: Any, image_id: str) -> Optional[datetime]:
        logger.debug(f"Looking up creation date of {image_id}")
        try:
            response = ec2_client.describe_images(ImageIds=[image_id])
        except ClientError as e:
            if e.response["Error"]["Code"] in IMAGE_NOT_FOUND_CODES:
                logger.debug(f"Image {image_id} not found")
                return None
            raise ScannerError(
                f"Failed to describe image {image_id}: {e}", resource_type="image"
            )
        except BotoCoreError as e:
            raise ScannerError(
                f"Failed to describe image {image_id}: {e}", resource_type="image"
            )

        images = response.get("Images", [])
        if not images or not images[0].get("CreationDate"):
            return None

        try:
            return parse_creation_date(images[0]["CreationDate"])
        except ValueError as e:
            raise ScannerError(str(e), resource_type="image")


class InstanceScanner:
    """
    Scanner for running EC2 instances in one account.

    Parameters
    ----------
    aws_client : AWSClient
        Account-scoped client.
    ami_cache : AMIAgeCache, optional
        Shared cache for AMI ages. A private one is created when omitted.

    Examples
    --------
    >>> scanner = InstanceScanner(client, AMIAgeCache())
    >>> instances = scanner.get_instances("111122223333")
    """

    def __init__(self, aws_client: AWSClient, ami_cache: Optional[AMIAgeCache] = None) -> None:
        self.aws_client = aws_client
        self.ami_cache = ami_cache if ami_cache is not None else AMIAgeCache()
        self._ec2_client = None

    @property
    def ec2_client(self):
        """EC2 client (lazy loaded)."""
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    def get_instances(self, account_id: str) -> List[Instance]:
        """
        Return every running or pending instance in the account.

        Raises
        ------
        ScannerError
            If instances, volumes or images cannot be described.
        """
        instances: List[Instance] = []
        paginator = self.ec2_client.get_paginator("describe_instances")

        try:
            pages = paginator.paginate(
                Filters=[{"Name": "instance-state-name", "Values": ACTIVE_STATES}]
            )
            for page in pages:
                for reservation in page.get("Reservations", []):
                    for raw in reservation.get("Instances", []):
                        instances.append(self._build_instance(raw, account_id))
        except (ClientError, BotoCoreError) as e:
            raise ScannerError(f"Failed to describe instances: {e}", resource_type="instance")

        logger.debug(f"Found {len(instances)} instances in {account_id}")
        return instances

    def _build_instance(self, raw: Dict[str, Any], account_id: str) -> Instance:
        instance_id = raw["InstanceId"]
        image_id = raw.get("ImageId", "")

        return Instance(
            account_id=account_id,
            instance_id=instance_id,
            name=tag_name(raw.get("Tags"), instance_id),
            ami=image_id,
            ami_age=self.ami_cache.age_days(self.ec2_client, image_id) if image_id else UNKNOWN_AGE,
            state=raw.get("State", {}).get("Name", ""),
            instance_type=raw.get("InstanceType", ""),
            key_name=raw.get("KeyName", ""),
            public_ipv4=raw.get("PublicIpAddress", ""),
            private_ipv4=raw.get("PrivateIpAddress", ""),
            volumes=self._get_volumes(raw),
        )

    def _get_volumes(self, raw: Dict[str, Any]) -> List[Volume]:
        """Describe the EBS volumes attached to one instance."""
        devices = {
            mapping["Ebs"]["VolumeId"]: mapping.get("DeviceName", "")
            for mapping in raw.get("BlockDeviceMappings", [])
            if mapping.get("Ebs", {}).get("VolumeId")
        }
        if not devices:
            return []

        response = self.ec2_client.describe_volumes(VolumeIds=list(devices))

        volumes = [
            Volume(
                volume_id=volume["VolumeId"],
                device=devices.get(volume["VolumeId"], ""),
                size=volume.get("Size", 0),
                volume_type=volume.get("VolumeType", ""),
                encrypted=volume.get("Encrypted", False),
                iops=volume.get("Iops"),
            )
            for volume in response.get("Volumes", [])
        ]
        return sorted(volumes, key=lambda v: v.device)
