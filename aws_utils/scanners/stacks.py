"""
CloudFormation stack listing.

The same stack name can appear several times in ``ListStacks`` output,
once per incarnation (``DELETE_COMPLETE``, ``DELETE_COMPLETE``,
``UPDATE_COMPLETE``), so statuses are grouped by name before display.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern

from botocore.exceptions import BotoCoreError, ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ScannerError

logger = logging.getLogger(__name__)


@dataclass
class StackOptions:
    """
    Options for the ``stacks`` command.

    Attributes:
        filter: Regular expression a stack name must match to be shown
        show_status: Append the grouped statuses to each name
        show_all: Include stacks that only exist in a deleted state
        policy: Stack policy body applied to every live stack shown
    """

    filter: Optional[str] = None
    show_status: bool = False
    show_all: bool = False
    policy: Optional[str] = None
    _pattern: Optional[Pattern] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.filter:
            try:
                self._pattern = re.compile(self.filter)
            except re.error as e:
                raise ScannerError(
                    f"Invalid stack filter {self.filter!r}: {e}",
                    resource_type="stack",
                )

    def matches(self, name: str) -> bool:
        return self._pattern is None or self._pattern.search(name) is not None


@dataclass
class StackListing:
    """A stack name and every status it has been seen in."""

    name: str
    statuses: List[str]

    @property
    def deleted(self) -> bool:
        return all("DELETE" in status for status in self.statuses)

    def format(self, show_status: bool = False) -> str:
        if show_status:
            return f"{self.name} [{','.join(self.statuses)}]"
        return self.name


def group_stack_statuses(summaries: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Group ``StackSummaries`` entries into ``{name: [status, ...]}``."""
    lookup: Dict[str, List[str]] = {}
    for summary in summaries:
        lookup.setdefault(summary["StackName"], []).append(summary["StackStatus"])
    return lookup


def select_stacks(lookup: Dict[str, List[str]], options: StackOptions) -> List[StackListing]:
    """
    Return the stacks to display, sorted by name.

    Stacks that only exist in deleted states are hidden unless
    ``options.show_all`` is set; the name filter always applies.
    """
    selected = []
    for name in sorted(lookup):
        listing = StackListing(name=name, statuses=lookup[name])
        if not options.matches(name):
            continue
        if listing.deleted and not options.show_all:
            continue
        selected.append(listing)
    return selected


def list_stacks(client: AWSClient, options: StackOptions) -> List[StackListing]:
    """
    List, group and filter the CloudFormation stacks of one account.

    When ``options.policy`` is set the policy is applied to every live
    stack that is selected.

    Raises:
        ScannerError: ListStacks or SetStackPolicy failed
    """
    cloudformation = client.get_cloudformation_client()

    summaries: List[Dict[str, Any]] = []
    try:
        for page in cloudformation.get_paginator("list_stacks").paginate():
            summaries.extend(page.get("StackSummaries", []))
    except (ClientError, BotoCoreError) as e:
        raise ScannerError(f"Failed to list stacks: {e}", resource_type="stack")

    selected = select_stacks(group_stack_statuses(summaries), options)

    if options.policy:
        for listing in selected:
            if listing.deleted:
                logger.debug(f"Not applying policy to deleted stack {listing.name}")
                continue
            apply_stack_policy(cloudformation, listing.name, options.policy)

    return selected


def apply_stack_policy(cloudformation: Any, stack_name: str, policy: str) -> None:
    """Set ``policy`` as the stack policy of ``stack_name``."""
    logger.info(f"Applying stack policy to {stack_name}")
    try:
        cloudformation.set_stack_policy(StackName=stack_name, StackPolicyBody=policy)
    except (ClientError, BotoCoreError) as e:
        raise ScannerError(
            f"SetStackPolicy failed for {stack_name}: {e}",
            resource_type="stack",
            details={"stack_name": stack_name},
        )
