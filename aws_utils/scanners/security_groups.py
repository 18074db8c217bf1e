"""
Security-group search for the ``sg-grep`` command.

Each group is rendered as indented JSON and the search term is applied,
case-insensitively, to that text. Matching on the rendered form means a
term can hit any field: names, descriptions, CIDRs, ports or tags.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Pattern

from botocore.exceptions import BotoCoreError, ClientError

from aws_utils.core.aws_client import AWSClient
from aws_utils.core.exceptions import ScannerError

logger = logging.getLogger(__name__)


@dataclass
class SecurityGroupMatch:
    """A security group whose rendered text matched the search term."""

    account_id: str
    group_id: str
    description: str
    text: str

    @property
    def header(self) -> str:
        return f"AWS Account:{self.account_id} {self.group_id} - {self.description}"

    def lines(self) -> List[str]:
        return self.text.split("\n")


def compile_term(term: str) -> Pattern:
    """
    Compile ``term`` as a case-insensitive regular expression.

    Raises:
        ScannerError: the term is not a valid regular expression
    """
    try:
        return re.compile(term, re.IGNORECASE)
    except re.error as e:
        raise ScannerError(
            f"Unable to compile regexp {term}: {e}", resource_type="security_group"
        )


def render_group(group: Dict[str, Any]) -> str:
    return json.dumps(group, indent=2, sort_keys=True, default=str)


def search_security_groups(
    client: AWSClient,
    account_id: str,
    term: str,
) -> List[SecurityGroupMatch]:
    """
    Return the security groups in the account that match ``term``.

    Raises:
        ScannerError: the term is invalid or the groups cannot be described
    """
    pattern = compile_term(term)
    ec2 = client.get_ec2_client()

    matches: List[SecurityGroupMatch] = []
    try:
        for page in ec2.get_paginator("describe_security_groups").paginate():
            for group in page.get("SecurityGroups", []):
                text = render_group(group)
                if pattern.search(text):
                    matches.append(
                        SecurityGroupMatch(
                            account_id=account_id,
                            group_id=group["GroupId"],
                            description=group.get("Description", ""),
                            text=text,
                        )
                    )
    except (ClientError, BotoCoreError) as e:
        raise ScannerError(
            f"Unable to get security-groups: {e}", resource_type="security_group"
        )

    logger.debug(f"{len(matches)} security groups in {account_id} matched {term!r}")
    return matches
