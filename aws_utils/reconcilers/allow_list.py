"""
Reconciler for single-IP allow-list entries in security groups.

Each entry is identified by its ingress rule description (the "label").
Reconciliation leaves at most one TCP ingress rule with that label on
the group, pointing at the desired CIDR, and never touches egress.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..core.aws_client import AWSClient
from ..core.exceptions import AmbiguousRuleError, AWSUtilsError, ReconcileError
from ..core.identity import account_id_from_role_arn
from ..core.logging import get_logger
from .whitelist_config import WhitelistEntry

logger = get_logger(__name__)

PROTOCOL = "tcp"


class ReconcileStatus(Enum):
    """Outcome of reconciling one label on one security group."""

    ADDED = "added"
    UNCHANGED = "unchanged"
    REPLACED = "replaced"
    ABORTED = "aborted"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class AllowListRule:
    """
    A single-CIDR TCP ingress rule identified by its description.

    Attributes:
        group_id: Security group ID
        description: Rule label, unique within the group
        port: TCP port
        cidr: Source CIDR, e.g. "1.2.3.4/32"
    """

    group_id: str
    description: str
    port: int
    cidr: str

    def to_ip_permission(self) -> Dict[str, Any]:
        """Render as an EC2 ``IpPermissions`` entry."""
        return {
            "IpProtocol": PROTOCOL,
            "FromPort": self.port,
            "ToPort": self.port,
            "IpRanges": [{"CidrIp": self.cidr, "Description": self.description}],
        }


@dataclass
class ReconcileResult:
    """
    Result of reconciling one label.

    Attributes:
        group_id: Security group ID
        label: Rule description
        port: TCP port
        status: Result status
        previous_cidr: CIDR removed, when a rule was replaced
        cidr: CIDR now in place (None when nothing was done)
        error_message: Error message if failed or aborted
        account_id: Account the group lives in, when known
        timestamp: When the operation was attempted
    """

    group_id: str
    label: str
    port: int
    status: ReconcileStatus
    previous_cidr: Optional[str] = None
    cidr: Optional[str] = None
    error_message: Optional[str] = None
    account_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def changed(self) -> bool:
        return self.status in (ReconcileStatus.ADDED, ReconcileStatus.REPLACED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "group_id": self.group_id,
            "label": self.label,
            "port": self.port,
            "status": self.status.value,
            "previous_cidr": self.previous_cidr,
            "cidr": self.cidr,
            "error_message": self.error_message,
            "account_id": self.account_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ReconcileSummary:
    """
    Summary of a batch of reconciliations.

    Attributes:
        total: Number of entries processed
        added: Rules created
        unchanged: Rules already correct
        replaced: Rules removed and re-added with a new CIDR
        aborted: Entries skipped because the label was not unique
        ignored: Entries with no label
        failed: Entries that hit an AWS error
        results: Individual results in processing order
    """

    total: int = 0
    added: int = 0
    unchanged: int = 0
    replaced: int = 0
    aborted: int = 0
    ignored: int = 0
    failed: int = 0
    results: List[ReconcileResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None

    _COUNTERS = {
        ReconcileStatus.ADDED: "added",
        ReconcileStatus.UNCHANGED: "unchanged",
        ReconcileStatus.REPLACED: "replaced",
        ReconcileStatus.ABORTED: "aborted",
        ReconcileStatus.IGNORED: "ignored",
        ReconcileStatus.FAILED: "failed",
    }

    def add_result(self, result: ReconcileResult) -> None:
        """Add a result and update counts."""
        self.results.append(result)
        self.total += 1
        counter = self._COUNTERS[result.status]
        setattr(self, counter, getattr(self, counter) + 1)

    @property
    def errors(self) -> List[ReconcileResult]:
        """Results that should make the run exit non-zero."""
        return [
            r
            for r in self.results
            if r.status in (ReconcileStatus.FAILED, ReconcileStatus.ABORTED)
        ]

    def complete(self) -> None:
        """Mark the batch as complete."""
        self.end_time = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "added": self.added,
            "unchanged": self.unchanged,
            "replaced": self.replaced,
            "aborted": self.aborted,
            "ignored": self.ignored,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


class AllowListReconciler:
    """
    Keeps exactly one labelled ingress rule per security group current.

    For a (group, label) pair:

    - no rule with the label: authorize a new one
    - one rule with the desired CIDR: do nothing
    - one rule with another CIDR: revoke it, then authorize the new CIDR
    - several rules with the label: raise AmbiguousRuleError, change nothing
    """

    ERROR_MESSAGES = {
        "InvalidGroup.NotFound": "Security group does not exist",
        "InvalidPermission.Duplicate": "An identical rule already exists",
        "InvalidPermission.NotFound": "Security group rule not found",
        "RulesPerSecurityGroupLimitExceeded": "Security group rule limit reached",
        "UnauthorizedOperation": "Insufficient permissions to modify security group",
    }

    def __init__(self, aws_client: AWSClient):
        """
        Initialize the reconciler.

        Args:
            aws_client: Account-scoped client owning the security groups
        """
        self.aws_client = aws_client
        self._ec2_client = None

    @property
    def ec2_client(self):
        """Lazy load EC2 client."""
        if self._ec2_client is None:
            self._ec2_client = self.aws_client.get_ec2_client()
        return self._ec2_client

    def reconcile(
        self,
        group_id: str,
        label: str,
        port: int,
        cidr: str,
    ) -> ReconcileResult:
        """
        Bring the rule labelled ``label`` on ``group_id`` in line with ``cidr``.

        Args:
            group_id: Security group ID
            label: Rule description identifying the entry
            port: TCP port, required
            cidr: Desired source, e.g. "1.2.3.4/32"

        Returns:
            ReconcileResult with status ADDED, UNCHANGED, REPLACED or IGNORED

        Raises:
            AmbiguousRuleError: more than one rule carries the label
            ReconcileError: an EC2 call failed
            ValueError: port is not a positive integer
        """
        if not isinstance(port, int) or isinstance(port, bool) or port <= 0:
            raise ValueError(f"A concrete TCP port is required, got {port!r}")

        if not label:
            logger.warning(f"Ignoring rule for {group_id} with no description set")
            return ReconcileResult(group_id, label, port, ReconcileStatus.IGNORED)

        matches = self.find_rules(group_id, label, port)

        if len(matches) > 1:
            raise AmbiguousRuleError(
                f"there are {len(matches)} rules which have the description "
                f"'{label}' - aborting",
                group_id=group_id,
                label=label,
                details={"count": len(matches)},
            )

        desired = AllowListRule(group_id, label, port, cidr)

        if not matches:
            self._authorize(desired)
            return ReconcileResult(
                group_id, label, port, ReconcileStatus.ADDED, cidr=cidr
            )

        existing = matches[0]
        if existing.cidr == cidr:
            logger.info(f"Existing entry in {group_id} already matches {cidr} - no change")
            return ReconcileResult(
                group_id, label, port, ReconcileStatus.UNCHANGED, cidr=cidr
            )

        # A failed revoke raises here, so no second rule is ever added.
        self._revoke(existing)
        self._authorize(desired)
        return ReconcileResult(
            group_id,
            label,
            port,
            ReconcileStatus.REPLACED,
            previous_cidr=existing.cidr,
            cidr=cidr,
        )

    def find_rules(self, group_id: str, label: str, port: int) -> List[AllowListRule]:
        """
        Return the TCP ingress rules on ``port`` whose description is ``label``.

        Raises:
            ReconcileError: the group could not be described
        """
        try:
            response = self.ec2_client.describe_security_groups(GroupIds=[group_id])
        except (ClientError, BotoCoreError) as e:
            raise self._wrap_error("Failed to describe security group", e, group_id, label)

        rules = []
        for group in response.get("SecurityGroups", []):
            for permission in group.get("IpPermissions", []):
                if permission.get("IpProtocol") != PROTOCOL:
                    continue
                if permission.get("FromPort") != port or permission.get("ToPort") != port:
                    continue
                for ip_range in permission.get("IpRanges", []):
                    if ip_range.get("Description") == label:
                        rules.append(
                            AllowListRule(group_id, label, port, ip_range["CidrIp"])
                        )
        return rules

    def _authorize(self, rule: AllowListRule) -> None:
        logger.info(f"Adding {rule.cidr} to {rule.group_id} ({rule.description})")
        try:
            self.ec2_client.authorize_security_group_ingress(
                GroupId=rule.group_id,
                IpPermissions=[rule.to_ip_permission()],
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap_error(
                f"Failed to add {rule.cidr}", e, rule.group_id, rule.description
            )

    def _revoke(self, rule: AllowListRule) -> None:
        logger.info(f"Removing {rule.cidr} from {rule.group_id} ({rule.description})")
        try:
            self.ec2_client.revoke_security_group_ingress(
                GroupId=rule.group_id,
                IpPermissions=[rule.to_ip_permission()],
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap_error(
                f"Failed to remove {rule.cidr}", e, rule.group_id, rule.description
            )

    def _wrap_error(
        self,
        message: str,
        error: Exception,
        group_id: str,
        label: str,
    ) -> ReconcileError:
        if isinstance(error, ClientError):
            error_code = error.response.get("Error", {}).get("Code", "Unknown")
            reason = self.ERROR_MESSAGES.get(
                error_code, error.response.get("Error", {}).get("Message", str(error))
            )
            return ReconcileError(
                f"{message}: {reason}",
                group_id=group_id,
                label=label,
                details={"error_code": error_code},
            )
        return ReconcileError(f"{message}: {error}", group_id=group_id, label=label)


def reconcile_entries(
    entries: List[WhitelistEntry],
    cidr: str,
    base_client: AWSClient,
    progress_callback: Optional[Callable[[WhitelistEntry, ReconcileResult], None]] = None,
) -> ReconcileSummary:
    """
    Reconcile every config entry against ``cidr``, in order.

    Entries with a role are processed with a freshly assumed client. A
    failing entry is recorded and the next entry is still processed.

    Args:
        entries: Whitelisting records, already loaded and expanded
        cidr: Desired source CIDR for every entry
        base_client: Client for entries without a role, and to assume roles from
        progress_callback: Optional callback called after each entry

    Returns:
        ReconcileSummary with results
    """
    summary = ReconcileSummary()

    for entry in entries:
        result = _reconcile_entry(entry, cidr, base_client)
        summary.add_result(result)

        if progress_callback:
            progress_callback(entry, result)

    summary.complete()
    return summary


def _reconcile_entry(
    entry: WhitelistEntry,
    cidr: str,
    base_client: AWSClient,
) -> ReconcileResult:
    account_id = None
    try:
        if entry.role:
            account_id = account_id_from_role_arn(entry.role)
            with base_client.assume_role(entry.role) as client:
                result = AllowListReconciler(client).reconcile(
                    entry.group_id, entry.name, entry.port, cidr
                )
        else:
            result = AllowListReconciler(base_client).reconcile(
                entry.group_id, entry.name, entry.port, cidr
            )
    except AmbiguousRuleError as e:
        logger.error(e.message)
        result = ReconcileResult(
            entry.group_id,
            entry.name,
            entry.port,
            ReconcileStatus.ABORTED,
            error_message=e.message,
        )
    except AWSUtilsError as e:
        logger.error(f"Error updating {entry.group_id}: {e.message}")
        result = ReconcileResult(
            entry.group_id,
            entry.name,
            entry.port,
            ReconcileStatus.FAILED,
            error_message=e.message,
        )

    result.account_id = account_id
    return result
