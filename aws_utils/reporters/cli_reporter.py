"""
CLI Reporter Module
===================

Terminal output for every aws-utils command, using the Rich library.

Two kinds of output are produced:

- **Plain lines** for commands whose output is meant for scripts and
  shell completion (``ip``, ``stacks``, ``sg-grep``, ``orphaned-zones``,
  ``whoami``). These are printed without markup, highlighting or
  wrapping so that they can be piped safely.
- **Tables and panels** for human-oriented output (``instances``,
  ``whitelist-self`` summaries, the trailing error summary).

Classes
-------
CLIReporter
    Main reporter class for terminal output.

Example
-------
>>> from aws_utils.reporters import CLIReporter
>>>
>>> reporter = CLIReporter()
>>> reporter.print_instances(instances)
>>> reporter.print_errors(errors)

See Also
--------
rich : Python library for rich text and formatting.
CSVReporter : For CSV output.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from aws_utils.core.exceptions import AWSUtilsError
from aws_utils.reconcilers.allow_list import ReconcileResult, ReconcileStatus, ReconcileSummary
from aws_utils.scanners.hosted_zones import ZoneStatus
from aws_utils.scanners.instances import Instance
from aws_utils.scanners.security_groups import SecurityGroupMatch
from aws_utils.scanners.stacks import StackListing

# Module logger
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    ReconcileStatus.ADDED: "green",
    ReconcileStatus.REPLACED: "green",
    ReconcileStatus.UNCHANGED: "dim",
    ReconcileStatus.IGNORED: "yellow",
    ReconcileStatus.ABORTED: "red",
    ReconcileStatus.FAILED: "red",
}


class CLIReporter:
    """
    Reporter for displaying command results in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one writing
        to stdout.

    Attributes
    ----------
    console : Console
        The Rich Console used for output.

    Examples
    --------
    Basic usage:

    >>> reporter = CLIReporter()
    >>> reporter.print_stacks(listings, show_status=True)

    Capturing output in tests:

    >>> from rich.console import Console
    >>> console = Console(record=True, width=120)
    >>> reporter = CLIReporter(console=console)
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the CLI reporter with a Rich Console."""
        self.console = console or Console(highlight=False)
        logger.debug("Initialized CLIReporter")

    # =========================================================================
    # Public Methods: Plain Output
    # =========================================================================

    def print_line(self, line: str) -> None:
        """Print one line verbatim: no markup, highlighting or wrapping."""
        self.console.print(line, markup=False, highlight=False, soft_wrap=True)

    def print_ips(self, instances: Iterable[Instance], verbose: bool = False) -> None:
        """Print the private IPv4 address of each instance, one per line."""
        for instance in instances:
            if verbose:
                self.print_line(f"{instance.private_ipv4} {instance.name}")
            else:
                self.print_line(instance.private_ipv4)

    def print_stacks(self, listings: Iterable[StackListing], show_status: bool = False) -> None:
        for listing in listings:
            self.print_line(listing.format(show_status))

    def print_security_group_match(self, match: SecurityGroupMatch) -> None:
        """Print a matching group's header followed by its tab-indented JSON."""
        self.print_line(match.header)
        for line in match.lines():
            self.print_line(f"\t{line}")

    def print_zone_statuses(self, zones: Sequence[ZoneStatus]) -> None:
        """
        Print valid zones in listing order, then orphaned zones sorted.

        Parameters
        ----------
        zones : sequence of ZoneStatus
            Zones as returned by ``HostedZoneScanner.check_zones``.
        """
        orphaned: List[str] = []
        for zone in zones:
            if zone.orphaned:
                orphaned.append(zone.name)
            else:
                self.print_line(f"VALID  - {zone.name}")

        for name in sorted(orphaned):
            self.print_line(f"ORPHAN - {name}")

    # =========================================================================
    # Public Methods: Tables
    # =========================================================================

    def print_instances(self, instances: Iterable[Instance]) -> None:
        """
        Print a block per instance with its addresses and volumes.

        Example output::

            web-1 - i-0abc
            --------------
                AMI: ami-0def (42 days old)
                Instance type: t3.micro
                ...
        """
        for instance in instances:
            heading = f"{instance.name} - {instance.instance_id}"
            self.console.print(Text(heading, style="bold cyan"))
            self.print_line("-" * len(heading))

            details = Table(show_header=False, box=None, padding=(0, 2))
            details.add_column("Field", style="cyan")
            details.add_column("Value", style="white")

            age = "unknown age" if instance.ami_age < 0 else f"{instance.ami_age} days old"
            details.add_row("Account:", escape(instance.account_id))
            details.add_row("AMI:", escape(f"{instance.ami} ({age})"))
            details.add_row("Instance type:", instance.instance_type)
            details.add_row("Key name:", escape(instance.key_name or "N/A"))
            details.add_row("Public IPv4 address:", instance.public_ipv4 or "N/A")
            details.add_row("Private IPv4 address:", instance.private_ipv4 or "N/A")
            details.add_row("State:", instance.state)
            self.console.print(details)

            if instance.volumes:
                volumes = Table(title="Volumes", title_justify="left", show_lines=False)
                volumes.add_column("Volume ID", style="cyan", no_wrap=True)
                volumes.add_column("Device", style="white")
                volumes.add_column("Size", justify="right")
                volumes.add_column("Type", style="dim")
                volumes.add_column("Encrypted", style="dim")
                volumes.add_column("IOPS", justify="right", style="dim")
                for volume in instance.volumes:
                    volumes.add_row(
                        volume.volume_id,
                        volume.device,
                        f"{volume.size}GiB",
                        volume.volume_type,
                        "yes" if volume.encrypted else "no",
                        str(volume.iops) if volume.iops is not None else "-",
                    )
                self.console.print(volumes)

            self.console.print()

    def print_reconcile_result(self, result: ReconcileResult) -> None:
        """Print the outcome of one whitelist-self entry."""
        style = STATUS_STYLES[result.status]
        details = Table(show_header=False, box=None, padding=(0, 2))
        details.add_column("Field", style="cyan")
        details.add_column("Value", style="white")

        details.add_row("Account:", result.account_id or "default")
        details.add_row("SecurityGroupID:", result.group_id)
        details.add_row("IP:", result.cidr or "-")
        details.add_row("Port:", str(result.port))
        details.add_row("Description:", escape(result.label))
        details.add_row("Status:", Text(result.status.value, style=style))
        if result.previous_cidr:
            details.add_row("Replaced:", result.previous_cidr)
        if result.error_message:
            details.add_row("Error:", Text(result.error_message, style="red"))

        self.console.print(details)
        self.console.print()

    def print_reconcile_summary(self, summary: ReconcileSummary) -> None:
        summary_table = Table(show_header=False, box=None, padding=(0, 2))
        summary_table.add_column("Metric", style="cyan")
        summary_table.add_column("Value", style="white")

        summary_table.add_row("Entries:", str(summary.total))
        summary_table.add_row("Added:", f"[green]{summary.added}[/]")
        summary_table.add_row("Replaced:", f"[green]{summary.replaced}[/]")
        summary_table.add_row("Unchanged:", str(summary.unchanged))
        if summary.ignored:
            summary_table.add_row("Ignored:", f"[yellow]{summary.ignored}[/]")
        if summary.aborted or summary.failed:
            summary_table.add_row("Aborted:", f"[red]{summary.aborted}[/]")
            summary_table.add_row("Failed:", f"[red]{summary.failed}[/]")

        self.console.print(summary_table)

    # =========================================================================
    # Public Methods: Messages
    # =========================================================================

    def print_errors(self, errors: Sequence[AWSUtilsError]) -> None:
        """
        Print accumulated errors, one per line.

        Parameters
        ----------
        errors : sequence of AWSUtilsError
            Errors in the order they occurred.
        """
        if not errors:
            return

        self.console.print("\n[yellow bold]Errors encountered running this operation:[/yellow bold]")
        for error in errors:
            self.console.print(Text(f"  • {error.message}", style="red"))

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(Text.assemble(("Error: ", "red bold"), message))

    def __repr__(self) -> str:
        """Return string representation."""
        return "CLIReporter()"
