"""
aws-utils CLI

Main entry point for the command-line interface.
"""

import functools
import re
import sys
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

import click
from rich.console import Console
from rich.prompt import Prompt

from . import __version__
from .core.aws_client import AWSClient
from .core.config import Settings
from .core.exceptions import AWSUtilsError, ConfigError, ReconcileError
from .core.identity import resolve_account_alias, resolve_account_id
from .core.logging import setup_logging
from .core.role_runner import AccountOperation, RoleRunner
from .credentials import default_credentials_path, rotate_access_keys
from .reconcilers.allow_list import reconcile_entries
from .reconcilers.public_ip import get_public_ip
from .reconcilers.whitelist_config import load_whitelist_config
from .reporters.cli_reporter import CLIReporter
from .reporters.csv_reporter import CSVReporter
from .scanners.hosted_zones import find_orphaned_zones
from .scanners.instances import AMIAgeCache, Instance, InstanceScanner
from .scanners.security_groups import compile_term, search_security_groups
from .scanners.stacks import StackOptions, list_stacks
from .scanners.subnets import CSV_HEADER, list_subnets


console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

reporter = CLIReporter(console)
error_reporter = CLIReporter(err_console)


@dataclass
class AppContext:
    """Global options shared by every sub-command."""

    settings: Settings
    profile: Optional[str]
    region: str

    def client(self) -> AWSClient:
        return AWSClient(
            region=self.region,
            profile=self.profile,
            max_retries=self.settings.max_retries,
            timeout=self.settings.timeout,
        )


@dataclass
class InstanceContext:
    ami_cache: AMIAgeCache
    emit: Callable[[List[Instance]], None]


@dataclass
class StackContext:
    options: StackOptions
    reporter: CLIReporter


@dataclass
class SearchContext:
    terms: Tuple[str, ...]
    reporter: CLIReporter


def handle_errors(func):
    """Map fatal errors and Ctrl-C to exit codes 1 and 130."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            err_console.print("\n[yellow]Cancelled by user.[/yellow]")
            sys.exit(130)
        except AWSUtilsError as e:
            error_reporter.print_error(e.message)
            sys.exit(1)

    return wrapper


def run_harness(app: AppContext, roles: Optional[str], operation: AccountOperation, context: Any) -> None:
    """Run ``operation`` across accounts; exit 1 if any account failed."""
    errors = RoleRunner(app.client()).run(roles, operation, context)
    if errors:
        error_reporter.print_errors(errors)
        sys.exit(1)


roles_option = click.option(
    "--roles",
    envvar="AWS_UTILS_ROLES",
    default=None,
    metavar="PATH",
    help="File of role ARNs to run against, one per line (env: AWS_UTILS_ROLES)",
)

output_option = click.option(
    "--output",
    "-o",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Write CSV to this file instead of stdout",
)


@click.group()
@click.version_option(version=__version__, prog_name="aws-utils")
@click.option(
    "--profile",
    "-p",
    default=None,
    help="AWS profile name from ~/.aws/credentials",
)
@click.option(
    "--region",
    "-r",
    default=None,
    help="AWS region (default: AWS_REGION, AWS_DEFAULT_REGION or us-east-1)",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Log debug output, including every AWS request (env: DEBUG)",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(dir_okay=False),
    help="Also write log records to this file",
)
@click.pass_context
def cli(ctx, profile: Optional[str], region: Optional[str], debug: bool, log_file: Optional[str]):
    """
    aws-utils: multi-account AWS utilities

    Most commands run against the account your credentials belong to. Pass
    --roles with a file of role ARNs to repeat the command once per role.
    """
    settings = Settings()
    setup_logging(log_file=log_file, debug=debug or settings.debug)
    ctx.obj = AppContext(
        settings=settings,
        profile=profile or settings.profile,
        region=region or settings.region,
    )


# =============================================================================
# Instances
# =============================================================================


def _scan_instances(client: AWSClient, account_id: str, context: InstanceContext) -> None:
    scanner = InstanceScanner(client, context.ami_cache)
    context.emit(scanner.get_instances(account_id))


@cli.command("instances")
@roles_option
@click.pass_obj
@handle_errors
def instances(app: AppContext, roles: Optional[str]):
    """
    Show running instances and their volumes.

    Examples:

        aws-utils instances

        aws-utils instances --roles ~/roles.txt
    """
    context = InstanceContext(ami_cache=AMIAgeCache(), emit=reporter.print_instances)
    run_harness(app, roles, _scan_instances, context)


@cli.command("csv-instances")
@roles_option
@output_option
@click.pass_obj
@handle_errors
def csv_instances(app: AppContext, roles: Optional[str], output: Optional[str]):
    """
    Export running instances as CSV.

    Each row holds: account, instance ID, name, AMI, AMI age in days.
    The age is -1 when the AMI no longer exists.
    """
    with CSVReporter(output_path=output) as csv_reporter:
        context = InstanceContext(
            ami_cache=AMIAgeCache(),
            emit=lambda found: csv_reporter.write_rows(i.to_csv_row() for i in found),
        )
        run_harness(app, roles, _scan_instances, context)


@cli.command("ip")
@click.argument("names", nargs=-1, required=True)
@click.option("--verbose", "-v", is_flag=True, help="Show the instance name after the IP")
@click.pass_obj
@handle_errors
def ip(app: AppContext, names: Tuple[str, ...], verbose: bool):
    """
    Show the private IP of instances whose name matches NAMES.

    Each NAME is a regular expression. Only the current account is
    searched; role files are not supported, which keeps this fast enough
    for shell completion.

    Examples:

        ssh $(aws-utils ip bastion)
    """
    patterns = []
    for name in names:
        try:
            patterns.append(re.compile(name))
        except re.error as e:
            raise click.BadParameter(f"{name}: {e}", param_hint="NAMES")

    def show(found: List[Instance]) -> None:
        for pattern in patterns:
            matching = [i for i in found if pattern.search(i.name)]
            reporter.print_ips(matching, verbose=verbose)

    run_harness(app, None, _scan_instances, InstanceContext(AMIAgeCache(), show))


# =============================================================================
# Stacks, security groups and subnets
# =============================================================================


def _show_stacks(client: AWSClient, account_id: str, context: StackContext) -> None:
    listings = list_stacks(client, context.options)
    context.reporter.print_stacks(listings, show_status=context.options.show_status)


@cli.command("stacks")
@roles_option
@click.option("--filter", "name_filter", default=None, help="Only show stacks whose name matches this regexp")
@click.option("--status", is_flag=True, help="Show the stack statuses as well as the name")
@click.option("--all", "show_all", is_flag=True, help="Include stacks that have been deleted")
@click.option(
    "--policy",
    type=click.File("r"),
    default=None,
    help="Stack policy file to apply to every stack shown",
)
@click.pass_obj
@handle_errors
def stacks(app: AppContext, roles, name_filter, status: bool, show_all: bool, policy):
    """
    List CloudFormation stacks.

    Examples:

        aws-utils stacks --status

        aws-utils stacks --filter '^prod-' --policy deny-replace.json
    """
    options = StackOptions(
        filter=name_filter,
        show_status=status,
        show_all=show_all,
        policy=policy.read() if policy else None,
    )
    run_harness(app, roles, _show_stacks, StackContext(options, reporter))


def _grep_security_groups(client: AWSClient, account_id: str, context: SearchContext) -> None:
    for term in context.terms:
        for match in search_security_groups(client, account_id, term):
            context.reporter.print_security_group_match(match)


@cli.command("sg-grep")
@click.argument("terms", nargs=-1, required=True)
@roles_option
@click.pass_obj
@handle_errors
def sg_grep(app: AppContext, terms: Tuple[str, ...], roles: Optional[str]):
    """
    Show security groups matching TERMS.

    Each TERM is a case-insensitive regular expression, matched against
    the whole security group including its rules.

    Examples:

        aws-utils sg-grep 0.0.0.0/0

        aws-utils sg-grep --roles ~/roles.txt 'port.*22'
    """
    for term in terms:
        compile_term(term)
    run_harness(app, roles, _grep_security_groups, SearchContext(terms, reporter))


def _show_subnets(client: AWSClient, account_id: str, csv_reporter: CSVReporter) -> None:
    csv_reporter.write_rows(subnet.to_csv_row() for subnet in list_subnets(client, account_id))


@cli.command("subnets")
@roles_option
@output_option
@click.pass_obj
@handle_errors
def subnets(app: AppContext, roles: Optional[str], output: Optional[str]):
    """List subnets as CSV, with their VPC, name and CIDR."""
    with CSVReporter(output_path=output, header=CSV_HEADER) as csv_reporter:
        run_harness(app, roles, _show_subnets, csv_reporter)


# =============================================================================
# Whitelisting
# =============================================================================


@cli.command("whitelist-self")
@click.argument("files", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.pass_obj
@handle_errors
def whitelist_self(app: AppContext, files: Tuple[str, ...]):
    """
    Allow your current public IP through security groups.

    Each FILE is a JSON list of rules naming a security group, a rule
    description, a port and optionally a role to assume. A rule with the
    same description is updated in place when your IP changes.

    Examples:

        aws-utils whitelist-self ~/.aws-utils/home.json
    """
    cidr = get_public_ip(app.settings.ip_service, timeout=app.settings.timeout)
    console.print(f"Your remote IP is {cidr}")

    errors: List[AWSUtilsError] = []
    base_client = app.client()

    for path in files:
        try:
            entries = load_whitelist_config(path)
        except ConfigError as e:
            errors.append(ConfigError(f"{path}: {e.message}", path=path))
            continue

        summary = reconcile_entries(
            entries,
            cidr,
            base_client,
            progress_callback=lambda entry, result: reporter.print_reconcile_result(result),
        )
        reporter.print_reconcile_summary(summary)
        errors.extend(
            ReconcileError(
                f"Error updating {result.group_id}: {result.error_message}",
                group_id=result.group_id,
                label=result.label,
            )
            for result in summary.errors
        )

    if errors:
        error_reporter.print_errors(errors)
        sys.exit(1)


# =============================================================================
# Account commands
# =============================================================================


@cli.command("rotate-keys")
@click.option(
    "--path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Credentials file to update (default: AWS_SHARED_CREDENTIALS_FILE or ~/.aws/credentials)",
)
@click.option("--force", is_flag=True, help="Delete the oldest key without asking")
@click.pass_obj
@handle_errors
def rotate_keys(app: AppContext, path: Optional[str], force: bool):
    """
    Rotate your IAM access key and update the credentials file.

    Take a backup of your credentials file before running this for the
    first time; only the first key pair in the file is replaced.
    """
    path = default_credentials_path(path or app.settings.credentials_path)

    def confirm(key_id: str) -> bool:
        err_console.print(
            "[red]You already have 2 access keys in use, we cannot generate more.[/red]\n\n"
            f"[red]Press Ctrl-C to cancel, or enter 'OK' (uppercase) to delete the oldest key ({key_id}).[/red]\n"
        )
        try:
            answer = Prompt.ask("Delete oldest key?", console=err_console, default="", show_default=False)
        except EOFError:
            return False
        return answer.strip() == "OK"

    result = rotate_access_keys(app.client(), path, confirm=None if force else confirm)

    if result.deleted_key_id:
        console.print(f"Deleted access key {result.deleted_key_id}")
    console.print(f"Wrote access key {result.new_key_id} to {result.path}")


@cli.command("orphaned-zones")
@click.pass_obj
@handle_errors
def orphaned_zones(app: AppContext):
    """
    Show Route53 zones whose delegation points outside AWS.

    A zone is orphaned when any of its live NS records names a host that
    does not contain "aws".
    """
    zones = find_orphaned_zones(app.client())
    reporter.print_zone_statuses(zones)


@cli.command("whoami")
@click.pass_obj
@handle_errors
def whoami(app: AppContext):
    """Show the account alias, or the account ID if there is none."""
    client = app.client()
    account_id = resolve_account_id(client)
    reporter.print_line(resolve_account_alias(client) or account_id)


@cli.command("version")
def version():
    """Show the version of aws-utils."""
    click.echo(__version__)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
