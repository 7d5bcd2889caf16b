#!/usr/bin/env python3

import argparse
import sys

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from trailprobe.auth.store import save_trailprobe_profile
from trailprobe.config import DEFAULT_REGION, ScanSettings, StartupError
from trailprobe.scan import run_scan

console = Console(highlight=True)

# Rows shown in the results table; the CSV summary always has every row.
MAX_TABLE_ROWS = 25


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


# =============================================================================
# AUTH
# =============================================================================
def cmd_auth(args):
    console.print(Panel.fit(
        "[bold green]🔐 Configuring AWS Profile[/bold green]",
        border_style="green",
        box=box.ROUNDED
    ))
    console.print()

    with console.status("[bold cyan]Validating credentials...[/bold cyan]", spinner="dots"):
        try:
            session = boto3.Session(
                aws_access_key_id=args.access_key,
                aws_secret_access_key=args.secret_key,
                region_name=args.region,
            )
            identity = session.client("sts").get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            console.print("[red]❌[/red] [bold red]Invalid AWS credentials[/bold red]")
            console.print(f"[dim]{e}[/dim]")
            return 1

    auth_table = Table(show_header=False, box=box.ROUNDED, border_style="green")
    auth_table.add_column("Field", style="cyan", width=15)
    auth_table.add_column("Value", style="yellow")
    auth_table.add_row("Account ID", f"[bold]{identity.get('Account', 'N/A')}[/bold]")
    auth_table.add_row("User ID", identity.get("UserId", "N/A"))
    auth_table.add_row("ARN", identity.get("Arn", "N/A"))
    auth_table.add_row("Region", f"[bold]{args.region}[/bold]")
    console.print(auth_table)
    console.print()

    path = save_trailprobe_profile(
        profile=args.profile,
        access_key=args.access_key,
        secret_key=args.secret_key,
        region=args.region,
    )

    console.print(Panel.fit(
        f"[green]✓[/green] Profile [bold cyan]'{args.profile}'[/bold cyan] saved → [dim]{path}[/dim]",
        border_style="green",
        box=box.ROUNDED
    ))
    return 0


# =============================================================================
# SCAN
# =============================================================================
def _print_results(result):
    table = Table(
        title=f"[bold cyan]🔎 Discovered identifier fields ({len(result.records)})[/bold cyan]",
        box=box.ROUNDED,
        border_style="cyan",
    )
    table.add_column("Key", style="cyan")
    table.add_column("Example", style="yellow", overflow="fold")
    table.add_column("Action", style="green")

    for record in result.records[:MAX_TABLE_ROWS]:
        table.add_row(record.path, record.value, record.action)

    if len(result.records) > MAX_TABLE_ROWS:
        table.caption = f"... {len(result.records) - MAX_TABLE_ROWS} more in {result.summary_path}"

    console.print(table)
    console.print()

    style = "green" if result.state.value == "done" else "yellow"
    console.print(Panel.fit(
        f"State:     [bold {style}]{result.state.value}[/bold {style}]\n"
        f"Fetches:   {result.fetches}\n"
        f"Events:    {result.processed}\n"
        f"Summary:   {result.summary_path if result.summary_written else '[red]not written[/red]'}",
        border_style=style,
        box=box.ROUNDED
    ))


def cmd_scan(args):
    try:
        settings = ScanSettings.from_args(args)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        return 2

    console.print(Panel.fit(
        "[bold cyan]🛰  CloudTrail Identifier Scan[/bold cyan]\n"
        f"[dim]Region: {settings.region}   "
        f"Window: {f'{settings.hours}h' if settings.hours is not None else 'all available (~90 days)'}[/dim]",
        border_style="cyan",
        box=box.ROUNDED
    ))

    try:
        result = run_scan(settings, console=console)
    except StartupError as e:
        console.print(Panel.fit(f"[red]❌ Error:[/red] {e}", border_style="red", box=box.ROUNDED))
        return 1

    _print_results(result)
    return 0


# =============================================================================
# CLI BUILDER
# =============================================================================
def build_cli():

    epilog = """
Examples:

  trailprobe auth --profile ir --access-key AKIA... --secret-key ...

  trailprobe scan

  trailprobe scan --region us-east-1 --hours 24 --summary-file ids.csv
"""

    parser = argparse.ArgumentParser(
        prog="trailprobe",
        description="Discover resource identifier fields in CloudTrail event history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # ---------------- AUTH ----------------
    auth = sub.add_parser("auth", help="Store AWS credentials for trailprobe")
    req_auth = auth.add_argument_group("required arguments")
    req_auth.add_argument("--profile", type=str, required=True, help="Profile name")
    req_auth.add_argument("--access-key", type=str, required=True, help="AWS access key ID")
    req_auth.add_argument("--secret-key", type=str, required=True, help="AWS secret access key")
    auth.add_argument("--region", type=str, default=DEFAULT_REGION)
    auth.set_defaults(func=cmd_auth)

    # ---------------- SCAN ----------------
    scan = sub.add_parser("scan", help="Scan CloudTrail LookupEvents for identifier fields")
    scan.add_argument("--region", type=str, help=f"AWS region (default: profile region or {DEFAULT_REGION})")
    scan.add_argument("--profile", type=str, help="Stored trailprobe profile (default: active profile or AWS default chain)")
    scan.add_argument("--hours", type=positive_int, help="Only look back this many hours (>= 1)")
    scan.add_argument("--log-file", type=str, help="JSON lines log file (default: logs.ndjson)")
    scan.add_argument("--summary-file", type=str, help="CSV summary file (default: summary.csv)")
    scan.add_argument("--max-retries", type=int, help="Retries per page before aborting (default: 3)")
    scan.add_argument("--page-size", type=int, help="Events per LookupEvents page, max 50")
    scan.set_defaults(func=cmd_scan)

    return parser


# =============================================================================
# MAIN
# =============================================================================
def main(argv=None):
    parser = build_cli()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
