"""CLI: napcat accounts"""

import json

import click
from rich.console import Console
from rich.table import Table

from napcat_channel.accounts import describe_account, list_account_ids, resolve_account
from napcat_channel.errors import ConfigurationError

console = Console()


@click.command("accounts")
@click.option("--json-output", "--json", is_flag=True)
@click.pass_obj
def accounts_cmd(cfg: dict, json_output: bool):
    """List configured accounts."""
    try:
        rows = [resolve_account(cfg, account_id) for account_id in list_account_ids(cfg)]
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if json_output:
        click.echo(json.dumps([describe_account(a) | {"dmPolicy": a.dm_policy} for a in rows], indent=2))
        return
    table = Table(title=f"Napcat accounts ({len(rows)})")
    table.add_column("ID", style="bold")
    table.add_column("Enabled")
    table.add_column("Configured")
    table.add_column("DM policy")
    table.add_column("WebSocket")
    table.add_column("HTTP")
    for a in rows:
        table.add_row(
            a.account_id,
            "yes" if a.enabled else "no",
            "yes" if a.configured else "no",
            a.dm_policy,
            a.ws_url or "",
            a.http_url or "",
        )
    console.print(table)
