"""CLI: napcat listen"""

import asyncio
from typing import Any, Optional

import click
from rich.console import Console

from napcat_channel.accounts import resolve_account
from napcat_channel.codec import parse_message
from napcat_channel.transport.connection import OneBotConnection

console = Console()


def _run(coro):
    from napcat_channel.cli.main import _run
    return _run(coro)


def _print_event(event: dict[str, Any]) -> None:
    if event.get("post_type") != "message" or event.get("message_type") != "private":
        return
    parsed = parse_message(event.get("message"))
    sender = event.get("sender") or {}
    name = sender.get("nickname") or event.get("user_id")
    console.print(f"[green]{name}[/green] ({event.get('user_id')}): {parsed.text}")
    for ref in parsed.media:
        console.print(f"  [dim]{ref.kind}: {ref.url}[/dim]")


@click.command("listen")
@click.option("-a", "--account", "account_id", default=None)
@click.pass_obj
def listen_cmd(cfg: dict, account_id: Optional[str]):
    """Connect over websocket and print inbound private messages (Ctrl+C to exit)."""
    account = resolve_account(cfg, account_id)
    if not account.ws_url:
        console.print(f"[red]Account {account.account_id} has no wsUrl configured.[/red]")
        raise SystemExit(1)

    async def _listen():
        connection = OneBotConnection.open(
            ws_url=account.ws_url,
            http_url=account.http_url,
            access_token=account.access_token,
            on_event=_print_event,
            on_connected=lambda: console.print("[cyan]Connected. Waiting for messages...[/cyan]"),
            on_disconnected=lambda: console.print("[yellow]Disconnected.[/yellow]"),
        )
        try:
            await asyncio.Event().wait()
        finally:
            await connection.close()

    try:
        _run(_listen())
    except KeyboardInterrupt:
        pass
