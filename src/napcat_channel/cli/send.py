"""CLI: napcat send"""

from typing import Optional

import click
from rich.console import Console

from napcat_channel.errors import NapcatError
from napcat_channel.host import ExtensionMediaDetector
from napcat_channel.outbound import OutboundSender
from napcat_channel.registry import ConnectionRegistry

console = Console()


def _run(coro):
    from napcat_channel.cli.main import _run
    return _run(coro)


@click.command("send")
@click.argument("target")
@click.argument("text", required=False, default="")
@click.option("-m", "--media", "media_url", default=None, help="Media URL or path to attach")
@click.option("-a", "--account", "account_id", default=None)
@click.pass_obj
def send_cmd(cfg: dict, target: str, text: str, media_url: Optional[str], account_id: Optional[str]):
    """Send a private message to TARGET (QQ number, optionally qq:-prefixed)."""

    async def _send():
        sender = OutboundSender(lambda: cfg, ConnectionRegistry(), ExtensionMediaDetector())
        if media_url:
            return await sender.send_media(target, text, media_url, account_id)
        return await sender.send_text(target, text, account_id)

    try:
        result = _run(_send())
    except NapcatError as e:
        console.print(f"[red]Send failed ({e.code}): {e}[/red]")
        raise SystemExit(1)
    console.print(f"[green]Sent[/green] message_id={result.message_id} to {result.chat_id}")
