"""
Napcat CLI — `napcat` command.

Commands:
  napcat accounts                  List configured accounts
  napcat send <target> [text]      One-shot private message over HTTP
  napcat listen                    Print inbound private messages
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install napcat-channel[cli]")

from napcat_channel import __version__

console = Console()
CONFIG_FILE = Path.home() / ".napcat" / "config.json"


def _load_config(path: Optional[str] = None) -> dict[str, Any]:
    """Load host config. A file without `channels` is taken as the napcat section itself."""
    config_path = Path(path) if path else CONFIG_FILE
    try:
        cfg = json.loads(config_path.read_text())
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid config {config_path}: {e}[/red]")
        raise SystemExit(1)
    if isinstance(cfg, dict) and "channels" not in cfg:
        return {"channels": {"napcat": cfg}}
    return cfg


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option(__version__)
@click.option("-c", "--config", "config_path", default=None, help="Path to config JSON")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """Napcat CLI: OneBot v11 private messaging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.obj = _load_config(config_path)


# Register subcommands from separate modules
from napcat_channel.cli.accounts import accounts_cmd
from napcat_channel.cli.send import send_cmd
from napcat_channel.cli.listen import listen_cmd

main.add_command(accounts_cmd)
main.add_command(send_cmd)
main.add_command(listen_cmd)


if __name__ == "__main__":
    main()
