"""
peerlink CLI Tool
Command-line interface for listening as, and sending to, overlay peers.
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from peerlink.config import settings
from peerlink.errors import PeerlinkError
from peerlink.peer import Peer


console = Console()


async def _listen(peer: Peer, as_json: bool) -> int:
    """Print messages until the stream ends; returns the message count."""
    count = 0
    await peer.connect()
    console.print(f"[green]Listening as {peer}[/green]")
    try:
        async for message in peer:
            count += 1
            if as_json:
                console.print(json.dumps({"index": count, "size": len(message), "text": message.decode("utf-8", "replace")}))
            else:
                console.print(Panel(
                    message.decode("utf-8", "replace"),
                    title=f"[cyan]#{count}[/cyan]",
                    subtitle=f"{len(message)} bytes",
                    border_style="green",
                ))
    finally:
        await peer.close()
    return count


async def _send(target: Peer, data: bytes, send_scheme: str) -> None:
    sender = Peer(id="cli", host=target.host, send_scheme=send_scheme)
    try:
        await sender.send(target, data)
    finally:
        await sender.close()


@click.group()
@click.option("--insecure", is_flag=True, help="Use ws:// and http:// instead of wss:// and https://")
@click.option("--log-level", "-l", default=None, help="Logging level (default: from settings)")
@click.pass_context
def cli(ctx, insecure: bool, log_level: Optional[str]):
    """peerlink CLI - Peer-to-peer messaging over a relay."""
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=getattr(logging, (log_level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj["stream_scheme"] = "ws" if insecure else settings.stream_scheme
    ctx.obj["send_scheme"] = "http" if insecure else settings.send_scheme


@cli.command()
@click.argument("host")
@click.argument("peer_id")
@click.option("--credential", "-c", envvar="PEERLINK_CREDENTIAL", help="Credential embedded in the address")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON lines")
@click.pass_context
def listen(ctx, host: str, peer_id: str, credential: Optional[str], as_json: bool):
    """Connect as a peer and print inbound messages."""
    peer = Peer(peer_id, host, credential, stream_scheme=ctx.obj["stream_scheme"])
    try:
        count = asyncio.run(_listen(peer, as_json))
    except KeyboardInterrupt:
        return
    except PeerlinkError as e:
        console.print(f"❌ [red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[dim]Stream ended after {count} message(s)[/dim]")


@cli.command()
@click.argument("host")
@click.argument("peer_id")
@click.argument("source", type=click.File("rb"), default="-")
@click.option("--credential", "-c", envvar="PEERLINK_CREDENTIAL", help="Credential embedded in the address")
@click.pass_context
def send(ctx, host: str, peer_id: str, source, credential: Optional[str]):
    """Send a file (or stdin) to a peer as one message."""
    target = Peer(peer_id, host, credential)
    data = source.read()
    try:
        asyncio.run(_send(target, data, ctx.obj["send_scheme"]))
    except Exception as e:
        console.print(f"❌ [red]Send failed: {e}[/red]")
        sys.exit(1)
    console.print(f"✅ [green]Sent {len(data)} bytes to {target}[/green]")


@cli.command()
@click.option("--host", "-h", "bind_host", default=None, help="Bind address (default: from settings)")
@click.option("--port", "-p", default=None, type=int, help="Bind port (default: from settings)")
def relay(bind_host: Optional[str], port: Optional[int]):
    """Run the development relay."""
    import uvicorn

    from peerlink.relay import create_app

    uvicorn.run(
        create_app(),
        host=bind_host or settings.relay_host,
        port=port or settings.relay_port,
        log_level=settings.log_level.lower(),
    )


def main():
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
