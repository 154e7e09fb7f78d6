"""Command-line client for the Peer Rendezvous Service.

Commands:
1. peers: show the live peer addresses
2. register: register an address once under a session id
3. announce: keep re-registering an address and print peers as they change
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from src.infrastructure.config import get_config
from src.services.registry.registry_client import (
    PeerAnnouncer,
    PeerRegistryClient,
    generate_session_id,
)

console = Console()


def display_peers(peers: List[str], title: str = "Live Peers") -> None:
    """Display peer addresses in a table."""
    if not peers:
        console.print("[yellow]No live peers registered.[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Address", style="green")
    for position, address in enumerate(peers, 1):
        table.add_row(str(position), address)
    console.print(table)


async def show_peers(client: PeerRegistryClient) -> int:
    """Print the current peer list."""
    if not await client.health_check():
        console.print(
            f"[red]Registry at {client.registry_endpoint} is not reachable.[/red]"
        )
        return 1
    display_peers(await client.list_peers())
    return 0


async def register_once(
    client: PeerRegistryClient, address: str, session_id: Optional[str]
) -> int:
    """Register ``address`` once and report the session id used."""
    session_id = session_id or generate_session_id()
    if not await client.register(session_id, address):
        console.print(f"[red]Failed to register {address}.[/red]")
        return 1
    console.print(f"[green]✓[/green] Registered [bold]{address}[/bold]")
    console.print(f"Session id: [cyan]{session_id}[/cyan]")
    return 0


async def announce_forever(
    client: PeerRegistryClient,
    address: str,
    session_id: Optional[str],
    interval: float,
    rounds: Optional[int] = None,
) -> int:
    """Re-register every ``interval`` seconds until interrupted.

    With ``rounds`` set, stop after that many announcements.
    """
    done = asyncio.Event()
    last_seen: Optional[List[str]] = None

    def report(announcer: PeerAnnouncer, registered: bool) -> None:
        nonlocal last_seen
        if not registered:
            console.print("[yellow]Registration failed, will retry.[/yellow]")
        if announcer.peers != last_seen:
            display_peers(announcer.peers)
            last_seen = list(announcer.peers)
        if rounds is not None and announcer.rounds >= rounds:
            done.set()

    announcer = PeerAnnouncer(
        client,
        session_id=session_id or generate_session_id(),
        address=address,
        interval_seconds=interval,
        on_round=report,
    )
    console.print(
        f"Announcing [bold]{address}[/bold] as session "
        f"[cyan]{announcer.session_id}[/cyan] every {interval:g}s (Ctrl-C to stop)"
    )

    announcer.start()
    try:
        await done.wait()
    finally:
        await announcer.stop()
    return 0


def positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the client."""
    parser = argparse.ArgumentParser(description="Peer Rendezvous Service client")
    parser.add_argument(
        "--registry",
        default=None,
        help="Base URL of the rendezvous service (default: from config)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("peers", help="List live peer addresses")

    register = subparsers.add_parser("register", help="Register an address once")
    register.add_argument("--address", required=True, help="Address to advertise")
    register.add_argument("--session-id", dest="session_id", help="Session id to use")

    announce = subparsers.add_parser(
        "announce", help="Keep an address registered and watch peers"
    )
    announce.add_argument("--address", required=True, help="Address to advertise")
    announce.add_argument("--session-id", dest="session_id", help="Session id to use")
    announce.add_argument(
        "--interval",
        type=positive_float,
        default=None,
        help="Seconds between announcements (default: from config)",
    )
    announce.add_argument(
        "--rounds",
        type=positive_int,
        default=None,
        help="Stop after this many announcements (default: run until Ctrl-C)",
    )
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run the selected command. Returns the exit code."""
    args = build_parser().parse_args(argv)
    client = PeerRegistryClient(registry_endpoint=args.registry)

    if args.command == "peers":
        return asyncio.run(show_peers(client))
    if args.command == "register":
        return asyncio.run(register_once(client, args.address, args.session_id))

    interval = args.interval
    if interval is None:
        interval = get_config().config.announce_interval_seconds
    try:
        return asyncio.run(
            announce_forever(
                client, args.address, args.session_id, interval, args.rounds
            )
        )
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped announcing.[/dim]")
        return 0


def main():
    """Main entry point for the client."""
    sys.exit(run())


if __name__ == "__main__":
    main()
