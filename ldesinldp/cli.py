import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.table import Table

from .config import get_settings
from .errors import LDESError
from .ldes.event_log import LDESinLDP
from .ldes.members import member_date
from .ldp.communication import LDPCommunication
from .metadata.initializer import VLILConfig
from .util.conversion import datetime_to_iso, graph_to_turtle, parse_datetime, turtle_to_graph
from .versioning.version_aware import VersionAwareLDESinLDP

console = Console()

FAILURES = (LDESError, httpx.HTTPError, ValueError)


def get_ldes(communication: LDPCommunication, root_url: Optional[str] = None) -> LDESinLDP:
    """LDES in LDP at the given root, LDES_ROOT_URL by default"""
    settings = get_settings()
    return LDESinLDP(root_url or settings.ldes.root_url, communication, settings.ldes)


def run(coroutine):
    return asyncio.run(coroutine)


def parse_date_option(value: Optional[str]) -> Optional[datetime]:
    return parse_datetime(value) if value else None


@click.group()
@click.option('--root', 'root_url', default=None, help='Root container of the LDES in LDP')
@click.pass_context
def cli(ctx: click.Context, root_url: Optional[str]):
    """LDES in LDP CLI - versioned event streams in an LDP container"""
    ctx.ensure_object(dict)
    ctx.obj['root_url'] = root_url


@cli.command()
@click.option('--page-size', type=int, default=None, help='Members per fragment')
@click.option('--shape', default=None, help='tree:shape IRI')
@click.pass_context
def init(ctx: click.Context, page_size: Optional[int], shape: Optional[str]):
    """Initialise a versioned LDES in LDP"""
    settings = get_settings()

    async def _init():
        async with LDPCommunication(settings.http) as communication:
            ldes = get_ldes(communication, ctx.obj['root_url'])
            config = VLILConfig(
                tree_path=settings.ldes.tree_path,
                version_of_path=settings.ldes.version_of_path,
                page_size=page_size if page_size is not None else settings.ldes.page_size,
                shape=shape or settings.ldes.shape
            )
            await ldes.initialise(config)
            return ldes.root_identifier

    try:
        root = run(_init())
        console.print(f"✓ LDES in LDP ready at {root}", style="green")
    except FAILURES as e:
        console.print(f"✗ Initialisation failed: {e}", style="red")


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show the status of the LDES in LDP"""
    settings = get_settings()

    async def _status():
        async with LDPCommunication(settings.http) as communication:
            return await get_ldes(communication, ctx.obj['root_url']).status()

    try:
        result = run(_status())
    except FAILURES as e:
        console.print(f"✗ Status failed: {e}", style="red")
        return

    table = Table(title="LDES in LDP status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    for name, value in result.model_dump().items():
        table.add_row(name, "✓" if value else "✗", style="green" if value else "red")
    console.print(table)


@cli.command()
@click.pass_context
def info(ctx: click.Context):
    """Show the relations of the view"""
    settings = get_settings()

    async def _info():
        async with LDPCommunication(settings.http) as communication:
            return await get_ldes(communication, ctx.obj['root_url']).metadata()

    try:
        metadata = run(_info())
    except FAILURES as e:
        console.print(f"✗ Could not read metadata: {e}", style="red")
        return

    console.print(f"Event stream: {metadata.event_stream_identifier}", style="bold")
    console.print(f"  Inbox: {metadata.inbox}")
    console.print(f"  Page size: {metadata.fragment_size}")

    table = Table(title="Relations")
    table.add_column("Node", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Path")
    for relation in metadata.view.relations:
        table.add_row(relation.node, relation.value, relation.path)
    console.print(table)


@cli.command()
@click.argument('file_path', type=click.Path(exists=True))
@click.pass_context
def append(ctx: click.Context, file_path: str):
    """Append a Turtle file as a new resource"""
    settings = get_settings()
    graph = turtle_to_graph(Path(file_path).read_text(encoding='utf-8'))

    async def _append():
        async with LDPCommunication(settings.http) as communication:
            return await get_ldes(communication, ctx.obj['root_url']).append(graph)

    try:
        location = run(_append())
        console.print(f"✓ Created {location}", style="green")
    except FAILURES as e:
        console.print(f"✗ Append failed: {e}", style="red")


@cli.command()
@click.option('--from', 'from_date', default=None, help='ISO-8601 lower bound')
@click.option('--until', default=None, help='ISO-8601 upper bound')
@click.option('--sorted/--unsorted', 'sort', default=False, help='Sort members per fragment')
@click.pass_context
def members(ctx: click.Context, from_date: Optional[str], until: Optional[str], sort: bool):
    """List the members within a time window"""
    settings = get_settings()

    async def _members():
        async with LDPCommunication(settings.http) as communication:
            ldes = get_ldes(communication, ctx.obj['root_url'])
            window = (parse_date_option(from_date), parse_date_option(until))
            stream = ldes.read_members_sorted(*window) if sort else ldes.read_all_members(*window)
            return [member async for member in stream], ldes.tree_path

    try:
        result, path = run(_members())
    except FAILURES as e:
        console.print(f"✗ Reading members failed: {e}", style="red")
        return

    table = Table(title=f"{len(result)} member(s)")
    table.add_column("Member", style="cyan")
    table.add_column("Timestamp", style="green")
    table.add_column("Triples", justify="right")
    for member in result:
        date = member_date(member, path)
        table.add_row(member.id, datetime_to_iso(date) if date else "-", str(len(member.graph)))
    console.print(table)


@cli.command()
@click.argument('identifier')
@click.option('--date', default=None, help='Point in time (ISO-8601), now by default')
@click.option('--raw', is_flag=True, help='Show the version record instead of the materialized state')
@click.option('--derived', is_flag=True, help='List live entities when reading the root container')
@click.pass_context
def read(ctx: click.Context, identifier: str, date: Optional[str], raw: bool, derived: bool):
    """Read the state of an entity"""
    settings = get_settings()

    async def _read():
        async with LDPCommunication(settings.http) as communication:
            versioned = VersionAwareLDESinLDP(get_ldes(communication, ctx.obj['root_url']))
            return await versioned.read(
                identifier, date=parse_date_option(date), materialized=not raw, derived=derived
            )

    try:
        graph = run(_read())
        console.print(graph_to_turtle(graph))
    except FAILURES as e:
        console.print(f"✗ Read failed: {e}", style="red")


if __name__ == '__main__':
    cli()
