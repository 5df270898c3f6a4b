import asyncio
from datetime import datetime, timezone

from rdflib import Graph, Literal, URIRef

from ldesinldp.ldes.event_log import LDESinLDP
from ldesinldp.ldp.memory import InMemoryLDP
from ldesinldp.metadata.initializer import VLILConfig
from ldesinldp.util.conversion import graph_to_turtle
from ldesinldp.versioning.version_aware import VersionAwareLDESinLDP
from ldesinldp.vocabulary import DCT

ROOT = "http://localhost:3000/ldesinldp/"
ENTITY = "http://example.org/book/1"


def book(title: str) -> Graph:
    graph = Graph()
    graph.add((URIRef(ENTITY), DCT.title, Literal(title)))
    return graph


async def main():
    """Run a versioned LDES in LDP against an in-memory server"""

    print("=" * 80)
    print("LDES in LDP Sample Usage")
    print("=" * 80)
    print()

    # 1. Initialize
    print("1. Initializing LDES in LDP...")
    ldp = InMemoryLDP()
    ldes = LDESinLDP(ROOT, ldp)
    versioned = VersionAwareLDESinLDP(ldes)
    await versioned.initialise(VLILConfig(page_size=2), date=datetime(2022, 1, 1, tzinfo=timezone.utc))
    print("   ✓ Root container, metadata and first fragment created")
    print()

    # 2. Write versions
    print("2. Writing versions...")
    await versioned.create(ENTITY, book("Draft"), date=datetime(2022, 6, 1, tzinfo=timezone.utc))
    await versioned.update(ENTITY, book("Second edition"), date=datetime(2022, 7, 1, tzinfo=timezone.utc))
    await versioned.update(ENTITY, book("Final"), date=datetime(2022, 8, 1, tzinfo=timezone.utc))
    metadata = await ldes.metadata()
    print(f"   ✓ {len(metadata.view.relations)} fragment(s), inbox: {metadata.inbox}")
    print()

    # 3. Read
    print("3. Reading the entity...")
    current = await versioned.read(ENTITY)
    in_june = await versioned.read(ENTITY, date=datetime(2022, 6, 15, tzinfo=timezone.utc))
    print(f"   Now:     {current.value(URIRef(ENTITY), DCT.title)}")
    print(f"   In June: {in_june.value(URIRef(ENTITY), DCT.title)}")
    print()

    # 4. History
    print("4. Version history...")
    for member in await versioned.extract_versions(ENTITY):
        print(f"   - {member.graph.value(member.subject, DCT.created)}: "
              f"{member.graph.value(member.subject, DCT.title)}")
    print()

    # 5. Delete
    print("5. Deleting the entity...")
    await versioned.delete(ENTITY)
    listing = await versioned.read(ROOT, derived=True)
    print(graph_to_turtle(listing))

    status = await ldes.status()
    print(f"   Status: {status.model_dump()}")

    print("=" * 80)
    print("✓ Sample completed successfully!")
    print("=" * 80)


if __name__ == "__main__":
    asyncio.run(main())
