"""Skyport catalog: the fixed locations trips run between.

Two sources: a static catalog for the in-memory backend and the
``skyports`` table for Postgres. Both answer list_skyports() and get_skyport().
"""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from skylift.db.models import SkyportRecord
from skylift.db.postgres import SessionFactory
from skylift.db.session import session_scope
from skylift.shared.errors import PersistenceError
from skylift.shared.models import Skyport
from skylift.shared.types import SkyportType

DEFAULT_SKYPORTS: list[Skyport] = [
    Skyport(
        id="mg-road",
        name="MG Road Skyport",
        address="MG Road, Bengaluru",
        lat=12.9716,
        lng=77.5946,
        capacity=4,
        type=SkyportType.ROOFTOP,
    ),
    Skyport(
        id="koramangala",
        name="Koramangala Skyport",
        address="Koramangala 5th Block, Bengaluru",
        lat=12.9352,
        lng=77.6146,
        capacity=3,
        type=SkyportType.ROOFTOP,
    ),
    Skyport(
        id="whitefield",
        name="Whitefield Vertiport",
        address="ITPL Main Rd, Whitefield, Bengaluru",
        lat=12.9698,
        lng=77.7500,
        capacity=6,
    ),
    Skyport(
        id="electronic-city",
        name="Electronic City Vertiport",
        address="Electronic City Phase 1, Bengaluru",
        lat=12.8399,
        lng=77.6770,
        capacity=6,
    ),
    Skyport(
        id="hebbal",
        name="Hebbal Helipad",
        address="Hebbal Flyover, Bengaluru",
        lat=13.0358,
        lng=77.5970,
        capacity=2,
        type=SkyportType.HELIPAD,
    ),
    Skyport(
        id="blr-airport",
        name="Kempegowda Airport Vertiport",
        address="Kempegowda International Airport, Bengaluru",
        lat=13.1989,
        lng=77.7068,
        capacity=8,
    ),
]


class StaticSkyportCatalog:
    """Catalog backed by an in-process list."""

    def __init__(self, skyports: list[Skyport] | None = None) -> None:
        source = DEFAULT_SKYPORTS if skyports is None else skyports
        self._skyports = {s.id: s for s in source}

    async def list_skyports(self) -> list[Skyport]:
        """Return all skyports ordered by name."""
        return sorted(self._skyports.values(), key=lambda s: s.name)

    async def get_skyport(self, skyport_id: str) -> Skyport | None:
        """Return a skyport by id, or None."""
        return self._skyports.get(skyport_id)


def record_to_skyport(record: SkyportRecord) -> Skyport:
    """Convert an ORM row to a Skyport."""
    return Skyport(
        id=record.skyport_id,
        name=record.name,
        address=record.address,
        lat=record.lat,
        lng=record.lng,
        capacity=record.capacity,
        type=SkyportType(record.type),
    )


class PostgresSkyportCatalog:
    """Catalog backed by the ``skyports`` table."""

    def __init__(self, session_factory: SessionFactory = session_scope) -> None:
        self._session_factory = session_factory

    async def list_skyports(self) -> list[Skyport]:
        """Return all skyports ordered by name.

        Raises:
            PersistenceError: If the read fails.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(SkyportRecord).order_by(SkyportRecord.name)
                )
                records = list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not load skyports") from exc
        return [record_to_skyport(r) for r in records]

    async def get_skyport(self, skyport_id: str) -> Skyport | None:
        """Return a skyport by id, or None.

        Raises:
            PersistenceError: If the read fails.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(SkyportRecord).where(SkyportRecord.skyport_id == skyport_id)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load skyport {skyport_id}") from exc
        return record_to_skyport(record) if record is not None else None
