"""Tests for the skyport catalogs."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from skylift.db.models import SkyportRecord
from skylift.db.skyports import (
    DEFAULT_SKYPORTS,
    PostgresSkyportCatalog,
    StaticSkyportCatalog,
    record_to_skyport,
)
from skylift.shared.errors import PersistenceError
from skylift.shared.types import SkyportType


def _factory(session: AsyncMock):
    @asynccontextmanager
    async def factory():
        yield session

    return factory


class TestStaticCatalog:
    """Built-in Bengaluru catalog."""

    async def test_lists_all_sorted_by_name(self) -> None:
        """Every default skyport is listed in name order."""
        skyports = await StaticSkyportCatalog().list_skyports()
        assert len(skyports) == len(DEFAULT_SKYPORTS)
        names = [s.name for s in skyports]
        assert names == sorted(names)

    async def test_get_by_id(self) -> None:
        """Known id resolves to its skyport."""
        skyport = await StaticSkyportCatalog().get_skyport("mg-road")
        assert skyport.to_location().lat == 12.9716
        assert skyport.to_location().address == "MG Road, Bengaluru"

    async def test_unknown_id(self) -> None:
        """Unknown id resolves to None."""
        assert await StaticSkyportCatalog().get_skyport("atlantis") is None

    async def test_custom_list(self) -> None:
        """An explicit empty list yields an empty catalog."""
        assert await StaticSkyportCatalog([]).list_skyports() == []

    def test_ids_unique(self) -> None:
        """Catalog ids do not collide."""
        ids = [s.id for s in DEFAULT_SKYPORTS]
        assert len(ids) == len(set(ids))


class TestPostgresCatalog:
    """Table-backed catalog."""

    @staticmethod
    def _record() -> SkyportRecord:
        return SkyportRecord(
            skyport_id="hebbal",
            name="Hebbal Helipad",
            address="Hebbal Flyover, Bengaluru",
            lat=13.0358,
            lng=77.5970,
            capacity=2,
            type="helipad",
        )

    def test_record_conversion(self) -> None:
        """ORM rows convert to Skyport models."""
        skyport = record_to_skyport(self._record())
        assert skyport.id == "hebbal"
        assert skyport.type == SkyportType.HELIPAD

    async def test_get_skyport(self) -> None:
        """Row returned by the query is converted."""
        session = AsyncMock()
        result = MagicMock()
        result.scalar_one_or_none.return_value = self._record()
        session.execute.return_value = result
        catalog = PostgresSkyportCatalog(_factory(session))
        assert (await catalog.get_skyport("hebbal")).name == "Hebbal Helipad"

    async def test_list_failure(self) -> None:
        """Database errors surface as PersistenceError."""
        session = AsyncMock()
        session.execute.side_effect = SQLAlchemyError("down")
        catalog = PostgresSkyportCatalog(_factory(session))
        with pytest.raises(PersistenceError):
            await catalog.list_skyports()
